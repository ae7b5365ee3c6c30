"""Built-in capability table, used when no registry file is configured."""

from .models import Capability, cue, keyword, phrase

DEFAULT_CAPABILITIES: tuple[Capability, ...] = (
	Capability(
		id="data-modeling",
		label="Data modeling",
		rank=0,
		description="Entities, fields, value objects and their relationships",
		triggers=(
			keyword("entity", 2.0),
			keyword("model", 1.5),
			keyword("schema", 1.5),
			keyword("field", 1.0),
			keyword("attribute", 1.0),
			keyword("relationship", 1.0),
			phrase("value object", 1.5),
			cue("entity_name", 1.5),
			cue("crud_verb", 0.5),
		),
	),
	Capability(
		id="persistence-integration",
		label="Persistence integration",
		rank=1,
		depends_on=("data-modeling",),
		description="Repositories, tables and migrations for modeled data",
		triggers=(
			keyword("database", 2.0),
			keyword("persistence", 2.0),
			keyword("repository", 2.0),
			keyword("persist", 1.5),
			keyword("migration", 1.5),
			keyword("sql", 1.5),
			keyword("postgres", 1.5),
			keyword("table", 1.0),
		),
	),
	Capability(
		id="workflow-orchestration",
		label="Workflow orchestration",
		rank=1,
		depends_on=("data-modeling",),
		description="Multi-step processes, approvals and state transitions",
		triggers=(
			keyword("workflow", 2.0),
			keyword("saga", 2.0),
			phrase("state machine", 2.0),
			keyword("approval", 1.5),
			keyword("approve", 1.5),
			keyword("lifecycle", 1.0),
			keyword("transition", 1.0),
			keyword("step", 0.5),
		),
	),
	Capability(
		id="notification-integration",
		label="Notification integration",
		rank=2,
		depends_on=("data-modeling",),
		description="Email, SMS and push notifications triggered by domain events",
		triggers=(
			keyword("notification", 2.0),
			keyword("notify", 2.0),
			keyword("email", 1.5),
			keyword("sms", 1.5),
			phrase("push notification", 1.0),
			keyword("alert", 1.0),
			keyword("reminder", 1.0),
		),
	),
	Capability(
		id="http-surface",
		label="HTTP surface",
		rank=2,
		depends_on=("data-modeling",),
		description="REST endpoints, routes and request validation",
		triggers=(
			keyword("endpoint", 2.0),
			keyword("api", 2.0),
			keyword("rest", 1.5),
			keyword("route", 1.5),
			keyword("controller", 1.5),
			keyword("http", 1.5),
			cue("endpoint_path", 1.5),
			cue("crud_verb", 0.5),
		),
	),
	Capability(
		id="ui-surface",
		label="UI surface",
		rank=3,
		depends_on=("http-surface",),
		description="Pages, forms and components consuming the HTTP surface",
		triggers=(
			keyword("ui", 2.0),
			keyword("frontend", 2.0),
			phrase("user interface", 2.0),
			keyword("component", 1.0),
			cue("screen_element", 1.5),
		),
	),
)
