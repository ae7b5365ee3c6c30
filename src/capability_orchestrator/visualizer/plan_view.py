"""Rich views for capabilities, classifications, plans and execution results."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..classifier import ClassificationResult
from ..engine import OrchestrationResult, OrchestrationStatus
from ..orchestrator.models import ExecutionPlan, StageStatus
from ..registry.registry import CapabilityRegistry
from .utils import format_duration, summarize_artifact

STATUS_ICONS = {
	StageStatus.SUCCESS: "[green]OK[/green]",
	StageStatus.FAILED: "[red]FAIL[/red]",
	StageStatus.SKIPPED: "[dim]SKIP[/dim]",
}

OVERALL_STYLES = {
	OrchestrationStatus.COMPLETED: "green",
	OrchestrationStatus.FAILED: "red",
	OrchestrationStatus.UNMATCHED: "yellow",
}


def render_capabilities(registry: CapabilityRegistry, console: Optional[Console] = None) -> None:
	"""Render the capability table."""
	console = console or Console()

	table = Table(title="Capabilities")
	table.add_column("Id", style="cyan")
	table.add_column("Label")
	table.add_column("Rank", justify="right")
	table.add_column("Depends on")
	table.add_column("Triggers", justify="right")

	for capability in registry.all():
		table.add_row(
			capability.id,
			escape(capability.label),
			str(capability.rank),
			", ".join(capability.depends_on) or "[dim]-[/dim]",
			str(len(capability.triggers)),
		)

	console.print(table)


def render_classification(result: ClassificationResult, console: Optional[Console] = None) -> None:
	"""Render scores and evidence for a classified request."""
	console = console or Console()

	table = Table(title=f"Classification (threshold {result.threshold:g})")
	table.add_column("Capability", style="cyan")
	table.add_column("Score", justify="right")
	table.add_column("Selected", justify="center")
	table.add_column("Evidence")

	for capability_id, score in sorted(result.scores.items(), key=lambda item: -item[1]):
		selected = capability_id in result.capabilities
		mark = "[yellow]fallback[/yellow]" if capability_id == result.fallback else ("[green]yes[/green]" if selected else "")
		evidence = ", ".join(escape(m.trigger.label) for m in result.evidence.get(capability_id, ()))
		table.add_row(capability_id, f"{score:g}", mark, evidence)

	console.print(table)
	if result.unmatched:
		console.print("[yellow]No capability crossed the threshold.[/yellow]")


def render_plan(plan: ExecutionPlan, console: Optional[Console] = None) -> None:
	"""Render a plan as a Rich Tree of stages."""
	console = console or Console()

	if plan.is_empty:
		console.print("[dim]Empty plan: no capability selected.[/dim]")
		return

	title = escape(plan.request_text) if plan.request_text else "Execution plan"
	tree = Tree(f"[bold]{title}[/bold]  [dim]({len(plan)} stages)[/dim]")
	for stage in plan.stages:
		auto = " [yellow](auto-included)[/yellow]" if stage.auto_included else ""
		deps = f" [dim]<- {', '.join(stage.depends_on)}[/dim]" if stage.depends_on else ""
		tree.add(
			f"{stage.index + 1}. [bold]{stage.capability_id}[/bold] "
			f"[dim]rank {stage.capability.rank}[/dim]{auto}{deps}"
		)

	console.print(tree)


def render_result(result: OrchestrationResult, console: Optional[Console] = None) -> None:
	"""Render the outcome of a request: per-stage status plus overall status."""
	console = console or Console()

	for warning in result.warnings:
		console.print(f"[yellow]warning:[/yellow] {escape(str(warning))}")

	report = result.report
	style = OVERALL_STYLES[result.status]

	lines = []
	if report is not None:
		for stage_result in report.results:
			icon = STATUS_ICONS[stage_result.status]
			if stage_result.error is not None:
				detail = f"[red]{stage_result.error.kind.value}: {escape(stage_result.error.message)}[/red]"
			else:
				detail = f"[dim]{escape(summarize_artifact(stage_result.artifact))}[/dim]"
			lines.append(
				f"{icon} {stage_result.capability_id} "
				f"[dim]({format_duration(stage_result.duration_seconds)})[/dim] {detail}"
			)
		for capability_id in report.not_run:
			lines.append(f"[dim]-- {capability_id} (not run)[/dim]")
		if report.cancelled:
			lines.append("[yellow]Execution was cancelled.[/yellow]")
	else:
		lines.append("[dim]Nothing was executed.[/dim]")

	console.print(Panel(
		"\n".join(lines),
		title=f"[{style}]{result.status.value}[/{style}] (exit {result.exit_code})",
		border_style=style,
	))
