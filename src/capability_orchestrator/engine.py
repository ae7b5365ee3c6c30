"""
Engine - Request in, aggregated result out.

Wires the classifier, plan builder and coordinator together. Classification
and planning happen eagerly, before any stage runs, so a request that cannot
be planned never pays for partial execution.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .classifier import ClassificationResult, RequestClassifier
from .config import Config, get_config
from .errors import ClassificationAmbiguous
from .handlers import HandlerTable, dry_run_handler
from .orchestrator.coordinator import ExecutionCoordinator, ExecutionReport, InvokeStage
from .orchestrator.models import ExecutionPlan
from .orchestrator.planner import PlanBuilder
from .registry.registry import CapabilityRegistry, get_registry, load_registry

logger = logging.getLogger(__name__)


class OrchestrationStatus(str, Enum):
	"""Overall outcome of a request."""
	COMPLETED = "completed"
	FAILED = "failed"
	UNMATCHED = "unmatched"


EXIT_CODES = {
	OrchestrationStatus.COMPLETED: 0,
	OrchestrationStatus.FAILED: 1,
	OrchestrationStatus.UNMATCHED: 2,
}


@dataclass
class PreparedRequest:
	"""A classified and planned request, ready to execute."""
	request_text: str
	plan: ExecutionPlan
	classification: Optional[ClassificationResult] = None
	warnings: list[ClassificationAmbiguous] = field(default_factory=list)


@dataclass
class OrchestrationResult:
	"""Structured result of one request."""
	status: OrchestrationStatus
	plan: ExecutionPlan
	classification: Optional[ClassificationResult] = None
	report: Optional[ExecutionReport] = None
	warnings: list[ClassificationAmbiguous] = field(default_factory=list)

	@property
	def exit_code(self) -> int:
		return EXIT_CODES[self.status]

	def to_dict(self) -> dict:
		report = self.report
		return {
			"status": self.status.value,
			"exit_code": self.exit_code,
			"warnings": [str(w) for w in self.warnings],
			"stages": [r.to_dict() for r in report.results] if report else [],
			"not_run": list(report.not_run) if report else list(self.plan.capability_ids),
			"cancelled": report.cancelled if report else False,
		}


class Orchestrator:
	"""
	Process-level surface of the engine.

	Holds only read-only collaborators, so concurrent run() calls are
	isolated from one another.
	"""

	def __init__(
		self,
		registry: Optional[CapabilityRegistry] = None,
		config: Optional[Config] = None,
		coordinator: Optional[ExecutionCoordinator] = None,
	):
		if registry is None:
			registry = load_registry(config.registry_file) if config is not None else get_registry()
		config = config or get_config()

		self.registry = registry
		self.config = config
		self.classifier = RequestClassifier(registry, config.classification_threshold)
		self.planner = PlanBuilder(registry, config.auto_include_dependencies)
		self.coordinator = coordinator or ExecutionCoordinator()

	def classify(self, request_text: str) -> ClassificationResult:
		return self.classifier.classify(request_text)

	def prepare(self, request_text: str, capabilities: Optional[Iterable[str]] = None) -> PreparedRequest:
		"""
		Classify (unless an explicit capability list is given) and build the plan.

		Raises:
			CapabilityNotFound: an override id is not registered
			UnsatisfiableDependency: the plan cannot be built
		"""
		if capabilities is not None:
			plan = self.planner.build_plan(list(capabilities), request_text=request_text)
			return PreparedRequest(request_text=request_text, plan=plan)

		classification = self.classifier.classify(request_text)
		warnings: list[ClassificationAmbiguous] = []
		if classification.unmatched and classification.fallback:
			warning = ClassificationAmbiguous(
				f"No capability crossed threshold {classification.threshold:g}; "
				f"falling back to '{classification.fallback}'"
			)
			logger.warning(str(warning))
			warnings.append(warning)

		plan = self.planner.build_plan(classification)
		return PreparedRequest(
			request_text=request_text,
			plan=plan,
			classification=classification,
			warnings=warnings,
		)

	def plan(self, request_text: str, capabilities: Optional[Iterable[str]] = None) -> ExecutionPlan:
		return self.prepare(request_text, capabilities).plan

	async def run(
		self,
		request_text: str,
		invoke_stage: Optional[InvokeStage] = None,
		capabilities: Optional[Iterable[str]] = None,
		cancel_event: Optional[asyncio.Event] = None,
	) -> OrchestrationResult:
		"""
		Classify, plan and execute one request.

		Args:
			request_text: Free-form feature request
			invoke_stage: Handler boundary; defaults to the dry-run handler
			capabilities: Explicit capability ids, bypassing the classifier
			cancel_event: Set to halt before the next stage starts

		Returns:
			OrchestrationResult with status COMPLETED, FAILED or UNMATCHED
		"""
		prepared = self.prepare(request_text, capabilities)

		if prepared.plan.is_empty:
			logger.warning("No capability selected; nothing to execute")
			return OrchestrationResult(
				status=OrchestrationStatus.UNMATCHED,
				plan=prepared.plan,
				classification=prepared.classification,
				warnings=prepared.warnings,
			)

		if invoke_stage is None:
			invoke_stage = HandlerTable(default=dry_run_handler).invoke

		report = await self.coordinator.execute(prepared.plan, invoke_stage, cancel_event=cancel_event)
		status = OrchestrationStatus.COMPLETED if report.completed else OrchestrationStatus.FAILED
		logger.info(f"Request finished: {status.value} ({report.succeeded}/{len(prepared.plan)} stages succeeded)")

		return OrchestrationResult(
			status=status,
			plan=prepared.plan,
			classification=prepared.classification,
			report=report,
			warnings=prepared.warnings,
		)
