"""
Coordinator - Drives sequential stage execution for one request.

Stages run strictly one at a time in plan order. Each stage sees only the
results of the capabilities it declared as dependencies. The first failed
stage halts the plan; everything completed before it is kept in the report
so the caller can diagnose or resume. There is no retry.
"""

import asyncio
import contextvars
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from ..errors import ReentrantExecution
from .context_store import ContextStore, ContextView
from .models import ErrorKind, ExecutionPlan, Stage, StageResult, StageStatus

logger = logging.getLogger(__name__)

InvokeStage = Callable[[Stage, ContextView], Union[StageResult, Awaitable[StageResult]]]
StageCallback = Callable[[Stage, StageResult], Awaitable[None]]

_inside_stage: contextvars.ContextVar[bool] = contextvars.ContextVar("inside_stage", default=False)


class ExecutionState(str, Enum):
	"""Lifecycle of one request's execution."""
	PENDING = "pending"
	RUNNING = "running"
	COMPLETED = "completed"
	FAILED = "failed"


@dataclass
class ExecutionReport:
	"""
	Aggregated outcome of executing a plan.

	`results` holds every attempted stage in order, including the failed one.
	When execution was cancelled, `failure` carries a synthetic cancelled
	result for the first stage that did not start.
	"""
	state: ExecutionState = ExecutionState.PENDING
	results: list[StageResult] = field(default_factory=list)
	failure: Optional[StageResult] = None
	not_run: list[str] = field(default_factory=list)
	cancelled: bool = False

	@property
	def succeeded(self) -> int:
		return sum(1 for r in self.results if r.status == StageStatus.SUCCESS)

	@property
	def failed(self) -> int:
		return sum(1 for r in self.results if r.status == StageStatus.FAILED)

	@property
	def completed(self) -> bool:
		return self.state == ExecutionState.COMPLETED

	def to_dict(self) -> dict:
		return {
			"state": self.state.value,
			"stages": [r.to_dict() for r in self.results],
			"failure": self.failure.to_dict() if self.failure else None,
			"not_run": list(self.not_run),
			"cancelled": self.cancelled,
		}


class ExecutionCoordinator:
	"""
	Executes plans stage by stage.

	Holds no per-request state, so one coordinator can serve many concurrent
	requests; each call to execute() gets its own ContextStore.
	"""

	def __init__(self, on_stage_complete: Optional[StageCallback] = None):
		"""
		Initialize the coordinator.

		Args:
			on_stage_complete: Optional async callback(stage, result) after each attempted stage
		"""
		self.on_stage_complete = on_stage_complete

	async def execute(
		self,
		plan: ExecutionPlan,
		invoke_stage: InvokeStage,
		cancel_event: Optional[asyncio.Event] = None,
	) -> ExecutionReport:
		"""
		Execute a plan.

		Args:
			plan: The plan to run
			invoke_stage: Handler boundary; sync handlers run in a worker thread
			cancel_event: When set, execution halts before the next stage starts.
				A stage already running is always allowed to finish.

		Cancelling the calling task (e.g. asyncio.wait_for or asyncio.timeout)
		behaves like setting cancel_event: the running stage finishes and a
		cancelled report is returned instead of CancelledError.

		Returns:
			ExecutionReport, COMPLETED or FAILED
		"""
		if _inside_stage.get():
			raise ReentrantExecution("Stage handlers may not start another execution")

		store = ContextStore(plan.request_text)
		report = ExecutionReport()
		report.state = ExecutionState.RUNNING
		logger.info(f"Executing plan with {len(plan)} stages")

		cancel_requested = False
		for position, stage in enumerate(plan.stages):
			if cancel_requested or (cancel_event is not None and cancel_event.is_set()):
				report.cancelled = True
				report.failure = StageResult.failure(
					stage.capability_id,
					"Execution cancelled before stage started",
					kind=ErrorKind.CANCELLED,
				)
				report.not_run = [s.capability_id for s in plan.stages[position:]]
				report.state = ExecutionState.FAILED
				logger.warning(f"Execution cancelled; {len(report.not_run)} stages not run")
				return report

			view = store.view(stage.depends_on)
			logger.info(f"Stage {stage.index} '{stage.capability_id}' started")
			result, interrupted = await self._run_to_completion(stage, view, invoke_stage)
			if interrupted:
				cancel_requested = True
				report.cancelled = True
			report.results.append(result)
			await self._notify(stage, result)

			if result.failed:
				report.failure = result
				report.not_run = [s.capability_id for s in plan.stages[position + 1:]]
				report.state = ExecutionState.FAILED
				logger.warning(
					f"Stage {stage.index} '{stage.capability_id}' failed "
					f"({result.error.kind.value}): {result.error.message}; "
					f"halting with {len(report.not_run)} stages not run"
				)
				return report

			store.record(stage.capability_id, result)
			logger.info(
				f"Stage {stage.index} '{stage.capability_id}' finished "
				f"({result.status.value}, {result.duration_seconds:.3f}s)"
			)

		report.state = ExecutionState.COMPLETED
		return report

	async def _run_to_completion(
		self,
		stage: Stage,
		view: ContextView,
		invoke_stage: InvokeStage,
	) -> tuple[StageResult, bool]:
		"""
		Run one stage so that cancelling the calling task cannot interrupt it.

		Returns the result and whether a cancellation arrived while the stage ran.
		"""
		invocation = asyncio.ensure_future(self._invoke(stage, view, invoke_stage))
		interrupted = False
		while True:
			try:
				result = await asyncio.shield(invocation)
				return result, interrupted
			except asyncio.CancelledError:
				if invocation.cancelled():
					raise
				if not interrupted:
					logger.warning(f"Cancellation requested during stage '{stage.capability_id}'; letting it finish")
				interrupted = True

	async def _invoke(self, stage: Stage, view: ContextView, invoke_stage: InvokeStage) -> StageResult:
		"""Run one handler. Exceptions become handler-fault results."""
		token = _inside_stage.set(True)
		start = time.monotonic()
		try:
			if inspect.iscoroutinefunction(invoke_stage):
				result = await invoke_stage(stage, view)
			else:
				result = await asyncio.to_thread(invoke_stage, stage, view)
				if inspect.isawaitable(result):
					result = await result
		except Exception as exc:
			logger.exception(f"Handler fault in stage '{stage.capability_id}'")
			result = StageResult.failure(
				stage.capability_id,
				f"{type(exc).__name__}: {exc}",
				kind=ErrorKind.HANDLER_FAULT,
				exception_type=type(exc).__name__,
			)
		finally:
			_inside_stage.reset(token)
		duration = round(time.monotonic() - start, 4)

		if not isinstance(result, StageResult):
			logger.error(f"Handler for '{stage.capability_id}' returned {type(result).__name__}, not StageResult")
			result = StageResult.failure(
				stage.capability_id,
				f"Handler returned {type(result).__name__} instead of StageResult",
				kind=ErrorKind.HANDLER_FAULT,
			)
		elif result.capability_id != stage.capability_id:
			logger.error(
				f"Handler for '{stage.capability_id}' returned a result for '{result.capability_id}'"
			)
			result = StageResult.failure(
				stage.capability_id,
				f"Handler returned a result for '{result.capability_id}'",
				kind=ErrorKind.HANDLER_FAULT,
			)
		elif result.failed and result.error is None:
			result = StageResult.failure(stage.capability_id, "Handler reported failure without detail")

		# Results are detached from the handler before anyone else sees them
		try:
			return result.model_copy(update={"duration_seconds": duration}, deep=True)
		except Exception as exc:
			logger.error(f"Result of stage '{stage.capability_id}' cannot be copied: {exc}")
			failure = StageResult.failure(
				stage.capability_id,
				f"Stage result cannot be copied ({type(exc).__name__}: {exc})",
				kind=ErrorKind.HANDLER_FAULT,
				exception_type=type(exc).__name__,
			)
			return failure.model_copy(update={"duration_seconds": duration})

	async def _notify(self, stage: Stage, result: StageResult) -> None:
		if self.on_stage_complete is None:
			return
		try:
			await self.on_stage_complete(stage, result)
		except Exception as e:
			logger.warning(f"on_stage_complete callback failed for '{stage.capability_id}': {e}")
