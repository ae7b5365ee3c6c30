"""Tests for the execution coordinator."""

import asyncio
import threading

import pytest

from capability_orchestrator.errors import ReentrantExecution
from capability_orchestrator.orchestrator.coordinator import ExecutionCoordinator, ExecutionState
from capability_orchestrator.orchestrator.models import ErrorKind, ExecutionPlan, StageResult, StageStatus
from capability_orchestrator.orchestrator.planner import PlanBuilder
from capability_orchestrator.registry.registry import CapabilityRegistry

from .helpers import EXAMPLE_REQUEST, RecordingHandler, make_chain_registry


@pytest.fixture
def chain_plan() -> ExecutionPlan:
	return PlanBuilder(make_chain_registry()).build_plan(["c"], request_text="chain")


@pytest.fixture
def default_plan() -> ExecutionPlan:
	"""data-modeling, persistence-integration, workflow-orchestration, http-surface, ui-surface."""
	return PlanBuilder(CapabilityRegistry.default()).build_plan(
		["persistence-integration", "workflow-orchestration", "ui-surface"],
		request_text=EXAMPLE_REQUEST,
	)


class TestSequentialExecution:
	"""Happy path."""

	@pytest.mark.asyncio
	async def test_all_stages_succeed(self, chain_plan: ExecutionPlan):
		handler = RecordingHandler()
		report = await ExecutionCoordinator().execute(chain_plan, handler)

		assert report.state == ExecutionState.COMPLETED
		assert report.completed
		assert handler.invoked == ["a", "b", "c"]
		assert [r.capability_id for r in report.results] == ["a", "b", "c"]
		assert report.succeeded == 3
		assert report.failure is None
		assert report.not_run == []

	@pytest.mark.asyncio
	async def test_empty_plan_completes(self):
		report = await ExecutionCoordinator().execute(ExecutionPlan(), RecordingHandler())
		assert report.completed
		assert report.results == []

	@pytest.mark.asyncio
	async def test_stages_see_only_declared_dependencies(self, default_plan: ExecutionPlan):
		handler = RecordingHandler()
		await ExecutionCoordinator().execute(default_plan, handler)

		assert handler.views["data-modeling"] == {}
		assert handler.views["persistence-integration"] == {"data-modeling": {"built": "data-modeling"}}
		assert handler.views["workflow-orchestration"] == {"data-modeling": {"built": "data-modeling"}}
		# ui-surface declares only http-surface, not its transitive prerequisite
		assert handler.views["ui-surface"] == {"http-surface": {"built": "http-surface"}}

	@pytest.mark.asyncio
	async def test_stages_run_one_at_a_time(self, default_plan: ExecutionPlan):
		running = 0
		peak = 0

		async def handler(stage, view):
			nonlocal running, peak
			running += 1
			peak = max(peak, running)
			await asyncio.sleep(0)
			running -= 1
			return StageResult.success(stage.capability_id)

		report = await ExecutionCoordinator().execute(default_plan, handler)
		assert report.completed
		assert peak == 1

	@pytest.mark.asyncio
	async def test_sync_handler_runs_in_worker_thread(self, chain_plan: ExecutionPlan):
		threads = set()

		def handler(stage, view):
			threads.add(threading.get_ident())
			return StageResult.success(stage.capability_id, artifact=stage.index)

		report = await ExecutionCoordinator().execute(chain_plan, handler)
		assert report.completed
		assert threading.get_ident() not in threads
		assert [r.artifact for r in report.results] == [0, 1, 2]

	@pytest.mark.asyncio
	async def test_skipped_stage_does_not_halt(self, chain_plan: ExecutionPlan):
		async def handler(stage, view):
			if stage.capability_id == "b":
				return StageResult.skipped("b", reason="already exists")
			return StageResult.success(stage.capability_id)

		report = await ExecutionCoordinator().execute(chain_plan, handler)
		assert report.completed
		assert report.results[1].status == StageStatus.SKIPPED
		assert report.succeeded == 2

	@pytest.mark.asyncio
	async def test_durations_recorded(self, chain_plan: ExecutionPlan):
		report = await ExecutionCoordinator().execute(chain_plan, RecordingHandler())
		assert all(r.duration_seconds >= 0 for r in report.results)


class TestFailureHalting:
	"""The first failed stage halts the plan."""

	@pytest.mark.asyncio
	async def test_business_failure_halts(self, default_plan: ExecutionPlan):
		handler = RecordingHandler(fail=["workflow-orchestration"])
		report = await ExecutionCoordinator().execute(default_plan, handler)

		assert report.state == ExecutionState.FAILED
		assert handler.invoked == ["data-modeling", "persistence-integration", "workflow-orchestration"]
		assert report.succeeded == 2
		assert report.failed == 1
		assert report.failure.capability_id == "workflow-orchestration"
		assert report.failure.error.kind == ErrorKind.STAGE_EXECUTION_FAILURE
		assert report.not_run == ["http-surface", "ui-surface"]

	@pytest.mark.asyncio
	async def test_middle_stage_failure(self, chain_plan: ExecutionPlan):
		"""Stage 2 of 3 fails: one success, one failure, stage 3 never invoked."""
		handler = RecordingHandler(fail=["b"])
		report = await ExecutionCoordinator().execute(chain_plan, handler)

		assert [r.status for r in report.results] == [StageStatus.SUCCESS, StageStatus.FAILED]
		assert "c" not in handler.invoked
		assert report.not_run == ["c"]

	@pytest.mark.asyncio
	async def test_completed_results_are_kept(self, chain_plan: ExecutionPlan):
		report = await ExecutionCoordinator().execute(chain_plan, RecordingHandler(fail=["c"]))
		assert [r.artifact for r in report.results[:2]] == [{"built": "a"}, {"built": "b"}]

	@pytest.mark.asyncio
	async def test_exception_becomes_handler_fault(self, chain_plan: ExecutionPlan):
		handler = RecordingHandler(explode=["a"])
		report = await ExecutionCoordinator().execute(chain_plan, handler)

		assert handler.invoked == ["a"]
		assert report.failure.error.kind == ErrorKind.HANDLER_FAULT
		assert report.failure.error.exception_type == "RuntimeError"
		assert "a exploded" in report.failure.error.message
		assert report.not_run == ["b", "c"]

	@pytest.mark.asyncio
	async def test_non_result_return_is_a_fault(self, chain_plan: ExecutionPlan):
		async def handler(stage, view):
			return {"not": "a result"}

		report = await ExecutionCoordinator().execute(chain_plan, handler)
		assert report.failure.capability_id == "a"
		assert report.failure.error.kind == ErrorKind.HANDLER_FAULT

	@pytest.mark.asyncio
	async def test_result_for_wrong_capability_is_a_fault(self, chain_plan: ExecutionPlan):
		async def handler(stage, view):
			return StageResult.success("somebody-else")

		report = await ExecutionCoordinator().execute(chain_plan, handler)
		assert report.failure.capability_id == "a"
		assert report.failure.error.kind == ErrorKind.HANDLER_FAULT

	@pytest.mark.asyncio
	async def test_uncopyable_artifact_is_a_fault(self, chain_plan: ExecutionPlan):
		"""Earlier results survive a stage whose artifact cannot be copied."""
		async def handler(stage, view):
			if stage.capability_id == "b":
				return StageResult.success("b", artifact={"rows": (i for i in range(3))})
			return StageResult.success(stage.capability_id, artifact={"built": stage.capability_id})

		report = await ExecutionCoordinator().execute(chain_plan, handler)

		assert report.state == ExecutionState.FAILED
		assert report.results[0].artifact == {"built": "a"}
		assert report.failure.capability_id == "b"
		assert report.failure.error.kind == ErrorKind.HANDLER_FAULT
		assert report.failure.error.exception_type == "TypeError"
		assert report.not_run == ["c"]

	@pytest.mark.asyncio
	async def test_failure_without_detail_gets_generic_error(self, chain_plan: ExecutionPlan):
		async def handler(stage, view):
			return StageResult(capability_id=stage.capability_id, status=StageStatus.FAILED)

		report = await ExecutionCoordinator().execute(chain_plan, handler)
		assert report.failure.error.kind == ErrorKind.STAGE_EXECUTION_FAILURE


class TestCancellation:
	"""Cooperative cancellation between stages."""

	@pytest.mark.asyncio
	async def test_cancelled_before_start(self, chain_plan: ExecutionPlan):
		cancel = asyncio.Event()
		cancel.set()
		handler = RecordingHandler()

		report = await ExecutionCoordinator().execute(chain_plan, handler, cancel_event=cancel)

		assert handler.invoked == []
		assert report.cancelled
		assert report.state == ExecutionState.FAILED
		assert report.failure.error.kind == ErrorKind.CANCELLED
		assert report.not_run == ["a", "b", "c"]

	@pytest.mark.asyncio
	async def test_running_stage_finishes_then_halts(self, chain_plan: ExecutionPlan):
		"""Cancelling during a stage lets it finish; the next stage never starts."""
		cancel = asyncio.Event()

		async def handler(stage, view):
			if stage.capability_id == "b":
				cancel.set()
			return StageResult.success(stage.capability_id)

		report = await ExecutionCoordinator().execute(chain_plan, handler, cancel_event=cancel)

		assert report.cancelled
		assert [r.capability_id for r in report.results] == ["a", "b"]
		assert report.succeeded == 2
		assert report.failure.capability_id == "c"
		assert report.not_run == ["c"]


	@pytest.mark.asyncio
	async def test_wait_for_timeout_lets_running_stage_finish(self, chain_plan: ExecutionPlan):
		"""A caller-side timeout stops the plan without losing finished stages."""
		finished = []

		async def handler(stage, view):
			await asyncio.sleep(0.1)
			finished.append(stage.capability_id)
			return StageResult.success(stage.capability_id, artifact=stage.index)

		report = await asyncio.wait_for(ExecutionCoordinator().execute(chain_plan, handler), 0.15)

		assert finished == ["a", "b"]
		assert report.cancelled
		assert report.state == ExecutionState.FAILED
		assert [r.artifact for r in report.results] == [0, 1]
		assert report.failure.capability_id == "c"
		assert report.failure.error.kind == ErrorKind.CANCELLED
		assert report.not_run == ["c"]

	@pytest.mark.asyncio
	async def test_task_cancel_returns_report(self, chain_plan: ExecutionPlan):
		"""Cancelling the task running execute() yields a cancelled report."""
		b_started = asyncio.Event()
		release = asyncio.Event()

		async def handler(stage, view):
			if stage.capability_id == "b":
				b_started.set()
				await release.wait()
			return StageResult.success(stage.capability_id)

		task = asyncio.create_task(ExecutionCoordinator().execute(chain_plan, handler))
		await b_started.wait()
		task.cancel()
		await asyncio.sleep(0)
		release.set()
		report = await task

		assert report.cancelled
		assert [r.capability_id for r in report.results] == ["a", "b"]
		assert report.succeeded == 2
		assert report.not_run == ["c"]


class TestCallbacks:
	"""on_stage_complete notifications."""

	@pytest.mark.asyncio
	async def test_callback_sees_every_attempted_stage(self, chain_plan: ExecutionPlan):
		seen = []

		async def on_complete(stage, result):
			seen.append((stage.capability_id, result.status))

		coordinator = ExecutionCoordinator(on_stage_complete=on_complete)
		await coordinator.execute(chain_plan, RecordingHandler(fail=["b"]))

		assert seen == [("a", StageStatus.SUCCESS), ("b", StageStatus.FAILED)]

	@pytest.mark.asyncio
	async def test_callback_errors_do_not_abort(self, chain_plan: ExecutionPlan):
		async def on_complete(stage, result):
			raise RuntimeError("display broke")

		coordinator = ExecutionCoordinator(on_stage_complete=on_complete)
		report = await coordinator.execute(chain_plan, RecordingHandler())
		assert report.completed


class TestIsolation:
	"""Independent requests never share state."""

	@pytest.mark.asyncio
	async def test_concurrent_requests_are_isolated(self):
		builder = PlanBuilder(make_chain_registry())
		coordinator = ExecutionCoordinator()

		async def handler(stage, view):
			await asyncio.sleep(0)
			upstream = [view.artifact(cid) for cid in view]
			return StageResult.success(stage.capability_id, artifact={"request": view.request_text, "upstream": upstream})

		plans = [builder.build_plan(["c"], request_text=f"request-{i}") for i in range(5)]
		reports = await asyncio.gather(*(coordinator.execute(p, handler) for p in plans))

		for i, report in enumerate(reports):
			assert report.completed
			last = report.results[-1].artifact
			assert last["request"] == f"request-{i}"
			assert last["upstream"][0]["request"] == f"request-{i}"

	@pytest.mark.asyncio
	async def test_handler_cannot_start_nested_execution(self, chain_plan: ExecutionPlan):
		coordinator = ExecutionCoordinator()

		async def handler(stage, view):
			await coordinator.execute(chain_plan, RecordingHandler())
			return StageResult.success(stage.capability_id)

		report = await coordinator.execute(chain_plan, handler)
		assert report.failure.error.kind == ErrorKind.HANDLER_FAULT
		assert report.failure.error.exception_type == ReentrantExecution.__name__

	@pytest.mark.asyncio
	async def test_report_serializes(self, chain_plan: ExecutionPlan):
		report = await ExecutionCoordinator().execute(chain_plan, RecordingHandler(fail=["b"]))
		data = report.to_dict()
		assert data["state"] == "failed"
		assert data["stages"][0] == {"capability_id": "a", "status": "success", "artifact": {"built": "a"}}
		assert data["failure"]["error"]["kind"] == "stage_execution_failure"
		assert data["not_run"] == ["c"]
		assert data["cancelled"] is False
