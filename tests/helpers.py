"""Shared test fixtures and helpers for capability-orchestrator tests."""

from pathlib import Path
from typing import Iterable, Optional

from capability_orchestrator.config import Config
from capability_orchestrator.orchestrator.context_store import ContextView
from capability_orchestrator.orchestrator.models import Stage, StageResult
from capability_orchestrator.registry.models import Capability, TriggerPattern
from capability_orchestrator.registry.registry import CapabilityRegistry

EXAMPLE_REQUEST = "Create an Order entity with approval workflow and email notification"


def make_capability(
	capability_id: str,
	rank: int = 0,
	depends_on: Iterable[str] = (),
	triggers: Iterable[TriggerPattern] = (),
) -> Capability:
	"""Create a Capability with a generated label."""
	return Capability(
		id=capability_id,
		label=capability_id.replace("-", " ").title(),
		rank=rank,
		depends_on=tuple(depends_on),
		triggers=tuple(triggers),
	)


def make_chain_registry() -> CapabilityRegistry:
	"""a <- b <- c, one rank apart."""
	return CapabilityRegistry([
		make_capability("a", rank=0),
		make_capability("b", rank=1, depends_on=["a"]),
		make_capability("c", rank=2, depends_on=["b"]),
	])


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temp dir so tests never touch real user dirs."""
	return Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		**overrides,
	)


class RecordingHandler:
	"""
	Stage handler that records what each stage saw.

	Capabilities in `fail` report a business failure; those in `explode`
	raise. Everything else succeeds with a small artifact.
	"""

	def __init__(self, fail: Iterable[str] = (), explode: Iterable[str] = ()):
		self.fail = set(fail)
		self.explode = set(explode)
		self.invoked: list[str] = []
		self.views: dict[str, dict[str, Optional[object]]] = {}

	async def __call__(self, stage: Stage, view: ContextView) -> StageResult:
		return await self.invoke(stage, view)

	async def invoke(self, stage: Stage, view: ContextView) -> StageResult:
		capability_id = stage.capability_id
		self.invoked.append(capability_id)
		self.views[capability_id] = {cid: view.artifact(cid) for cid in view}
		if capability_id in self.explode:
			raise RuntimeError(f"{capability_id} exploded")
		if capability_id in self.fail:
			return StageResult.failure(capability_id, f"{capability_id} rejected its input")
		return StageResult.success(capability_id, artifact={"built": capability_id})


def failing_handler(stage: Stage, view: ContextView) -> StageResult:
	"""Importable handler that fails every stage."""
	return StageResult.failure(stage.capability_id, "refusing to generate")
