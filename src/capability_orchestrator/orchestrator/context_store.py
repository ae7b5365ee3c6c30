"""
Context Store - Per-request accumulator of completed stage results.

Only the coordinator running the request writes to it, once per capability.
Stages read it through a ContextView restricted to the capabilities they
declared as dependencies.
"""

import logging
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from ..errors import DuplicateResult
from .models import StageResult

logger = logging.getLogger(__name__)


class ContextView(Mapping[str, StageResult]):
	"""
	Read-only snapshot of the results a stage is allowed to see.

	Results handed out are deep copies, so a handler cannot alter what a
	later stage observes.
	"""

	def __init__(self, results: Mapping[str, StageResult], request_text: str = ""):
		self._results = MappingProxyType(dict(results))
		self.request_text = request_text

	def __getitem__(self, capability_id: str) -> StageResult:
		return self._results[capability_id].model_copy(deep=True)

	def __iter__(self) -> Iterator[str]:
		return iter(self._results)

	def __len__(self) -> int:
		return len(self._results)

	def __contains__(self, capability_id: object) -> bool:
		return capability_id in self._results

	def artifact(self, capability_id: str, default: Any = None) -> Any:
		"""Artifact produced by a visible dependency, or default."""
		if capability_id not in self._results:
			return default
		return self[capability_id].artifact

	def __repr__(self) -> str:
		return f"ContextView({list(self._results)})"


class ContextStore:
	"""Append-only mapping from capability id to its StageResult for one request."""

	def __init__(self, request_text: str = ""):
		self.request_text = request_text
		self._results: dict[str, StageResult] = {}

	def record(self, capability_id: str, result: StageResult) -> None:
		"""
		Record the result of a completed stage.

		Raises:
			DuplicateResult: the capability already has a recorded result
		"""
		if capability_id in self._results:
			raise DuplicateResult(capability_id)
		self._results[capability_id] = result.model_copy(deep=True)
		logger.debug(f"Recorded {result.status.value} result for '{capability_id}'")

	def view(self, for_capabilities: Iterable[str]) -> ContextView:
		"""Snapshot limited to the given capabilities; ids without a result are omitted."""
		visible = {cid: self._results[cid] for cid in for_capabilities if cid in self._results}
		return ContextView(visible, request_text=self.request_text)

	def has(self, capability_id: str) -> bool:
		return capability_id in self._results

	def results(self) -> list[StageResult]:
		"""All recorded results in recording order."""
		return list(self._results.values())

	def __len__(self) -> int:
		return len(self._results)
