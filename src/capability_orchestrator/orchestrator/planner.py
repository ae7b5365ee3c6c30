"""
Planner - Turns a set of required capabilities into an ordered execution plan.

Prerequisites are always pulled in (transitive closure over declared
dependencies), then the set is sorted topologically. Among capabilities with
no ordering constraint between them the tie-breaks are, in order: layer rank
ascending, classifier confidence order, registration order. The result is
fully deterministic for a given required set and confidence order.
"""

import heapq
import logging
from typing import Iterable, Optional, Sequence, Union

from ..classifier import ClassificationResult
from ..errors import DependencyCycle, UnsatisfiableDependency
from ..registry.registry import CapabilityRegistry
from .models import ExecutionPlan, Stage

logger = logging.getLogger(__name__)


class PlanBuilder:
	"""
	Builds ExecutionPlans against a validated registry.

	With auto_include_dependencies disabled (strict mode), a prerequisite
	missing from the required set raises UnsatisfiableDependency instead of
	being added.
	"""

	def __init__(self, registry: CapabilityRegistry, auto_include_dependencies: bool = True):
		self.registry = registry
		self.auto_include_dependencies = auto_include_dependencies

	def build_plan(
		self,
		required: Union[ClassificationResult, Iterable[str]],
		request_text: str = "",
		confidence_order: Optional[Sequence[str]] = None,
	) -> ExecutionPlan:
		"""
		Build the plan for a required capability set.

		Args:
			required: Capability ids, or a ClassificationResult whose
				confidence order is used as the final tie-break
			request_text: The originating request, carried on the plan
			confidence_order: Optional classifier order for tie-breaking;
				without it, registration order decides

		Returns:
			ExecutionPlan with every dependency at an earlier index

		Raises:
			CapabilityNotFound: a required id is not registered
			UnsatisfiableDependency: a prerequisite cannot be placed
		"""
		if isinstance(required, ClassificationResult):
			request_text = request_text or required.request_text
			if confidence_order is None:
				confidence_order = required.capabilities
			required = required.capabilities

		requested: set[str] = set()
		for capability_id in required:
			self.registry.lookup(capability_id)
			requested.add(capability_id)

		selected, auto_included = self._close_over_dependencies(requested)
		ordered = self._sort(selected, confidence_order)

		index_of = {cid: i for i, cid in enumerate(ordered)}
		stages = []
		for i, capability_id in enumerate(ordered):
			capability = self.registry.lookup(capability_id)
			stages.append(Stage(
				index=i,
				capability=capability,
				depends_on=capability.depends_on,
				dependency_indices=tuple(sorted(index_of[d] for d in capability.depends_on)),
				auto_included=capability_id in auto_included,
			))

		plan = ExecutionPlan(
			request_text=request_text,
			stages=tuple(stages),
			auto_included=tuple(cid for cid in ordered if cid in auto_included),
		)
		logger.info(
			f"Built plan with {len(plan)} stages: {list(plan.capability_ids)}"
			+ (f" (auto-included {list(plan.auto_included)})" if plan.auto_included else "")
		)
		return plan

	def _close_over_dependencies(self, requested: set[str]) -> tuple[set[str], set[str]]:
		"""Return (selected, auto_included) after adding every transitive prerequisite."""
		selected = set(requested)
		auto_included: set[str] = set()
		# Registry order keeps error reporting stable
		pending = sorted(requested, key=self.registry.position)

		while pending:
			capability_id = pending.pop(0)
			for dep_id in self.registry.lookup(capability_id).depends_on:
				if dep_id in selected:
					continue
				if dep_id not in self.registry:
					raise UnsatisfiableDependency(capability_id, dep_id, "not registered")
				if not self.auto_include_dependencies:
					raise UnsatisfiableDependency(
						capability_id, dep_id,
						"not in the required set and automatic inclusion is disabled",
					)
				logger.debug(f"Auto-including '{dep_id}' as prerequisite of '{capability_id}'")
				selected.add(dep_id)
				auto_included.add(dep_id)
				pending.append(dep_id)

		return selected, auto_included

	def _sort(self, selected: set[str], confidence_order: Optional[Sequence[str]]) -> list[str]:
		"""Kahn's algorithm with a priority queue for the tie-breaks."""
		confidence_position: dict[str, int] = {}
		if confidence_order is not None:
			for i, capability_id in enumerate(confidence_order):
				confidence_position.setdefault(capability_id, i)
		unranked = len(confidence_position)

		def sort_key(capability_id: str) -> tuple:
			capability = self.registry.lookup(capability_id)
			return (
				capability.rank,
				confidence_position.get(capability_id, unranked),
				self.registry.position(capability_id),
				capability_id,
			)

		waiting_on: dict[str, int] = {}
		dependents: dict[str, list[str]] = {cid: [] for cid in selected}
		for capability_id in selected:
			deps = [d for d in self.registry.lookup(capability_id).depends_on if d in selected]
			waiting_on[capability_id] = len(deps)
			for dep_id in deps:
				dependents[dep_id].append(capability_id)

		ready = [sort_key(cid) for cid, count in waiting_on.items() if count == 0]
		heapq.heapify(ready)

		ordered: list[str] = []
		while ready:
			capability_id = heapq.heappop(ready)[-1]
			ordered.append(capability_id)
			for dependent in dependents[capability_id]:
				waiting_on[dependent] -= 1
				if waiting_on[dependent] == 0:
					heapq.heappush(ready, sort_key(dependent))

		if len(ordered) != len(selected):
			# Unreachable with a validated registry
			raise DependencyCycle(sorted(selected - set(ordered)))

		return ordered
