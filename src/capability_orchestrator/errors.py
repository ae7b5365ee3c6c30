"""
Error taxonomy for the orchestration engine.

Registry errors are fatal at startup. Plan-building errors are raised eagerly,
before any stage runs. Stage-level failures are never raised; they travel as
failed StageResults inside the execution report.
"""

from typing import Optional


class OrchestratorError(Exception):
	"""Base class for all orchestration errors."""


class RegistryError(OrchestratorError):
	"""The capability table is malformed. Startup must abort."""


class DuplicateCapability(RegistryError):
	"""Two capabilities share the same id."""

	def __init__(self, capability_id: str):
		self.capability_id = capability_id
		super().__init__(f"Capability registered twice: {capability_id}")


class UnknownDependency(RegistryError):
	"""A capability depends on an id that is not registered."""

	def __init__(self, capability_id: str, dependency_id: str):
		self.capability_id = capability_id
		self.dependency_id = dependency_id
		super().__init__(
			f"Capability '{capability_id}' depends on unknown capability '{dependency_id}'"
		)


class DependencyCycle(RegistryError):
	"""The dependency graph contains a cycle."""

	def __init__(self, cycle: list[str]):
		self.cycle = cycle
		super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class RankInconsistency(RegistryError):
	"""A dependency is ranked higher than the capability depending on it."""

	def __init__(self, capability_id: str, rank: int, dependency_id: str, dependency_rank: int):
		self.capability_id = capability_id
		self.dependency_id = dependency_id
		super().__init__(
			f"Capability '{capability_id}' (rank {rank}) depends on "
			f"'{dependency_id}' with higher rank {dependency_rank}"
		)


class InvalidTrigger(RegistryError):
	"""A trigger pattern cannot be compiled or names an unknown cue."""

	def __init__(self, capability_id: str, detail: str):
		self.capability_id = capability_id
		super().__init__(f"Invalid trigger on '{capability_id}': {detail}")


class CapabilityNotFound(OrchestratorError, LookupError):
	"""Lookup of an unregistered capability id."""

	def __init__(self, capability_id: str):
		self.capability_id = capability_id
		super().__init__(f"Unknown capability: {capability_id}")


class UnsatisfiableDependency(OrchestratorError):
	"""A required capability's prerequisite cannot be placed in the plan."""

	def __init__(self, capability_id: str, dependency_id: str, reason: Optional[str] = None):
		self.capability_id = capability_id
		self.dependency_id = dependency_id
		message = f"Cannot satisfy dependency '{dependency_id}' of '{capability_id}'"
		if reason:
			message = f"{message}: {reason}"
		super().__init__(message)


class DuplicateResult(OrchestratorError):
	"""A second result was recorded for a capability within one request."""

	def __init__(self, capability_id: str):
		self.capability_id = capability_id
		super().__init__(f"Result already recorded for capability: {capability_id}")


class ReentrantExecution(OrchestratorError):
	"""A stage handler tried to start another execution."""


class HandlerLoadError(OrchestratorError):
	"""A handler path could not be imported or is not callable."""


class ClassificationAmbiguous(UserWarning):
	"""No capability crossed the confidence threshold; a best-effort fallback was used."""
