"""
Execution Models - Pydantic schemas for plans, stages and stage results.

Plans and results are frozen once built: a plan is created once per request
and a stage result is never changed after the coordinator records it.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..registry.models import Capability


class StageStatus(str, Enum):
	"""Outcome of a single stage."""
	SUCCESS = "success"
	FAILED = "failed"
	SKIPPED = "skipped"


class ErrorKind(str, Enum):
	"""Why a stage failed."""
	STAGE_EXECUTION_FAILURE = "stage_execution_failure"  # handler reported failure
	HANDLER_FAULT = "handler_fault"  # handler raised
	CANCELLED = "cancelled"


class StageError(BaseModel):
	"""Failure detail attached to a failed stage."""
	model_config = ConfigDict(frozen=True)

	kind: ErrorKind
	message: str
	exception_type: Optional[str] = Field(default=None, description="Exception class for handler faults")


class StageResult(BaseModel):
	"""Output of executing one stage."""
	model_config = ConfigDict(frozen=True)

	capability_id: str
	status: StageStatus
	artifact: Any = Field(default=None, description="Opaque payload produced by the handler")
	error: Optional[StageError] = None
	duration_seconds: float = Field(default=0.0)

	@classmethod
	def success(cls, capability_id: str, artifact: Any = None) -> "StageResult":
		return cls(capability_id=capability_id, status=StageStatus.SUCCESS, artifact=artifact)

	@classmethod
	def failure(
		cls,
		capability_id: str,
		message: str,
		kind: ErrorKind = ErrorKind.STAGE_EXECUTION_FAILURE,
		exception_type: Optional[str] = None,
	) -> "StageResult":
		return cls(
			capability_id=capability_id,
			status=StageStatus.FAILED,
			error=StageError(kind=kind, message=message, exception_type=exception_type),
		)

	@classmethod
	def skipped(cls, capability_id: str, reason: str = "") -> "StageResult":
		return cls(capability_id=capability_id, status=StageStatus.SKIPPED, artifact={"reason": reason} if reason else None)

	@property
	def failed(self) -> bool:
		return self.status == StageStatus.FAILED

	def to_dict(self) -> dict:
		"""Flattened form: {capability_id, status, artifact | error}."""
		data: dict[str, Any] = {
			"capability_id": self.capability_id,
			"status": self.status.value,
		}
		if self.error is not None:
			data["error"] = {"kind": self.error.kind.value, "message": self.error.message}
		else:
			data["artifact"] = self.artifact
		return data


class Stage(BaseModel):
	"""One scheduled invocation of a single capability."""
	model_config = ConfigDict(frozen=True)

	index: int = Field(ge=0)
	capability: Capability
	depends_on: tuple[str, ...] = Field(default=(), description="Declared dependency capability ids")
	dependency_indices: tuple[int, ...] = Field(default=(), description="Indices of the stages providing them")
	auto_included: bool = Field(default=False, description="Added by dependency closure, not requested")

	@property
	def capability_id(self) -> str:
		return self.capability.id


class ExecutionPlan(BaseModel):
	"""The full ordered sequence of stages for one request."""
	model_config = ConfigDict(frozen=True)

	request_text: str = ""
	stages: tuple[Stage, ...] = ()
	auto_included: tuple[str, ...] = Field(default=(), description="Capability ids added as prerequisites")

	@property
	def capability_ids(self) -> tuple[str, ...]:
		return tuple(s.capability_id for s in self.stages)

	@property
	def is_empty(self) -> bool:
		return not self.stages

	def __len__(self) -> int:
		return len(self.stages)

	def stage_for(self, capability_id: str) -> Optional[Stage]:
		for stage in self.stages:
			if stage.capability_id == capability_id:
				return stage
		return None

	def to_dict(self) -> dict:
		return {
			"request_text": self.request_text,
			"stages": [
				{
					"index": s.index,
					"capability_id": s.capability_id,
					"rank": s.capability.rank,
					"depends_on": list(s.depends_on),
					"dependency_indices": list(s.dependency_indices),
					"auto_included": s.auto_included,
				}
				for s in self.stages
			],
			"auto_included": list(self.auto_included),
		}
