"""Orchestrator module - Planning, context accumulation and sequential execution."""

from .context_store import ContextStore, ContextView
from .coordinator import ExecutionCoordinator, ExecutionReport, ExecutionState
from .models import ErrorKind, ExecutionPlan, Stage, StageError, StageResult, StageStatus
from .planner import PlanBuilder

__all__ = [
	"ContextStore",
	"ContextView",
	"ErrorKind",
	"ExecutionCoordinator",
	"ExecutionPlan",
	"ExecutionReport",
	"ExecutionState",
	"PlanBuilder",
	"Stage",
	"StageError",
	"StageResult",
	"StageStatus",
]
