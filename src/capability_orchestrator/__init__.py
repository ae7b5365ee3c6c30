"""capability-orchestrator: request classification, dependency-ordered planning and sequential stage execution."""

from .classifier import ClassificationResult, RequestClassifier
from .engine import OrchestrationResult, OrchestrationStatus, Orchestrator
from .orchestrator import (
	ContextStore,
	ContextView,
	ExecutionCoordinator,
	ExecutionPlan,
	ExecutionReport,
	PlanBuilder,
	Stage,
	StageResult,
	StageStatus,
)
from .registry import Capability, CapabilityRegistry, TriggerPattern

__all__ = [
	"Capability",
	"CapabilityRegistry",
	"ClassificationResult",
	"ContextStore",
	"ContextView",
	"ExecutionCoordinator",
	"ExecutionPlan",
	"ExecutionReport",
	"OrchestrationResult",
	"OrchestrationStatus",
	"Orchestrator",
	"PlanBuilder",
	"RequestClassifier",
	"Stage",
	"StageResult",
	"StageStatus",
	"TriggerPattern",
]
