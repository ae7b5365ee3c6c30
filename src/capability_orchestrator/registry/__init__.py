"""Registry module - The validated capability table."""

from .defaults import DEFAULT_CAPABILITIES
from .models import Capability, TriggerKind, TriggerPattern
from .registry import CapabilityRegistry, get_registry, load_registry

__all__ = [
	"Capability",
	"CapabilityRegistry",
	"DEFAULT_CAPABILITIES",
	"TriggerKind",
	"TriggerPattern",
	"get_registry",
	"load_registry",
]
