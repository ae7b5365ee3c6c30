"""
Capability Registry - The validated, read-only table of capability handlers.

The table is checked exactly once, when the registry is built: every
dependency must be registered, the dependency graph must be acyclic, ranks must
never decrease along a dependency edge, and every trigger must compile.
Everything downstream trusts these checks.
"""

import logging
import re
import tomllib
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Optional

from pydantic import ValidationError

from ..errors import (
	CapabilityNotFound,
	DependencyCycle,
	DuplicateCapability,
	InvalidTrigger,
	RankInconsistency,
	RegistryError,
	UnknownDependency,
)
from .cues import is_known_cue
from .defaults import DEFAULT_CAPABILITIES
from .models import Capability, TriggerKind

logger = logging.getLogger(__name__)


class CapabilityRegistry:
	"""
	Immutable table of capabilities in registration order.

	Safe to share between concurrent requests: nothing mutates it after
	construction.
	"""

	def __init__(self, capabilities: Iterable[Capability]):
		ordered = tuple(capabilities)
		by_id: dict[str, Capability] = {}
		for capability in ordered:
			if capability.id in by_id:
				raise DuplicateCapability(capability.id)
			by_id[capability.id] = capability

		self._ordered = ordered
		self._by_id = MappingProxyType(by_id)
		self._positions = MappingProxyType({c.id: i for i, c in enumerate(ordered)})

		self._validate()
		logger.debug(f"Capability registry ready with {len(ordered)} capabilities")

	@classmethod
	def default(cls) -> "CapabilityRegistry":
		"""Registry built from the built-in capability table."""
		return cls(DEFAULT_CAPABILITIES)

	@classmethod
	def from_toml(cls, path: Path) -> "CapabilityRegistry":
		"""
		Load a registry from a TOML file.

		Expected layout:

			[[capability]]
			id = "data-modeling"
			label = "Data modeling"
			rank = 0
			depends_on = []

			[[capability.trigger]]
			kind = "keyword"
			value = "entity"
			weight = 2.0
		"""
		try:
			with open(path, "rb") as f:
				data = tomllib.load(f)
		except (OSError, tomllib.TOMLDecodeError) as e:
			raise RegistryError(f"Cannot read registry file {path}: {e}") from e

		capabilities = []
		for entry in data.get("capability", []):
			entry = dict(entry)
			entry["triggers"] = entry.pop("trigger", [])
			try:
				capabilities.append(Capability.model_validate(entry))
			except ValidationError as e:
				raise RegistryError(f"Invalid capability in {path}: {e}") from e

		if not capabilities:
			raise RegistryError(f"Registry file {path} defines no capabilities")

		logger.info(f"Loaded {len(capabilities)} capabilities from {path}")
		return cls(capabilities)

	# ------------------------------------------------------------------
	# Lookup
	# ------------------------------------------------------------------

	def lookup(self, capability_id: str) -> Capability:
		"""Return the capability with this id, or raise CapabilityNotFound."""
		try:
			return self._by_id[capability_id]
		except KeyError:
			raise CapabilityNotFound(capability_id) from None

	def all(self) -> tuple[Capability, ...]:
		"""All capabilities in registration order."""
		return self._ordered

	def position(self, capability_id: str) -> int:
		"""Registration index of a capability."""
		try:
			return self._positions[capability_id]
		except KeyError:
			raise CapabilityNotFound(capability_id) from None

	def ids(self) -> tuple[str, ...]:
		return tuple(c.id for c in self._ordered)

	def __contains__(self, capability_id: object) -> bool:
		return capability_id in self._by_id

	def __iter__(self) -> Iterator[Capability]:
		return iter(self._ordered)

	def __len__(self) -> int:
		return len(self._ordered)

	# ------------------------------------------------------------------
	# Validation
	# ------------------------------------------------------------------

	def _validate(self) -> None:
		for capability in self._ordered:
			for dep_id in capability.depends_on:
				if dep_id not in self._by_id:
					raise UnknownDependency(capability.id, dep_id)
			self._validate_triggers(capability)

		self._check_cycles()

		for capability in self._ordered:
			for dep_id in capability.depends_on:
				dep = self._by_id[dep_id]
				if dep.rank > capability.rank:
					raise RankInconsistency(capability.id, capability.rank, dep.id, dep.rank)

	def _validate_triggers(self, capability: Capability) -> None:
		for trigger in capability.triggers:
			if trigger.kind == TriggerKind.CUE and not is_known_cue(trigger.value):
				raise InvalidTrigger(capability.id, f"unknown cue '{trigger.value}'")
			if trigger.kind == TriggerKind.REGEX:
				try:
					re.compile(trigger.value)
				except re.error as e:
					raise InvalidTrigger(capability.id, f"bad regex '{trigger.value}': {e}") from e

	def _check_cycles(self) -> None:
		"""Depth-first search; raises DependencyCycle with the offending path."""
		visiting: list[str] = []
		done: set[str] = set()

		def visit(capability_id: str) -> None:
			if capability_id in done:
				return
			if capability_id in visiting:
				start = visiting.index(capability_id)
				raise DependencyCycle(visiting[start:] + [capability_id])
			visiting.append(capability_id)
			for dep_id in self._by_id[capability_id].depends_on:
				visit(dep_id)
			visiting.pop()
			done.add(capability_id)

		for capability in self._ordered:
			visit(capability.id)


# Process-wide registry, built once
_registry: Optional[CapabilityRegistry] = None


def load_registry(registry_file: Optional[Path] = None) -> CapabilityRegistry:
	"""Build a registry from a file if given, else from the built-in table."""
	if registry_file is not None:
		return CapabilityRegistry.from_toml(registry_file)
	return CapabilityRegistry.default()


def get_registry() -> CapabilityRegistry:
	"""Get or create the global registry instance."""
	global _registry
	if _registry is None:
		from ..config import get_config
		_registry = load_registry(get_config().registry_file)
	return _registry
