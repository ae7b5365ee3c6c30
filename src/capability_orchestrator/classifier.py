"""Request classifier - maps a free-form feature request to required capabilities."""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .registry.cues import STRUCTURAL_CUES
from .registry.models import Capability, TriggerKind, TriggerPattern
from .registry.registry import CapabilityRegistry

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 1.0


@dataclass(frozen=True)
class Match:
	"""One trigger that fired for a capability."""
	trigger: TriggerPattern
	matched_text: str


@dataclass(frozen=True)
class ClassificationResult:
	"""
	Outcome of classifying one request.

	`capabilities` is in confidence order: descending score, ties broken by
	ascending layer rank, then registration order. When nothing crossed the
	threshold, `unmatched` is set and `capabilities` holds at most the single
	best-effort fallback.
	"""
	request_text: str
	capabilities: tuple[str, ...]
	unmatched: bool
	threshold: float
	scores: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}), hash=False)
	evidence: Mapping[str, tuple[Match, ...]] = field(default_factory=lambda: MappingProxyType({}), hash=False)
	fallback: Optional[str] = None

	@property
	def is_empty(self) -> bool:
		return not self.capabilities

	def explain(self) -> list[str]:
		"""Human readable lines describing why each capability was selected."""
		lines = []
		for capability_id in self.capabilities:
			matches = self.evidence.get(capability_id, ())
			triggers = ", ".join(f"{m.trigger.label} ({m.matched_text!r}, +{m.trigger.weight:g})" for m in matches)
			suffix = " [fallback]" if capability_id == self.fallback else ""
			lines.append(f"{capability_id}: score {self.scores.get(capability_id, 0.0):g}{suffix} <- {triggers}")
		if self.unmatched and not self.capabilities:
			lines.append(f"No capability scored above zero (threshold {self.threshold:g})")
		return lines


class RequestClassifier:
	"""
	Scores request text against each capability's weighted triggers.

	Pure: the compiled patterns are built once and the same text always
	produces the same result.
	"""

	def __init__(self, registry: CapabilityRegistry, threshold: float = DEFAULT_THRESHOLD):
		if threshold < 0:
			raise ValueError(f"Classification threshold must be >= 0, got {threshold}")
		self.registry = registry
		self.threshold = threshold
		self._compiled: dict[str, tuple[tuple[TriggerPattern, re.Pattern], ...]] = {
			capability.id: tuple((t, _compile_trigger(t)) for t in capability.triggers)
			for capability in registry.all()
		}

	def classify(self, request_text: str) -> ClassificationResult:
		"""Classify a request into the ordered set of capabilities it needs."""
		scores: dict[str, float] = {}
		evidence: dict[str, tuple[Match, ...]] = {}

		for capability in self.registry.all():
			matches = self._find_matches(capability, request_text)
			scores[capability.id] = round(sum(m.trigger.weight for m in matches), 6)
			if matches:
				evidence[capability.id] = matches

		required = [cid for cid, score in scores.items() if score > self.threshold]
		required.sort(key=lambda cid: self._confidence_key(cid, scores))

		if required:
			result = ClassificationResult(
				request_text=request_text,
				capabilities=tuple(required),
				unmatched=False,
				threshold=self.threshold,
				scores=MappingProxyType(scores),
				evidence=MappingProxyType(evidence),
			)
			logger.info(f"Classified request into {list(result.capabilities)}")
			return result

		fallback = None
		if scores:
			best = min(scores, key=lambda cid: self._confidence_key(cid, scores))
			if scores[best] > 0:
				fallback = best

		logger.info(
			f"No capability crossed threshold {self.threshold:g}; "
			f"fallback={fallback or 'none'}"
		)
		return ClassificationResult(
			request_text=request_text,
			capabilities=(fallback,) if fallback else (),
			unmatched=True,
			threshold=self.threshold,
			scores=MappingProxyType(scores),
			evidence=MappingProxyType(evidence),
			fallback=fallback,
		)

	def _find_matches(self, capability: Capability, text: str) -> tuple[Match, ...]:
		"""Each trigger counts at most once, however often it occurs."""
		matches = []
		for trigger, pattern in self._compiled[capability.id]:
			found = pattern.search(text)
			if found:
				matches.append(Match(trigger=trigger, matched_text=found.group(0).strip()))
		return tuple(matches)

	def _confidence_key(self, capability_id: str, scores: dict[str, float]) -> tuple:
		capability = self.registry.lookup(capability_id)
		return (-scores[capability_id], capability.rank, self.registry.position(capability_id))


def _compile_trigger(trigger: TriggerPattern) -> re.Pattern:
	"""Turn a trigger into a regex. Keywords accept simple plurals."""
	if trigger.kind == TriggerKind.KEYWORD:
		return re.compile(rf"\b{re.escape(trigger.value)}(?:s|es)?\b", re.IGNORECASE)
	if trigger.kind == TriggerKind.PHRASE:
		words = [re.escape(w) for w in trigger.value.split()]
		return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)
	if trigger.kind == TriggerKind.CUE:
		return STRUCTURAL_CUES[trigger.value]
	return re.compile(trigger.value, re.IGNORECASE)
