"""
Capability Models - Pydantic schemas for the capability table.

A capability is a class of work one handler performs. Capabilities carry a
layer rank and the ids they depend on, plus the weighted trigger patterns the
classifier scores requests against.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TriggerKind(str, Enum):
	"""How a trigger pattern is matched against request text."""
	KEYWORD = "keyword"  # whole word, simple plurals allowed
	PHRASE = "phrase"  # whole phrase, whitespace tolerant
	REGEX = "regex"
	CUE = "cue"  # named structural cue


class TriggerPattern(BaseModel):
	"""A weighted pattern that votes for a capability."""
	model_config = ConfigDict(frozen=True)

	kind: TriggerKind = Field(default=TriggerKind.KEYWORD)
	value: str = Field(min_length=1, description="Keyword, phrase, regex or cue name")
	weight: float = Field(default=1.0, gt=0, description="Score contributed when matched")

	@property
	def label(self) -> str:
		return f"{self.kind.value}:{self.value}"


class Capability(BaseModel):
	"""A registered capability handler class."""
	model_config = ConfigDict(frozen=True)

	id: str = Field(min_length=1, description="Unique capability identifier")
	label: str = Field(description="Human readable name")
	rank: int = Field(ge=0, description="Layer rank, lower is more foundational")
	depends_on: tuple[str, ...] = Field(default=(), description="Capability ids that must run earlier")
	triggers: tuple[TriggerPattern, ...] = Field(default=())
	description: str = Field(default="")


def keyword(value: str, weight: float = 1.0) -> TriggerPattern:
	return TriggerPattern(kind=TriggerKind.KEYWORD, value=value, weight=weight)


def phrase(value: str, weight: float = 1.0) -> TriggerPattern:
	return TriggerPattern(kind=TriggerKind.PHRASE, value=value, weight=weight)


def regex(value: str, weight: float = 1.0) -> TriggerPattern:
	return TriggerPattern(kind=TriggerKind.REGEX, value=value, weight=weight)


def cue(value: str, weight: float = 1.0) -> TriggerPattern:
	return TriggerPattern(kind=TriggerKind.CUE, value=value, weight=weight)
