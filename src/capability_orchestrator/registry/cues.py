"""Structural cues: named patterns that detect the shape of a request rather than a word."""

import re

STRUCTURAL_CUES: dict[str, re.Pattern] = {
	# "Order entity", "Invoice model", or "entity named Order"
	"entity_name": re.compile(
		r"\b[A-Z][A-Za-z0-9]*\s+(?:entity|entities|model|record|resource|aggregate)\b"
		r"|\b(?:[Ee]ntity|[Mm]odel)\s+(?:named|called)\s+[A-Za-z_]\w*"
	),
	"crud_verb": re.compile(
		r"\b(?:create|read|update|delete|list|add|remove|edit|crud)\b",
		re.IGNORECASE,
	),
	# "/orders/{id}" or an uppercase HTTP method
	"endpoint_path": re.compile(
		r"(?:^|\s)/[A-Za-z0-9_\-{}/]+|\b(?:GET|POST|PUT|PATCH|DELETE)\b"
	),
	"screen_element": re.compile(
		r"\b(?:page|screen|form|button|dashboard|modal|widget)s?\b",
		re.IGNORECASE,
	),
}


def is_known_cue(name: str) -> bool:
	return name in STRUCTURAL_CUES
