"""Shared utilities for visualizer views."""

import json
from typing import Any


def format_duration(seconds: float) -> str:
	"""Format a duration for display. e.g. '1.2s', '45ms', '2m 3s'."""
	if seconds < 0.001:
		return "<1ms"
	if seconds < 1.0:
		return f"{seconds * 1000:.0f}ms"
	if seconds < 60.0:
		return f"{seconds:.1f}s"
	minutes = int(seconds // 60)
	secs = seconds % 60
	return f"{minutes}m {secs:.0f}s"


def truncate(text: str, max_len: int = 60) -> str:
	"""Shorten a string for table display."""
	if not text:
		return ""
	text = text.strip()
	if len(text) <= max_len:
		return text
	return text[:max_len - 3] + "..."


def summarize_artifact(artifact: Any, max_len: int = 60) -> str:
	"""One-line rendering of an opaque artifact."""
	if artifact is None:
		return ""
	if isinstance(artifact, str):
		return truncate(artifact, max_len)
	try:
		text = json.dumps(artifact, default=str, sort_keys=True)
	except (TypeError, ValueError):
		text = repr(artifact)
	return truncate(text, max_len)
