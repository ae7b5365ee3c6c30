"""
Stage handlers - The boundary between the coordinator and capability handlers.

What a handler generates is outside this package. This module only routes a
stage to the handler registered for its capability, offers a dry-run handler
for previewing plans, and loads user handlers from `module:attribute` paths.
"""

import asyncio
import importlib
import inspect
import logging
from typing import Optional

from .errors import HandlerLoadError
from .orchestrator.context_store import ContextView
from .orchestrator.coordinator import InvokeStage
from .orchestrator.models import Stage, StageResult

logger = logging.getLogger(__name__)


def dry_run_handler(stage: Stage, view: ContextView) -> StageResult:
	"""Produce a description of the work instead of doing it."""
	return StageResult.success(
		stage.capability_id,
		artifact={
			"capability": stage.capability_id,
			"label": stage.capability.label,
			"request": view.request_text,
			"inputs": sorted(view),
			"dry_run": True,
		},
	)


class HandlerTable:
	"""
	Dispatches stages to per-capability handlers.

	Stages whose capability has no handler fall back to `default`; without a
	default they fail as a business-level error, not a fault.
	"""

	def __init__(
		self,
		handlers: Optional[dict[str, InvokeStage]] = None,
		default: Optional[InvokeStage] = None,
	):
		self._handlers: dict[str, InvokeStage] = dict(handlers or {})
		self.default = default

	def register(self, capability_id: str, handler: InvokeStage) -> None:
		self._handlers[capability_id] = handler

	def handler_for(self, capability_id: str) -> Optional[InvokeStage]:
		return self._handlers.get(capability_id, self.default)

	async def invoke(self, stage: Stage, view: ContextView) -> StageResult:
		"""Coordinator-facing entry point."""
		handler = self.handler_for(stage.capability_id)
		if handler is None:
			return StageResult.failure(
				stage.capability_id,
				f"No handler registered for capability '{stage.capability_id}'",
			)
		if inspect.iscoroutinefunction(handler):
			return await handler(stage, view)
		result = await asyncio.to_thread(handler, stage, view)
		if inspect.isawaitable(result):
			result = await result
		return result


def load_handler(path: str) -> InvokeStage:
	"""
	Import a handler from a 'package.module:attribute' path.

	Raises:
		HandlerLoadError: bad path, import failure, or a non-callable target
	"""
	module_name, sep, attr = path.partition(":")
	if not sep or not module_name or not attr:
		raise HandlerLoadError(f"Handler path must look like 'module:attribute', got '{path}'")

	try:
		module = importlib.import_module(module_name)
	except ImportError as e:
		raise HandlerLoadError(f"Cannot import handler module '{module_name}': {e}") from e

	target = module
	for part in attr.split("."):
		try:
			target = getattr(target, part)
		except AttributeError:
			raise HandlerLoadError(f"'{module_name}' has no attribute '{attr}'") from None

	if not callable(target):
		raise HandlerLoadError(f"Handler '{path}' is not callable")

	logger.debug(f"Loaded stage handler {path}")
	return target
