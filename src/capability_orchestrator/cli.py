"""CLI for capability-orchestrator: capabilities, classify, plan, run and doctor commands."""

import argparse
import asyncio
import json
import platform
import sys
import tomllib
from dataclasses import replace
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import Config, load_config
from .engine import Orchestrator, OrchestrationResult
from .errors import OrchestratorError
from .handlers import load_handler
from .logging_config import setup_logging
from .registry.registry import load_registry

CORE_DEPS = ["pydantic", "platformdirs", "rich"]


def _config_from_args(args: argparse.Namespace) -> Config:
	"""Load config and apply command-line overrides."""
	config = load_config()
	threshold = getattr(args, "threshold", None)
	if threshold is not None:
		config = replace(config, classification_threshold=threshold)
	return config


def _parse_capabilities(raw: Optional[str]) -> Optional[list[str]]:
	"""Split a comma-separated override list. None means 'use the classifier'."""
	if raw is None:
		return None
	return [part.strip() for part in raw.split(",") if part.strip()]


def _print_json(data: dict) -> None:
	print(json.dumps(data, indent=2, default=str))


def _fail(message: str) -> None:
	print(f"error: {message}", file=sys.stderr)
	sys.exit(1)


def cmd_capabilities(args: argparse.Namespace) -> None:
	"""List registered capabilities."""
	from .visualizer import render_capabilities

	orchestrator = Orchestrator(config=_config_from_args(args))
	if args.json:
		_print_json({"capabilities": [c.model_dump(mode="json") for c in orchestrator.registry.all()]})
		return
	render_capabilities(orchestrator.registry, Console())


def cmd_classify(args: argparse.Namespace) -> None:
	"""Show which capabilities a request maps to, and why."""
	from .visualizer import render_classification

	orchestrator = Orchestrator(config=_config_from_args(args))
	result = orchestrator.classify(args.request)
	if args.json:
		_print_json({
			"capabilities": list(result.capabilities),
			"unmatched": result.unmatched,
			"fallback": result.fallback,
			"threshold": result.threshold,
			"scores": dict(result.scores),
			"evidence": result.explain(),
		})
		return
	render_classification(result, Console())


def cmd_plan(args: argparse.Namespace) -> None:
	"""Build and show the execution plan for a request without running it."""
	from .visualizer import render_plan

	orchestrator = Orchestrator(config=_config_from_args(args))
	prepared = orchestrator.prepare(args.request, _parse_capabilities(args.capabilities))
	if args.json:
		data = prepared.plan.to_dict()
		data["warnings"] = [str(w) for w in prepared.warnings]
		_print_json(data)
		return
	console = Console()
	for warning in prepared.warnings:
		console.print(f"[yellow]warning:[/yellow] {warning}")
	render_plan(prepared.plan, console)


async def _run_request(
	orchestrator: Orchestrator,
	request: str,
	capabilities: Optional[list[str]],
	handler_path: Optional[str],
	deadline: Optional[float],
) -> OrchestrationResult:
	invoke_stage = load_handler(handler_path) if handler_path else None
	cancel_event = asyncio.Event()
	if deadline is not None:
		# The coordinator never times out on its own; the deadline only stops further stages
		asyncio.get_running_loop().call_later(deadline, cancel_event.set)
	return await orchestrator.run(
		request,
		invoke_stage=invoke_stage,
		capabilities=capabilities,
		cancel_event=cancel_event,
	)


def cmd_run(args: argparse.Namespace) -> None:
	"""Classify, plan and execute a request. Exits 0 completed, 1 failed, 2 unmatched."""
	from .visualizer import render_result

	orchestrator = Orchestrator(config=_config_from_args(args))
	result = asyncio.run(_run_request(
		orchestrator,
		args.request,
		_parse_capabilities(args.capabilities),
		args.handler,
		args.deadline,
	))
	if args.json:
		_print_json(result.to_dict())
	else:
		render_result(result, Console())
	sys.exit(result.exit_code)


def _check_config_toml(config_file: Path) -> tuple[str, Optional[str]]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	if not config_file.exists():
		return "not found (optional)", None
	try:
		with open(config_file, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		return f"INVALID ({e})", f"config.toml parse error: {e}"


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation, configuration and the capability table."""
	print("capability-orchestrator doctor")
	print(f"{'=' * 40}")

	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			print(f"    {dep:22s} {pkg_version(dep)}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	config: Optional[Config] = None
	try:
		config = load_config()
	except (OSError, ValueError, tomllib.TOMLDecodeError) as e:
		issues.append(f"configuration could not be loaded: {e}")
		print(f"    load:                FAILED ({e})")
	if config is not None:
		toml_status, toml_issue = _check_config_toml(config.config_file)
		print(f"    config.toml:         {toml_status}")
		if toml_issue:
			issues.append(toml_issue)
		print(f"    threshold:           {config.classification_threshold:g}")
		if config.classification_threshold < 0:
			issues.append("classification_threshold must be >= 0")
		print(f"    registry file:       {config.registry_file or 'built-in'}")
	print()

	print("  Registry:")
	if config is not None:
		try:
			registry = load_registry(config.registry_file)
			print(f"    {len(registry)} capabilities, dependency graph valid")
		except OrchestratorError as e:
			print(f"    INVALID ({e})")
			issues.append(f"registry invalid: {e}")
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def _add_threshold(parser: argparse.ArgumentParser) -> None:
	parser.add_argument(
		"--threshold",
		type=float,
		default=None,
		help="Override the classification confidence threshold",
	)


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="capability-orchestrator",
		description="Turn feature requests into ordered capability plans and execute them",
	)
	parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
	subparsers = parser.add_subparsers(dest="command")

	# capabilities
	caps_parser = subparsers.add_parser("capabilities", help="List registered capabilities")
	caps_parser.add_argument("--json", action="store_true", help="Emit JSON")
	caps_parser.set_defaults(func=cmd_capabilities)

	# classify
	classify_parser = subparsers.add_parser("classify", help="Classify a request")
	classify_parser.add_argument("request", help="Feature request text")
	classify_parser.add_argument("--json", action="store_true", help="Emit JSON")
	_add_threshold(classify_parser)
	classify_parser.set_defaults(func=cmd_classify)

	# plan
	plan_parser = subparsers.add_parser("plan", help="Show the execution plan for a request")
	plan_parser.add_argument("request", help="Feature request text")
	plan_parser.add_argument(
		"--capabilities",
		type=str,
		default=None,
		help="Comma-separated capability ids, bypassing the classifier",
	)
	plan_parser.add_argument("--json", action="store_true", help="Emit JSON")
	_add_threshold(plan_parser)
	plan_parser.set_defaults(func=cmd_plan)

	# run
	run_parser = subparsers.add_parser("run", help="Plan and execute a request")
	run_parser.add_argument("request", help="Feature request text")
	run_parser.add_argument(
		"--capabilities",
		type=str,
		default=None,
		help="Comma-separated capability ids, bypassing the classifier",
	)
	run_parser.add_argument(
		"--handler",
		type=str,
		default=None,
		help="Stage handler as 'module:attribute' (default: dry run)",
	)
	run_parser.add_argument(
		"--deadline",
		type=float,
		default=None,
		help="Seconds after which no further stage is started",
	)
	run_parser.add_argument("--json", action="store_true", help="Emit JSON")
	_add_threshold(run_parser)
	run_parser.set_defaults(func=cmd_run)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	return parser


def main() -> None:
	"""CLI entry point."""
	parser = build_parser()
	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	try:
		setup_logging(level="DEBUG" if args.verbose else None)
	except (OSError, ValueError, tomllib.TOMLDecodeError) as e:
		_fail(f"cannot load configuration: {e}")

	try:
		args.func(args)
	except OrchestratorError as e:
		_fail(str(e))
	except ValueError as e:
		_fail(str(e))
