"""Configuration system using platformdirs for cross-platform paths."""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import platformdirs

APP_NAME = "capability-orchestrator"
ENV_PREFIX = "CAPABILITY_ORCHESTRATOR_"

logger = logging.getLogger(__name__)


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	config_file: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Engine settings
	classification_threshold: float = 1.0
	registry_file: Optional[Path] = None  # None = built-in capability table
	auto_include_dependencies: bool = True
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.config_file = self.config_dir / "config.toml"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		for directory in (self.config_dir, self.data_dir, self.log_dir):
			directory.mkdir(parents=True, exist_ok=True)


def _parse_bool(value: Any) -> bool:
	if isinstance(value, bool):
		return value
	return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_path(value: Any) -> Path:
	return Path(os.path.expanduser(str(value)))


def _parse_threshold(value: Any) -> float:
	if isinstance(value, bool):
		raise ValueError(f"classification_threshold must be a number, got {value!r}")
	return float(value)


# Setting name -> converter, shared by env vars and config.toml
SETTINGS: dict[str, Callable[[Any], Any]] = {
	"config_dir": _parse_path,
	"data_dir": _parse_path,
	"registry_file": _parse_path,
	"classification_threshold": _parse_threshold,
	"auto_include_dependencies": _parse_bool,
	"log_level": lambda value: str(value).upper(),
}

ENV_ALIASES = {"classification_threshold": "THRESHOLD"}


def _env_key(setting: str) -> str:
	return ENV_PREFIX + ENV_ALIASES.get(setting, setting.upper())


def _apply_env_overrides(config: Config) -> Config:
	"""Apply CAPABILITY_ORCHESTRATOR_* environment variable overrides."""
	for setting, convert in SETTINGS.items():
		val = os.getenv(_env_key(setting))
		if val:
			setattr(config, setting, convert(val))
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""
	Apply config.toml overrides if the file exists.

	Raises:
		tomllib.TOMLDecodeError: the file is not valid TOML
		ValueError: a known setting has a value of the wrong type
	"""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	for key, val in data.items():
		convert = SETTINGS.get(key)
		if convert is None:
			logger.warning(f"Ignoring unknown config key '{key}' in {toml_path}")
			continue
		try:
			setattr(config, key, convert(val))
		except (TypeError, ValueError) as e:
			raise ValueError(f"Invalid value for '{key}' in {toml_path}: {e}") from e

	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# Env may relocate config_dir, which decides where config.toml is read from
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	config.ensure_dirs()
	return config


# Singleton
_config: Optional[Config] = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
