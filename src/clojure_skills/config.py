"""Configuration loading — defaults, YAML config file, environment overrides.

Layout:
    $XDG_CONFIG_HOME/clojure-skills/     (default: ~/.config/clojure-skills)
        config.yaml                      # optional user overrides
        clojure-skills.db                # default SQLite database

Precedence (lowest to highest): DEFAULT_CONFIG, config.yaml, environment
variables CLOJURE_SKILLS_DB_PATH and CLOJURE_SKILLS_PROJECT_ROOT.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from . import APP_NAME
from .errors import ConfigError

DB_PATH_ENV = "CLOJURE_SKILLS_DB_PATH"
PROJECT_ROOT_ENV = "CLOJURE_SKILLS_PROJECT_ROOT"


def get_home_dir() -> str:
    """Return the current user's home directory."""
    return str(Path.home())


def get_xdg_config_home() -> str:
    """Return $XDG_CONFIG_HOME, falling back to ~/.config."""
    env = os.environ.get("XDG_CONFIG_HOME")
    if env:
        return env
    return str(Path(get_home_dir()) / ".config")


def get_config_dir() -> str:
    """Return the clojure-skills configuration directory."""
    return str(Path(get_xdg_config_home()) / APP_NAME)


def get_config_file() -> str:
    """Return the path of the user config file."""
    return str(Path(get_config_dir()) / "config.yaml")


def expand_path(path: str) -> str:
    """Expand a leading ``~`` to the home directory.

    Args:
        path: A filesystem path, possibly starting with ``~``.

    Returns:
        str: The expanded path. Paths without ``~`` are returned unchanged.
    """
    if path == "~":
        return get_home_dir()
    if path.startswith("~/"):
        return get_home_dir() + path[1:]
    return path


def _default_config() -> dict[str, Any]:
    return {
        "database": {
            "path": str(Path(get_config_dir()) / f"{APP_NAME}.db"),
        },
        "project": {
            "root": None,
            "skills_dir": "skills",
            "prompts_dir": "prompts",
            "prompt_configs_dir": "prompt_configs",
        },
        "search": {
            "max_results": 50,
            "default_type": "all",
        },
        "output": {
            "format": "table",
        },
        "logging": {
            "level": "WARNING",
            "file": None,
        },
    }


DEFAULT_CONFIG: dict[str, Any] = _default_config()
"""Defaults as resolved at import time; load_config() re-resolves them."""


class DatabaseConfig(BaseModel):
    path: str


class ProjectConfig(BaseModel):
    root: Optional[str] = Field(default=None, description="Project root (default: cwd)")
    skills_dir: str = "skills"
    prompts_dir: str = "prompts"
    prompt_configs_dir: str = "prompt_configs"


class SearchConfig(BaseModel):
    max_results: int = Field(default=50, ge=1, le=1000)
    default_type: Literal["skills", "prompts", "all"] = "all"


class OutputConfig(BaseModel):
    format: Literal["table", "json"] = "table"


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    file: Optional[str] = None


class AppConfig(BaseModel):
    """Validated application configuration."""

    database: DatabaseConfig
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def project_root(self) -> Path:
        """Resolve the project root, defaulting to the working directory."""
        if self.project.root:
            return Path(expand_path(self.project.root))
        return Path.cwd()

    def skills_path(self) -> Path:
        return self.project_root() / self.project.skills_dir

    def prompts_path(self) -> Path:
        return self.project_root() / self.project.prompts_dir

    def prompt_configs_path(self) -> Path:
        return self.project_root() / self.project.prompt_configs_dir


def deep_merge(*maps: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge mappings; later values win.

    Args:
        *maps: Mappings to merge, lowest precedence first.

    Returns:
        dict: A new merged mapping. Inputs are not modified.
    """
    result: dict[str, Any] = {}
    for m in maps:
        for key, value in m.items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
    return result


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must be a YAML mapping, got {type(raw).__name__}")
    return raw


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    db_path = os.environ.get(DB_PATH_ENV)
    if db_path:
        overrides.setdefault("database", {})["path"] = db_path
    root = os.environ.get(PROJECT_ROOT_ENV)
    if root:
        overrides.setdefault("project", {})["root"] = root
    return overrides


def load_config(config_file: Optional[Path] = None) -> AppConfig:
    """Load the effective configuration.

    Args:
        config_file: Explicit config file (default: get_config_file()).

    Returns:
        AppConfig: Defaults merged with the config file and environment.

    Raises:
        ConfigError: If the file is not a YAML mapping or fails validation.
    """
    path = config_file or Path(get_config_file())
    merged = deep_merge(_default_config(), _read_config_file(path), _env_overrides())
    try:
        return AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def get_db_path(config: AppConfig | dict[str, Any]) -> str:
    """Return the database path from a config, with ``~`` expanded."""
    if isinstance(config, AppConfig):
        raw = config.database.path
    else:
        raw = config["database"]["path"]
    return expand_path(raw)


def save_default_config(config_file: Optional[Path] = None) -> Path:
    """Write a starter config file if none exists.

    Returns:
        Path: The config file path (existing or newly written).
    """
    path = config_file or Path(get_config_file())
    if path.exists():
        return path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(_default_config(), default_flow_style=False, sort_keys=False))
    return path
