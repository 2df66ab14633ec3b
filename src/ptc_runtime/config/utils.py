"""Shared configuration utilities.

This module provides helpers for env loading, config file search,
environment variable substitution and logging setup.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv

CONFIG_FILE_NAME = "ptc_config.yaml"
CONFIG_FILE_ENV_VAR = "PTC_CONFIG_FILE"


# =============================================================================
# Environment Variable Substitution
# =============================================================================


def substitute_env_vars(value: str) -> str:
    """
    Replace environment variables in string values.

    Supports both formats:
    - $VAR - Simple format, only when the whole string is the reference
    - ${VAR} - Bash-style format with braces, anywhere in the string

    Unknown ${VAR} references are left untouched.
    """
    if not isinstance(value, str):
        return value

    result = re.sub(
        r"\$\{([^}]+)\}",
        lambda m: os.getenv(m.group(1), m.group(0)),
        value,
    )

    if result.startswith("$") and not result.startswith("${"):
        env_var = result[1:]
        if env_var.isidentifier():
            return os.getenv(env_var, result)

    return result


def substitute_env_in_config(config: Any) -> Any:
    """Recursively substitute environment variables in a parsed config."""
    if isinstance(config, dict):
        return {key: substitute_env_in_config(value) for key, value in config.items()}
    if isinstance(config, list):
        return [substitute_env_in_config(item) for item in config]
    if isinstance(config, str):
        return substitute_env_vars(config)
    return config


# =============================================================================
# Config File Search
# =============================================================================


def find_project_root(start_path: Path | None = None) -> Path | None:
    """Find git repository root by walking up from start_path."""
    current = start_path or Path.cwd()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    return None


def get_default_config_dir() -> Path:
    """Get the default config directory (~/.ptc-runtime/)."""
    return Path.home() / ".ptc-runtime"


def get_config_search_paths(start_path: Path | None = None) -> list[Path]:
    """Directories searched for the config file, in priority order.

    CWD → git project root → ~/.ptc-runtime/
    """
    cwd = start_path or Path.cwd()
    paths = [cwd]
    project_root = find_project_root(cwd)
    if project_root and project_root not in paths:
        paths.append(project_root)
    default_dir = get_default_config_dir()
    if default_dir not in paths:
        paths.append(default_dir)
    return paths


def find_config_file(
    filename: str = CONFIG_FILE_NAME,
    start_path: Path | None = None,
    env_var: str | None = CONFIG_FILE_ENV_VAR,
) -> Path | None:
    """Locate a config file.

    Args:
        filename: File name to look for
        start_path: Directory to start searching from (default: CWD)
        env_var: Environment variable holding an explicit path, checked first

    Returns:
        Path to the config file, or None if not found
    """
    if env_var:
        explicit = os.getenv(env_var)
        if explicit:
            path = Path(explicit).expanduser()
            return path if path.exists() else None

    for directory in get_config_search_paths(start_path):
        candidate = directory / filename
        if candidate.exists():
            return candidate
    return None


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML file and substitute environment variables.

    Raises:
        ValueError: If the top level of the file is not a mapping
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"Config file {path} must contain a mapping at the top level"
        raise ValueError(msg)
    return substitute_env_in_config(data)


async def load_dotenv_async(env_file: Path | None = None) -> None:
    """Load environment variables from .env file asynchronously.

    Args:
        env_file: Optional path to .env file. If None, searches default locations.
    """
    if env_file:
        await asyncio.to_thread(load_dotenv, env_file)
    else:
        await asyncio.to_thread(load_dotenv)


# =============================================================================
# Logging
# =============================================================================


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog to respect log level from config.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        fmt: "console" for human readable output, "json" for JSON lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
    logging.getLogger("uvicorn.error").setLevel(log_level)
