"""Configuration loaders for file-based config.

This module provides functions to load CoreConfig from files.

Usage:
    from ptc_runtime.config import load_core_from_files
    core = await load_core_from_files()
    config = AgentConfig.create(model=llm, tools=tools, core=core)

Config Search Paths:
    When no explicit path is provided, files are searched in order:
    1. PTC_CONFIG_FILE environment variable
    2. Current working directory
    3. Project root (git repository root)
    4. ~/.ptc-runtime/ (user config directory)
"""

import asyncio
from pathlib import Path
from typing import Any

from ptc_runtime.config.core import (
    CoreConfig,
    ExecutorConfig,
    LoggingConfig,
    LoopConfig,
)
from ptc_runtime.config.utils import (
    CONFIG_FILE_NAME,
    configure_logging,
    find_config_file,
    get_config_search_paths,
    load_dotenv_async,
    load_yaml_config,
)

CONFIG_TEMPLATE = """\
# PTC runtime configuration
executor:
  language: python          # python | go
  mode: server              # server | direct (python only)
  execution_timeout: 60     # seconds per generated program
  compile_timeout: 120      # seconds per go build
  max_code_length: 100000
  go_executable: go
  keep_files: false
  server:
    host: 127.0.0.1
    port: 0                 # 0 = ephemeral port
    startup_timeout: 10
    shutdown_timeout: 5
    request_timeout: 30

loop:
  max_iterations: 10
  system_prompt: ""

logging:
  level: ${PTC_LOG_LEVEL}
  format: console           # console | json
"""

KNOWN_SECTIONS = ("executor", "loop", "logging")


def load_from_dict(config_data: dict[str, Any]) -> CoreConfig:
    """Create CoreConfig from a parsed config dictionary.

    Missing sections fall back to defaults.

    Raises:
        ValueError: If the dictionary contains unknown top-level sections
        pydantic.ValidationError: If a field value is invalid
    """
    unknown = [key for key in config_data if key not in KNOWN_SECTIONS]
    if unknown:
        raise ValueError(
            f"Unknown sections in {CONFIG_FILE_NAME}: {', '.join(unknown)}\n"
            f"Supported sections: {', '.join(KNOWN_SECTIONS)}"
        )

    logging_data = dict(config_data.get("logging") or {})
    # An unresolved ${VAR} placeholder means "use the default"
    if str(logging_data.get("level", "")).startswith("${"):
        logging_data.pop("level")

    return CoreConfig(
        executor=ExecutorConfig(**(config_data.get("executor") or {})),
        loop=LoopConfig(**(config_data.get("loop") or {})),
        logging=LoggingConfig(**logging_data),
    )


async def load_core_from_files(
    config_file: Path | None = None,
    env_file: Path | None = None,
    *,
    search_paths: bool = True,
) -> CoreConfig:
    """Load CoreConfig from config files (ptc_config.yaml, .env).

    Args:
        config_file: Optional path to ptc_config.yaml file
        env_file: Optional path to .env file
        search_paths: If True, search multiple paths for config files

    Returns:
        Configured CoreConfig instance

    Raises:
        FileNotFoundError: If ptc_config.yaml is not found
        ValueError: If the configuration is invalid
    """
    cwd = await asyncio.to_thread(Path.cwd)

    # Load environment variables first so ${VAR} placeholders resolve
    await load_dotenv_async(env_file)

    if config_file is None:
        if search_paths:
            config_file = await asyncio.to_thread(find_config_file)
        else:
            config_file = cwd / CONFIG_FILE_NAME

    if config_file is None or not config_file.exists():
        searched = await asyncio.to_thread(get_config_search_paths) if search_paths else [cwd]
        raise FileNotFoundError(
            f"{CONFIG_FILE_NAME} not found in search paths:\n"
            f"  {chr(10).join(str(p) for p in searched)}\n"
            f"Create one or set PTC_CONFIG_FILE environment variable."
        )

    config_data = await asyncio.to_thread(load_yaml_config, config_file)
    core = load_from_dict(config_data)
    configure_logging(core.logging.level, core.logging.format)
    return core


def generate_config_template(target_dir: Path, *, overwrite: bool = False) -> Path:
    """Write a commented ptc_config.yaml template into target_dir.

    Args:
        target_dir: Directory to write into (created if missing)
        overwrite: Replace an existing file

    Returns:
        Path of the config file
    """
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / CONFIG_FILE_NAME
    if path.exists() and not overwrite:
        return path
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    return path
