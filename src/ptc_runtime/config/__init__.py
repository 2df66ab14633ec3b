"""Unified configuration package for the PTC runtime.

This package consolidates all configuration-related code:
- core.py: Core configs (executor, tool server, control loop, logging)
- agent.py: AgentConfig (model, tools, loop limits)
- loaders.py: File-based configuration loading
- utils.py: Shared utilities for config parsing and logging

Usage:
    # Programmatic configuration (recommended)
    from ptc_runtime.config import AgentConfig

    config = AgentConfig.create(model=llm, tools=[calculator])

    # File-based configuration
    from ptc_runtime.config import load_core_from_files

    core = await load_core_from_files()
    config = AgentConfig.create(model=llm, tools=[calculator], core=core)
"""

from ptc_runtime.config.agent import AgentConfig, StateModifier
from ptc_runtime.config.core import (
    CoreConfig,
    ExecutionLanguage,
    ExecutionMode,
    ExecutorConfig,
    LoggingConfig,
    LoopConfig,
    ToolServerConfig,
)
from ptc_runtime.config.loaders import (
    generate_config_template,
    load_core_from_files,
    load_from_dict,
)
from ptc_runtime.config.utils import (
    configure_logging,
    find_config_file,
    find_project_root,
    get_config_search_paths,
    get_default_config_dir,
    substitute_env_vars,
)

__all__ = [
    "AgentConfig",
    "CoreConfig",
    "ExecutionLanguage",
    "ExecutionMode",
    "ExecutorConfig",
    "LoggingConfig",
    "LoopConfig",
    "StateModifier",
    "ToolServerConfig",
    # Utilities
    "configure_logging",
    "find_config_file",
    "find_project_root",
    # Template generation
    "generate_config_template",
    "get_config_search_paths",
    "get_default_config_dir",
    # Config loading
    "load_core_from_files",
    "load_from_dict",
    "substitute_env_vars",
]
