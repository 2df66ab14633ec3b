"""Core configuration classes for the PTC runtime.

This module defines pure data classes for core configuration:
- Tool server settings
- Code executor settings (language, mode, deadlines)
- Control loop settings
- Logging settings

Use ptc_runtime.config.loaders for file-based loading.
"""

import sys
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ExecutionLanguage(str, Enum):
    """Languages the executor can generate bridges for."""

    PYTHON = "python"
    GO = "go"

    @property
    def display_name(self) -> str:
        return "Go" if self is ExecutionLanguage.GO else "Python"


class ExecutionMode(str, Enum):
    """How generated code reaches the registered tools.

    SERVER routes tool calls through the loopback HTTP tool server.
    DIRECT exchanges tool calls with the child over its stdio pipes.
    """

    SERVER = "server"
    DIRECT = "direct"


class ToolServerConfig(BaseModel):
    """Tool server configuration.

    All fields have sensible defaults. Port 0 asks the OS for an ephemeral port.
    """

    host: str = "127.0.0.1"
    port: int = Field(default=0, ge=0, le=65535)
    startup_timeout: float = Field(default=10.0, gt=0)
    shutdown_timeout: float = Field(default=5.0, gt=0)
    request_timeout: float = Field(default=30.0, gt=0)  # bridge-side HTTP timeout


class ExecutorConfig(BaseModel):
    """Code executor configuration.

    All fields have sensible defaults for local execution.
    """

    language: ExecutionLanguage = ExecutionLanguage.PYTHON
    mode: ExecutionMode = ExecutionMode.SERVER
    execution_timeout: float = Field(default=60.0, gt=0)
    compile_timeout: float = Field(default=120.0, gt=0)  # Go builds only
    max_code_length: int = Field(default=100_000, gt=0)
    python_executable: str = sys.executable
    go_executable: str = "go"
    work_dir: str | None = None  # parent for scratch dirs, system temp if None
    keep_files: bool = False
    server: ToolServerConfig = Field(default_factory=ToolServerConfig)

    @model_validator(mode="after")
    def _check_mode_supported(self) -> "ExecutorConfig":
        if self.mode is ExecutionMode.DIRECT and self.language is not ExecutionLanguage.PYTHON:
            msg = f"Direct execution mode is only supported for python, not {self.language.value}"
            raise ValueError(msg)
        return self


class LoopConfig(BaseModel):
    """Agent control loop configuration."""

    max_iterations: int = Field(default=10, ge=1)
    system_prompt: str = ""


class LoggingConfig(BaseModel):
    """Logging configuration with sensible defaults."""

    level: str = "INFO"
    format: Literal["console", "json"] = "console"


class CoreConfig(BaseModel):
    """Core runtime configuration.

    Contains settings for the executor, tool server, control loop and logging.
    The model and tools are supplied separately in ptc_runtime.config.agent.
    """

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
