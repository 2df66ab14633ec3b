"""PTC runtime exceptions.

These exceptions are used for error handling in the tool server, the code
executor and the agent control loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .executor import ExecutionResult


class PTCError(Exception):
    """Base exception for PTC-related errors."""


class ToolServerError(PTCError):
    """Tool server lifecycle error base class."""


class BindError(ToolServerError):
    """The tool server could not acquire a listening port."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        super().__init__(f"Failed to bind tool server on {host}:{port}: {reason}")


class ShutdownError(ToolServerError):
    """The tool server listener could not be closed."""


class ToolNotFoundError(PTCError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class ExecutionError(PTCError):
    """Generated program failed.

    The partial result (whatever stdout/stderr was captured) is kept on
    ``result`` so callers can still show progress.
    """

    def __init__(self, message: str, result: ExecutionResult | None = None):
        self.result = result
        super().__init__(message)

    @property
    def stdout(self) -> str:
        return self.result.stdout if self.result else ""

    @property
    def stderr(self) -> str:
        return self.result.stderr if self.result else ""


class ProcessLaunchError(ExecutionError):
    """The interpreter or toolchain could not be started."""


class CompilationError(ExecutionError):
    """Compiled-language program failed to build."""


class ToolServerConnectionError(ExecutionError):
    """Generated program could not reach the tool server."""


class CodeValidationError(ExecutionError):
    """Code was rejected before execution."""


class ExecutionTimeoutError(ExecutionError):
    """Execution exceeded its deadline and the child was killed."""

    def __init__(
        self,
        timeout_seconds: float,
        result: ExecutionResult | None = None,
        operation: str = "code execution",
    ):
        self.timeout_seconds = timeout_seconds
        self.operation = operation
        super().__init__(f"{operation} timed out after {timeout_seconds} seconds", result)


class InvalidStateError(PTCError):
    """Conversation state does not satisfy a node's preconditions."""


class NoCodeFoundError(PTCError):
    """No executable code could be extracted from a message."""


class ModelError(PTCError):
    """Model interaction error base class."""


class ModelCallError(ModelError):
    """The chat model raised while generating."""


class EmptyResponseError(ModelError):
    """The chat model returned no content."""
