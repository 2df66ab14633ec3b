"""PTC Runtime - Core Infrastructure.

This package provides the execution side of Programmatic Tool Calling:
- ToolRegistry: Name-indexed tool table and invocation
- ToolServer: Loopback HTTP server exposing the registry
- BridgeRenderer: Python/Go tool bridges and the tool catalog
- CodeExecutor: Subprocess execution with deadlines and output capture
- ExecutionMonitor: Per-executor execution statistics

For the control loop, see the agent package.
"""

from .bridges import BridgeRenderer, tool_function_name
from .direct import DirectToolDispatcher
from .exceptions import (
    BindError,
    CodeValidationError,
    CompilationError,
    EmptyResponseError,
    ExecutionError,
    ExecutionTimeoutError,
    InvalidStateError,
    ModelCallError,
    ModelError,
    NoCodeFoundError,
    ProcessLaunchError,
    PTCError,
    ShutdownError,
    ToolNotFoundError,
    ToolServerConnectionError,
    ToolServerError,
)
from .executor import CodeExecutor, ExecutionResult
from .monitor import ExecutionMonitor
from .registry import ToolCallRequest, ToolCallResponse, ToolRegistry
from .server import ToolServer, create_tool_app

__all__ = [
    "BindError",
    "BridgeRenderer",
    "CodeExecutor",
    "CodeValidationError",
    "CompilationError",
    "DirectToolDispatcher",
    "EmptyResponseError",
    "ExecutionError",
    "ExecutionMonitor",
    "ExecutionResult",
    "ExecutionTimeoutError",
    "InvalidStateError",
    "ModelCallError",
    "ModelError",
    "NoCodeFoundError",
    "PTCError",
    "ProcessLaunchError",
    "ShutdownError",
    "ToolCallRequest",
    "ToolCallResponse",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolServer",
    "ToolServerConnectionError",
    "ToolServerError",
    "create_tool_app",
    "tool_function_name",
]
