"""PTC Runtime - Programmatic Tool Calling for LangChain tools.

The model answers by writing Python or Go code; the code runs in a child
process and reaches the registered tools through a loopback tool server.

This package provides:
- Core infrastructure (tool registry and server, bridges, code executor)
- Agent implementations (PTCAgent, baseline tool-calling agent)
- Configuration system

Quick start:
    from ptc_runtime import AgentConfig, create_ptc_agent

    config = AgentConfig.create(model=llm, tools=[calculator])
    agent = await create_ptc_agent(config)
    try:
        state = await agent.ainvoke("What is 2+2?")
    finally:
        await agent.close()
"""

__version__ = "0.1.0"

from ptc_runtime.agent import (
    MAX_ITERATIONS_MESSAGE,
    PTCAgent,
    PTCState,
    PTCToolNode,
    create_ptc_agent,
    create_tool_calling_agent,
)
from ptc_runtime.config import (
    AgentConfig,
    CoreConfig,
    ExecutionLanguage,
    ExecutionMode,
    ExecutorConfig,
    ToolServerConfig,
    configure_logging,
    load_core_from_files,
)
from ptc_runtime.core import (
    CodeExecutor,
    ExecutionError,
    ExecutionResult,
    PTCError,
    ToolRegistry,
    ToolServer,
)

__all__ = [
    "MAX_ITERATIONS_MESSAGE",
    "AgentConfig",
    "CodeExecutor",
    "CoreConfig",
    "ExecutionError",
    "ExecutionLanguage",
    "ExecutionMode",
    "ExecutionResult",
    "ExecutorConfig",
    "PTCAgent",
    "PTCError",
    "PTCState",
    "PTCToolNode",
    "ToolRegistry",
    "ToolServer",
    "ToolServerConfig",
    "__version__",
    "configure_logging",
    "create_ptc_agent",
    "create_tool_calling_agent",
    "load_core_from_files",
]
