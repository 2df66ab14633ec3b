"""Agent configuration management.

This module contains the explicit configuration for one PTC agent. It builds on
the core configuration (executor, loop) and adds the collaborators that cannot
come from a file: the chat model, the tools and an optional state modifier.
"""

from collections.abc import Callable, Sequence
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ptc_runtime.config.core import CoreConfig, ExecutorConfig

StateModifier = Callable[[list[BaseMessage]], list[BaseMessage]]


class AgentConfig(BaseModel):
    """Agent-specific configuration.

    Defaults are applied once here; nodes and executors read the validated
    values and never fill in defaults of their own.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    model: BaseChatModel
    tools: list[BaseTool]
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    max_iterations: int = Field(default=10, ge=1)
    system_prompt: str = ""
    # Runs on the outgoing message list after the system message is in place
    state_modifier: StateModifier | None = None

    @field_validator("tools")
    @classmethod
    def _validate_tools(cls, tools: list[BaseTool]) -> list[BaseTool]:
        if not tools:
            msg = "At least one tool is required"
            raise ValueError(msg)
        seen: set[str] = set()
        for tool in tools:
            if tool.name in seen:
                msg = f"Duplicate tool name: {tool.name}"
                raise ValueError(msg)
            seen.add(tool.name)
        return tools

    @classmethod
    def create(
        cls,
        model: BaseChatModel,
        tools: Sequence[BaseTool],
        core: CoreConfig | None = None,
        **overrides: Any,
    ) -> "AgentConfig":
        """Create an AgentConfig, taking unset values from a CoreConfig.

        Args:
            model: Chat model used by the control loop
            tools: Tools exposed to generated code
            core: Optional file-loaded core configuration
            **overrides: Explicit field values, applied last

        Returns:
            Validated AgentConfig
        """
        core = core or CoreConfig()
        values: dict[str, Any] = {
            "model": model,
            "tools": list(tools),
            "executor": core.executor,
            "max_iterations": core.loop.max_iterations,
            "system_prompt": core.loop.system_prompt,
        }
        values.update(overrides)
        return cls(**values)
