"""Tool Registry - Name-indexed table of caller-supplied tools.

The registry is the single dispatch point shared by the HTTP tool server and
the direct (stdio) execution mode, so both speak the same request/response
shapes.
"""

import json
from collections.abc import Iterator, Sequence
from typing import Any

import structlog
from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from .exceptions import ToolNotFoundError

logger = structlog.get_logger(__name__)

MAX_ERROR_LENGTH = 500


class ToolCallRequest(BaseModel):
    """Invocation request: ``{"tool_name": str, "input": str}``."""

    tool_name: str
    input: str = ""


class ToolCallResponse(BaseModel):
    """Invocation response.

    Success carries ``result``; failure carries ``error``. ``tool`` and
    ``input`` echo the request in both cases.
    """

    success: bool
    tool: str
    input: str
    result: str | None = None
    error: str | None = Field(default=None)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def simplify_tool_error(error: Exception, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Simplify tool error messages by removing verbose input args.

    Example:
        ValidationError with missing field -> "Field 'department': field required"
        Generic error -> "Error message..." (truncated if too long)
    """
    # Pydantic ValidationError (missing/invalid fields)
    if hasattr(error, "errors") and callable(error.errors):
        errors = error.errors()
        if errors:
            first_error = errors[0]
            field = first_error.get("loc", ["unknown"])[-1]
            msg = first_error.get("msg", "validation failed")
            return f"Field '{field}': {msg}"

    error_str = str(error) or type(error).__name__
    if len(error_str) > max_length:
        return error_str[:max_length] + "..."
    return error_str


def stringify_tool_output(output: Any) -> str:
    """Coerce a tool's return value into the string the wire protocol carries."""
    if isinstance(output, str):
        return output
    if isinstance(output, (dict, list)):
        return json.dumps(output)
    # ToolMessage-like objects returned by content_and_artifact tools
    content = getattr(output, "content", None)
    if isinstance(content, str):
        return content
    return str(output)


class ToolRegistry:
    """Registry of tools available to generated code.

    Tools are held by reference and never mutated. Lookups are read-only, so
    concurrent invocations need no locking here; a tool with side effects is
    responsible for its own synchronisation.
    """

    def __init__(self, tools: Sequence[BaseTool]) -> None:
        """Initialize the registry.

        Args:
            tools: Tools to register, names must be unique

        Raises:
            ValueError: If two tools share a name
        """
        self._tools: dict[str, BaseTool] = {}
        for tool in tools:
            if tool.name in self._tools:
                msg = f"Duplicate tool name: {tool.name}"
                raise ValueError(msg)
            self._tools[tool.name] = tool

        logger.debug("Initialized ToolRegistry", tools=list(self._tools))

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        """Tool names in registration order."""
        return list(self._tools)

    def get(self, name: str) -> BaseTool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError: If no tool has this name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def describe(self) -> list[dict[str, str]]:
        """Name/description pairs in registration order."""
        return [{"name": t.name, "description": t.description} for t in self._tools.values()]

    async def invoke(self, tool_name: str, tool_input: str) -> ToolCallResponse:
        """Invoke a tool and encode the outcome.

        Unknown tools and tool exceptions are recovered here and returned as a
        failed response; this method does not raise for per-request failures.

        Args:
            tool_name: Registered tool name
            tool_input: Raw string input passed to the tool

        Returns:
            ToolCallResponse describing success or failure
        """
        try:
            tool = self.get(tool_name)
        except ToolNotFoundError as e:
            logger.warning("Tool not found", tool=tool_name)
            return ToolCallResponse(success=False, error=str(e), tool=tool_name, input=tool_input)

        try:
            output = await tool.ainvoke(tool_input)
        except Exception as e:
            logger.warning("Tool invocation failed", tool=tool_name, error=str(e))
            return ToolCallResponse(
                success=False,
                error=simplify_tool_error(e),
                tool=tool_name,
                input=tool_input,
            )

        result = stringify_tool_output(output)
        logger.debug("Tool invoked", tool=tool_name, result_length=len(result))
        return ToolCallResponse(success=True, result=result, tool=tool_name, input=tool_input)
