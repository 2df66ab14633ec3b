"""Tool-calling agent - Baseline loop using the model's structured tool calls.

Useful for comparing against the PTC agent with the same tools: each tool is
bound with a single string ``input`` parameter and dispatched through the
same ToolRegistry the tool server uses.
"""

import json
from collections.abc import Sequence
from typing import Annotated, Any, TypedDict

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AnyMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from langgraph.types import Checkpointer

from ptc_runtime.config import StateModifier
from ptc_runtime.core.exceptions import InvalidStateError, ModelCallError
from ptc_runtime.core.registry import ToolRegistry

from .agent import with_system_message
from .messages import ToolCallPart, tool_calls_of

logger = structlog.get_logger(__name__)


class ToolCallingState(TypedDict):
    messages: Annotated[list[AnyMessage], add_messages]


def tool_schema(tool: BaseTool) -> dict[str, Any]:
    """OpenAI-style function schema with a single string ``input`` parameter."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": "object",
                "properties": {
                    "input": {
                        "type": "string",
                        "description": "The input query for the tool",
                    },
                },
                "required": ["input"],
                "additionalProperties": False,
            },
        },
    }


def _tool_input(call: ToolCallPart) -> str:
    value = call.args.get("input")
    if isinstance(value, str):
        return value
    return json.dumps(call.args)


def create_tool_calling_agent(
    model: BaseChatModel,
    tools: Sequence[BaseTool],
    *,
    system_message: str | None = None,
    state_modifier: StateModifier | None = None,
    checkpointer: Checkpointer | None = None,
) -> Any:
    """Compile a two-node (agent, tools) LangGraph.

    The system message is placed first and the state modifier then sees the
    complete outgoing list, as in the PTC agent.

    Args:
        model: Chat model supporting bind_tools
        tools: Tools to expose as structured tool calls
        system_message: Optional system prompt
        state_modifier: Optional transform of the outgoing message list
        checkpointer: Optional LangGraph checkpointer

    Returns:
        Compiled graph taking ``{"messages": [...]}``
    """
    registry = ToolRegistry(tools)
    bound_model = model.bind_tools([tool_schema(tool) for tool in registry])

    async def agent_node(state: ToolCallingState) -> dict[str, Any]:
        messages: list[Any] = list(state["messages"])
        if system_message:
            messages = with_system_message(messages, system_message)
        if state_modifier is not None:
            messages = state_modifier(messages)
        try:
            response = await bound_model.ainvoke(messages)
        except Exception as e:
            raise ModelCallError(f"Failed to generate content: {e}") from e
        return {"messages": [response]}

    async def tools_node(state: ToolCallingState) -> dict[str, Any]:
        last_message = state["messages"][-1]
        if not isinstance(last_message, AIMessage):
            msg = "Last message is not an AI message"
            raise InvalidStateError(msg)

        tool_messages = []
        for call in tool_calls_of(last_message):
            response = await registry.invoke(call.name, _tool_input(call))
            if response.success:
                content, status = response.result or "", "success"
            else:
                content, status = f"Error: {response.error}", "error"
            tool_messages.append(
                ToolMessage(content=content, tool_call_id=call.id or "", name=call.name, status=status)
            )
        logger.debug("Executed tool calls", count=len(tool_messages))
        return {"messages": tool_messages}

    def route_after_agent(state: ToolCallingState) -> str:
        last_message = state["messages"][-1]
        if isinstance(last_message, AIMessage) and tool_calls_of(last_message):
            return "tools"
        return END

    workflow = StateGraph(ToolCallingState)
    workflow.add_node("agent", agent_node)
    workflow.add_node("tools", tools_node)
    workflow.set_entry_point("agent")
    workflow.add_conditional_edges("agent", route_after_agent, {"tools": "tools", END: END})
    workflow.add_edge("tools", "agent")
    return workflow.compile(checkpointer=checkpointer)
