"""PTC Agent - Bounded generate/execute control loop.

The loop is a two-node LangGraph:
- agent: calls the model with the system prompt and the conversation
- execute_code: runs the code in the model's message and appends the result

After ``agent`` the graph moves to ``execute_code`` when the reply carries a
Python or Go code fence and ends otherwise. After ``execute_code`` it always
returns to ``agent``, which ends the run with a fixed advisory message once
the iteration ceiling is reached.
"""

from collections.abc import AsyncIterator
from types import TracebackType
from typing import Annotated, Any, TypedDict

import structlog
from langchain_core.messages import AIMessage, AnyMessage, BaseMessage, HumanMessage, SystemMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from langgraph.types import Checkpointer

from ptc_runtime.config import AgentConfig
from ptc_runtime.core.exceptions import EmptyResponseError, ModelCallError

from .extraction import contains_code
from .messages import message_text, tool_calls_of
from .node import PTCToolNode
from .prompts import build_system_prompt

logger = structlog.get_logger(__name__)

MAX_ITERATIONS_MESSAGE = "Maximum iterations reached. Please try a simpler query."


class PTCState(TypedDict, total=False):
    """Conversation state for one agent run."""

    messages: Annotated[list[AnyMessage], add_messages]
    iteration_count: int


def with_system_message(
    messages: list[AnyMessage],
    system_prompt: str,
) -> list[BaseMessage]:
    """Return the messages with the system prompt as the single leading system message.

    A caller-supplied leading system message is kept and placed in front of
    the system prompt, so the prompt is never duplicated.
    """
    if messages and isinstance(messages[0], SystemMessage):
        caller_prompt = message_text(messages[0]).strip()
        merged = f"{caller_prompt}\n\n{system_prompt}" if caller_prompt else system_prompt
        return [SystemMessage(content=merged), *messages[1:]]
    return [SystemMessage(content=system_prompt), *messages]


class PTCAgent:
    """Agent that answers by writing code against the registered tools.

    Owns a PTCToolNode (and through it the CodeExecutor and tool server).
    Call start() before invoking and close() when done, or use the agent as
    an async context manager.
    """

    def __init__(self, config: AgentConfig, checkpointer: Checkpointer | None = None) -> None:
        """Initialize PTC agent.

        Args:
            config: Agent configuration
            checkpointer: Optional LangGraph checkpointer passed to compile()
        """
        self.config = config
        self.node = PTCToolNode(config.tools, config.executor)
        self.system_prompt = build_system_prompt(
            config.system_prompt,
            config.executor.language,
            self.node.executor.get_tool_definitions(),
        )
        self._graph = self._build_graph(checkpointer)

        logger.info(
            "Initialized PTCAgent",
            language=config.executor.language.value,
            mode=config.executor.mode.value,
            max_iterations=config.max_iterations,
            tools=[tool.name for tool in config.tools],
        )

    @property
    def graph(self) -> Any:
        """Compiled LangGraph runnable."""
        return self._graph

    @property
    def recursion_limit(self) -> int:
        # Two supersteps per iteration plus the final advisory pass
        return 2 * self.config.max_iterations + 5

    def _build_graph(self, checkpointer: Checkpointer | None) -> Any:
        workflow = StateGraph(PTCState)
        workflow.add_node("agent", self._agent_node)
        workflow.add_node("execute_code", self._execute_node)
        workflow.set_entry_point("agent")
        workflow.add_conditional_edges("agent", self._route_after_agent, {"execute_code": "execute_code", END: END})
        workflow.add_conditional_edges("execute_code", self._route_after_execution, {"agent": "agent", END: END})
        return workflow.compile(checkpointer=checkpointer).with_config({"recursion_limit": self.recursion_limit})

    def prepare_messages(self, messages: list[AnyMessage]) -> list[BaseMessage]:
        """Messages sent to the model: system prompt first, then the state modifier."""
        prepared = with_system_message(messages, self.system_prompt)
        if self.config.state_modifier is not None:
            prepared = self.config.state_modifier(prepared)
        return prepared

    async def _agent_node(self, state: PTCState) -> dict[str, Any]:
        iteration_count = state.get("iteration_count", 0)
        if iteration_count >= self.config.max_iterations:
            logger.info("Maximum iterations reached", iterations=iteration_count)
            return {"messages": [AIMessage(content=MAX_ITERATIONS_MESSAGE)]}

        iteration_count += 1
        messages = self.prepare_messages(state.get("messages", []))
        logger.debug("Calling model", iteration=iteration_count, message_count=len(messages))

        try:
            response = await self.config.model.ainvoke(messages)
        except Exception as e:
            raise ModelCallError(f"Failed to generate content: {e}") from e

        if not message_text(response).strip() and not tool_calls_of(response):
            msg = f"Empty response from model at iteration {iteration_count}"
            raise EmptyResponseError(msg)

        return {"messages": [response], "iteration_count": iteration_count}

    async def _execute_node(self, state: PTCState) -> dict[str, Any]:
        return await self.node(state)

    def _route_after_agent(self, state: PTCState) -> str:
        messages = state.get("messages", [])
        if messages and isinstance(messages[-1], AIMessage) and contains_code(messages[-1]):
            return "execute_code"
        return END

    def _route_after_execution(self, state: PTCState) -> str:
        messages = state.get("messages", [])
        # execute_code appends nothing when the message had no extractable code
        if messages and isinstance(messages[-1], HumanMessage):
            return "agent"
        return END

    @staticmethod
    def _coerce_input(agent_input: str | list[AnyMessage] | dict[str, Any]) -> dict[str, Any]:
        if isinstance(agent_input, str):
            return {"messages": [HumanMessage(content=agent_input)], "iteration_count": 0}
        if isinstance(agent_input, list):
            return {"messages": agent_input, "iteration_count": 0}
        return {"iteration_count": 0, **agent_input}

    async def start(self) -> None:
        """Start the tool server behind the executor."""
        await self.node.start()

    async def close(self) -> None:
        """Stop the tool server. Safe to call more than once."""
        await self.node.close()

    async def ainvoke(
        self,
        agent_input: str | list[AnyMessage] | dict[str, Any],
        config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run the loop to completion.

        Args:
            agent_input: A user query, a message list, or a PTCState dict
            config: Optional LangGraph run config (thread_id, callbacks, ...)

        Returns:
            Final PTCState

        Raises:
            ModelCallError: If the model raised
            EmptyResponseError: If the model returned no content
        """
        return await self._graph.ainvoke(self._coerce_input(agent_input), config=config)

    async def astream(
        self,
        agent_input: str | list[AnyMessage] | dict[str, Any],
        config: dict[str, Any] | None = None,
        stream_mode: str = "updates",
    ) -> AsyncIterator[Any]:
        """Stream graph updates for one run."""
        async for chunk in self._graph.astream(
            self._coerce_input(agent_input), config=config, stream_mode=stream_mode
        ):
            yield chunk

    async def __aenter__(self) -> "PTCAgent":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.close()


async def create_ptc_agent(config: AgentConfig, checkpointer: Checkpointer | None = None) -> PTCAgent:
    """Create a PTCAgent and start its tool server.

    Args:
        config: Agent configuration
        checkpointer: Optional LangGraph checkpointer

    Returns:
        Started PTCAgent; call close() when done
    """
    agent = PTCAgent(config, checkpointer=checkpointer)
    await agent.start()
    return agent
