"""PTC node - Execute code from the latest model message and fold the result back."""

from collections.abc import Sequence
from typing import Any

import structlog
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage
from langchain_core.tools import BaseTool

from ptc_runtime.config.core import ExecutorConfig
from ptc_runtime.core.exceptions import ExecutionError, InvalidStateError, NoCodeFoundError
from ptc_runtime.core.executor import CodeExecutor, ExecutionResult

from .extraction import extract_code

logger = structlog.get_logger(__name__)

RESULT_HEADER = "[Code Execution Result]"
ERROR_HEADER = "[Code Execution Error]"


def format_execution_result(result: ExecutionResult) -> str:
    return f"{RESULT_HEADER}\n{result.output}"


def format_execution_error(error: ExecutionError) -> str:
    output = error.result.output if error.result else ""
    return f"{ERROR_HEADER}\n{error}\n\nOutput:\n{output}"


class PTCToolNode:
    """Graph node that runs model-authored code with tool access.

    Execution failures are conversational: they come back as a message the
    model can react to on the next pass, never as an exception.
    """

    def __init__(self, tools: Sequence[BaseTool], config: ExecutorConfig | None = None) -> None:
        self.executor = CodeExecutor(tools, config)

    async def start(self) -> None:
        await self.executor.start()

    async def close(self) -> None:
        """Stop the owned executor. Safe to call when never started."""
        await self.executor.stop()

    async def invoke(self, state: dict[str, Any]) -> dict[str, Any]:
        """Execute the code in the last message.

        Args:
            state: Graph state with a ``messages`` list

        Returns:
            State update appending one result or error message

        Raises:
            InvalidStateError: If the last message is not from the model
            NoCodeFoundError: If the last message carries no code
        """
        messages: list[AnyMessage] = state.get("messages") or []
        if not messages:
            msg = "No messages in state"
            raise InvalidStateError(msg)

        last_message = messages[-1]
        if not isinstance(last_message, AIMessage):
            msg = f"Last message must be from the model, got {last_message.type}"
            raise InvalidStateError(msg)

        code = extract_code(last_message)

        try:
            result = await self.executor.execute(code)
        except ExecutionError as e:
            logger.info("Folding execution error into conversation", error_type=type(e).__name__)
            return {"messages": [HumanMessage(content=format_execution_error(e))]}

        return {"messages": [HumanMessage(content=format_execution_result(result))]}

    async def __call__(self, state: dict[str, Any]) -> dict[str, Any]:
        """Graph entry point: a message without code ends the run quietly."""
        try:
            return await self.invoke(state)
        except NoCodeFoundError:
            logger.info("No executable code in model message")
            return {"messages": []}
