"""Pytest configuration and shared fixtures for ptc-runtime tests."""

import json
from collections.abc import Sequence
from typing import Any

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.tools import Tool
from pydantic import Field

from ptc_runtime.agent.prompts import reset_loader

# ============================================================================
# Scripted Chat Model
# ============================================================================


class ScriptedChatModel(BaseChatModel):
    """Chat model that replays a fixed script of replies.

    The last reply repeats once the script is exhausted. Every call's input
    messages are recorded on ``calls``.
    """

    responses: list[Any] = Field(default_factory=list)
    calls: list[list[BaseMessage]] = Field(default_factory=list)
    bound_tools: list[Any] = Field(default_factory=list)
    fail_with: str | None = None

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(
        self,
        messages: list[BaseMessage],
        stop: list[str] | None = None,
        run_manager: Any = None,
        **kwargs: Any,
    ) -> ChatResult:
        self.calls.append(list(messages))
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)

        scripted = self.responses[min(len(self.calls), len(self.responses)) - 1]
        # A fresh message per call; add_messages keys on message ids
        if isinstance(scripted, AIMessage):
            message = AIMessage(content=scripted.content, tool_calls=list(scripted.tool_calls))
        else:
            message = AIMessage(content=scripted)
        return ChatResult(generations=[ChatGeneration(message=message)])

    def bind_tools(self, tools: Sequence[Any], **kwargs: Any) -> "ScriptedChatModel":
        self.bound_tools = list(tools)
        return self


# ============================================================================
# Tool Fixtures
# ============================================================================


def _calculate(expression: str) -> str:
    left, _, right = expression.replace(" ", "").partition("+")
    return str(int(left) + int(right))


def _get_team_members(department: str) -> str:
    return json.dumps([{"id": "emp_1", "name": "Alice"}, {"id": "emp_2", "name": "Bob"}])


def _get_expenses(employee_id: str) -> str:
    return json.dumps({"employee_id": employee_id or "all", "total": 1250})


def _explode(tool_input: str) -> str:
    msg = "database unavailable"
    raise ValueError(msg)


@pytest.fixture
def calculator_tool():
    return Tool(name="calculator", func=_calculate, description="Add two integers, e.g. '2+2'.")


@pytest.fixture
def team_tools():
    return [
        Tool(name="get_team_members", func=_get_team_members, description="List members of a department."),
        Tool(name="get_expenses", func=_get_expenses, description="Expenses for an employee id."),
    ]


@pytest.fixture
def failing_tool():
    return Tool(name="flaky_lookup", func=_explode, description="Always fails.")


@pytest.fixture
def scripted_model():
    """Factory for ScriptedChatModel instances."""

    def _create(*responses: Any, fail_with: str | None = None) -> ScriptedChatModel:
        return ScriptedChatModel(responses=list(responses), fail_with=fail_with)

    return _create


@pytest.fixture(autouse=True)
def _reset_prompt_loader():
    yield
    reset_loader()
