"""Tests for ToolRegistry dispatch and wire encoding."""

import pytest
from langchain_core.tools import Tool
from pydantic import BaseModel, ValidationError

from ptc_runtime.core.exceptions import ToolNotFoundError
from ptc_runtime.core.registry import (
    ToolCallResponse,
    ToolRegistry,
    simplify_tool_error,
    stringify_tool_output,
)


class TestToolRegistry:
    """Tests for registry construction and lookup."""

    def test_names_in_registration_order(self, calculator_tool, team_tools):
        registry = ToolRegistry([calculator_tool, *team_tools])
        assert registry.names == ["calculator", "get_team_members", "get_expenses"]
        assert len(registry) == 3
        assert "calculator" in registry
        assert "missing" not in registry

    def test_duplicate_names_rejected(self, calculator_tool):
        with pytest.raises(ValueError, match="Duplicate tool name"):
            ToolRegistry([calculator_tool, calculator_tool])

    def test_get_unknown_raises(self, calculator_tool):
        registry = ToolRegistry([calculator_tool])
        with pytest.raises(ToolNotFoundError) as exc_info:
            registry.get("nope")
        assert exc_info.value.tool_name == "nope"

    def test_describe(self, calculator_tool):
        registry = ToolRegistry([calculator_tool])
        assert registry.describe() == [{"name": "calculator", "description": "Add two integers, e.g. '2+2'."}]


class TestToolRegistryInvoke:
    """Tests for per-request invocation outcomes."""

    @pytest.mark.asyncio
    async def test_success(self, calculator_tool):
        registry = ToolRegistry([calculator_tool])
        response = await registry.invoke("calculator", "2+2")

        assert response.success is True
        assert response.result == "4"
        assert response.to_wire() == {"success": True, "result": "4", "tool": "calculator", "input": "2+2"}

    @pytest.mark.asyncio
    async def test_unknown_tool_is_a_failed_response(self, calculator_tool):
        registry = ToolRegistry([calculator_tool])
        response = await registry.invoke("missing", "x")

        assert response.success is False
        assert response.to_wire() == {
            "success": False,
            "error": "Tool 'missing' not found",
            "tool": "missing",
            "input": "x",
        }

    @pytest.mark.asyncio
    async def test_tool_exception_is_a_failed_response(self, failing_tool):
        registry = ToolRegistry([failing_tool])
        response = await registry.invoke("flaky_lookup", "q")

        assert response.success is False
        assert response.error == "database unavailable"
        assert "result" not in response.to_wire()

    @pytest.mark.asyncio
    async def test_non_string_output_is_serialised(self):
        tool = Tool(name="lookup", func=lambda q: {"rows": [1, 2]}, description="d")
        response = await ToolRegistry([tool]).invoke("lookup", "")
        assert response.result == '{"rows": [1, 2]}'


class TestHelpers:
    def test_stringify(self):
        assert stringify_tool_output("x") == "x"
        assert stringify_tool_output([1, "a"]) == '[1, "a"]'
        assert stringify_tool_output(42) == "42"

    def test_simplify_validation_error(self):
        class Args(BaseModel):
            department: str

        with pytest.raises(ValidationError) as exc_info:
            Args()
        assert simplify_tool_error(exc_info.value) == "Field 'department': Field required"

    def test_simplify_truncates(self):
        assert simplify_tool_error(RuntimeError("x" * 600), max_length=10) == "x" * 10 + "..."

    def test_simplify_empty_message_uses_type(self):
        assert simplify_tool_error(KeyError()) == "KeyError"

    def test_response_round_trip(self):
        wire = {"success": False, "error": "boom", "tool": "t", "input": ""}
        assert ToolCallResponse.model_validate(wire).to_wire() == wire
