"""Integration tests for CodeExecutor running real Python children."""

import asyncio
import os
import sys
import textwrap
from pathlib import Path

import pytest
from langchain_core.tools import Tool

from ptc_runtime.config import ExecutionMode, ExecutorConfig
from ptc_runtime.core.exceptions import (
    CodeValidationError,
    ExecutionError,
    ExecutionTimeoutError,
    ProcessLaunchError,
    ToolServerConnectionError,
)
from ptc_runtime.core.executor import CodeExecutor

TEAM_REPORT = textwrap.dedent(
    """
    import json

    members = json.loads(get_team_members("engineering"))
    print("members:", len(members))
    for member in members:
        expenses = json.loads(get_expenses(member["id"]))
        print(member["name"], expenses["total"])
    """
)


class TestServerModeExecution:
    """Tests for generated Python reaching tools over the loopback server."""

    @pytest.mark.asyncio
    async def test_calculator(self, calculator_tool):
        async with CodeExecutor([calculator_tool]) as executor:
            result = await executor.execute("print(calculator('2+2'))")

        assert result.success
        assert result.output == "4"
        assert result.exit_code == 0
        assert result.execution_id == "exec_0001"
        assert len(result.code_hash) == 16

    @pytest.mark.asyncio
    async def test_tools_called_in_program_order(self, team_tools):
        async with CodeExecutor(team_tools) as executor:
            result = await executor.execute(TEAM_REPORT)

        assert result.output.splitlines() == ["members: 2", "Alice 1250", "Bob 1250"]

    @pytest.mark.asyncio
    async def test_structured_input_is_json_encoded(self, team_tools):
        code = 'print(get_expenses({"id": 7}))'
        async with CodeExecutor(team_tools) as executor:
            result = await executor.execute(code)

        assert '"employee_id": "{\\"id\\": 7}"' in result.output

    @pytest.mark.asyncio
    async def test_future_import_stays_first(self, calculator_tool):
        code = "from __future__ import annotations\n\nprint(calculator('1+1'))"
        async with CodeExecutor([calculator_tool]) as executor:
            result = await executor.execute(code)

        assert result.output == "2"

    @pytest.mark.asyncio
    async def test_tool_server_url_in_environment(self, calculator_tool):
        code = "import os\nprint(os.environ['PTC_TOOL_SERVER_URL'])"
        async with CodeExecutor([calculator_tool]) as executor:
            result = await executor.execute(code)
            assert result.output == executor.server.base_url

    @pytest.mark.asyncio
    async def test_sequential_executions_share_server(self, calculator_tool):
        async with CodeExecutor([calculator_tool]) as executor:
            first = await executor.execute("print(calculator('1+2'))")
            second = await executor.execute("print(calculator('3+4'))")

        assert (first.output, second.output) == ("3", "7")
        assert second.execution_id == "exec_0002"


class TestExecutionFailures:
    """Tests for failing programs."""

    @pytest.mark.asyncio
    async def test_syntax_error(self, calculator_tool):
        async with CodeExecutor([calculator_tool]) as executor:
            with pytest.raises(ExecutionError) as exc_info:
                await executor.execute("print(calculator('2+2')")

        assert "SyntaxError" in exc_info.value.stderr
        assert exc_info.value.result.exit_code != 0
        assert str(exc_info.value).startswith("Execution failed with exit code")

    @pytest.mark.asyncio
    async def test_partial_output_kept_on_failure(self, calculator_tool):
        code = "print('step 1')\nraise RuntimeError('step 2 broke')"
        async with CodeExecutor([calculator_tool]) as executor:
            with pytest.raises(ExecutionError) as exc_info:
                await executor.execute(code)

        assert exc_info.value.result.output == "step 1"
        assert "step 2 broke" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_uncaught_tool_error_fails_program(self, failing_tool):
        async with CodeExecutor([failing_tool]) as executor:
            with pytest.raises(ExecutionError) as exc_info:
                await executor.execute("flaky_lookup('q')")

        assert "ToolError" in exc_info.value.stderr
        assert "database unavailable" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_tool_error_can_be_caught(self, failing_tool):
        code = textwrap.dedent(
            """
            try:
                flaky_lookup("q")
            except ToolError as e:
                print("caught:", e)
            """
        )
        async with CodeExecutor([failing_tool]) as executor:
            result = await executor.execute(code)

        assert result.output == "caught: database unavailable"

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self, calculator_tool):
        code = "import time\nprint('started')\ntime.sleep(30)\nprint('finished')"
        async with CodeExecutor([calculator_tool]) as executor:
            with pytest.raises(ExecutionTimeoutError) as exc_info:
                await executor.execute(code, timeout=1)

        error = exc_info.value
        assert error.timeout_seconds == 1
        assert error.result.exit_code is None
        assert error.result.output == "started"
        assert "finished" not in error.stdout

    @pytest.mark.asyncio
    async def test_execute_before_start(self, calculator_tool):
        executor = CodeExecutor([calculator_tool])

        with pytest.raises(ToolServerConnectionError):
            await executor.execute("print(1)")

    @pytest.mark.asyncio
    async def test_code_too_long(self, calculator_tool):
        executor = CodeExecutor([calculator_tool], ExecutorConfig(max_code_length=10))

        with pytest.raises(CodeValidationError):
            await executor.execute("print('this is too long')")

    @pytest.mark.asyncio
    async def test_missing_interpreter(self, calculator_tool, tmp_path):
        config = ExecutorConfig(python_executable=str(tmp_path / "no-such-python"))
        async with CodeExecutor([calculator_tool], config) as executor:
            with pytest.raises(ProcessLaunchError):
                await executor.execute("print(1)")


class TestDirectModeExecution:
    """Tests for tool calls exchanged over the child's stdio."""

    @pytest.mark.asyncio
    async def test_calculator_without_server(self, calculator_tool):
        executor = CodeExecutor([calculator_tool], ExecutorConfig(mode=ExecutionMode.DIRECT))
        assert executor.server is None

        async with executor:
            result = await executor.execute("print(calculator('2+2'))")

        assert result.output == "4"
        assert result.stderr == ""
        assert executor.dispatcher.call_count == 1

    @pytest.mark.asyncio
    async def test_multiple_calls_and_plain_stderr(self, team_tools):
        code = TEAM_REPORT + "\nimport sys\nprint('note for the log', file=sys.stderr)\n"
        async with CodeExecutor(team_tools, ExecutorConfig(mode=ExecutionMode.DIRECT)) as executor:
            result = await executor.execute(code)

        assert result.output.splitlines() == ["members: 2", "Alice 1250", "Bob 1250"]
        assert result.stderr.strip() == "note for the log"

    @pytest.mark.asyncio
    async def test_tool_error_in_direct_mode(self, failing_tool):
        code = "try:\n    flaky_lookup('q')\nexcept ToolError as e:\n    print(e)"
        async with CodeExecutor([failing_tool], ExecutorConfig(mode=ExecutionMode.DIRECT)) as executor:
            result = await executor.execute(code)

        assert result.output == "database unavailable"


class TestExecutorBookkeeping:
    @pytest.mark.asyncio
    async def test_scratch_dir_removed(self, calculator_tool, tmp_path):
        config = ExecutorConfig(work_dir=str(tmp_path))
        async with CodeExecutor([calculator_tool], config) as executor:
            await executor.execute("print(1)")

        assert os.listdir(tmp_path) == []

    @pytest.mark.asyncio
    async def test_keep_files(self, calculator_tool, tmp_path):
        config = ExecutorConfig(work_dir=str(tmp_path), keep_files=True)
        async with CodeExecutor([calculator_tool], config) as executor:
            await executor.execute("print(1)")

        (scratch,) = tmp_path.iterdir()
        program = (scratch / "program.py").read_text()
        assert "def calculator(tool_input=" in program
        assert program.rstrip().endswith("print(1)")

    @pytest.mark.asyncio
    async def test_execution_stats(self, calculator_tool):
        async with CodeExecutor([calculator_tool]) as executor:
            await executor.execute("print(1)")
            with pytest.raises(ExecutionError):
                await executor.execute("raise SystemExit(3)")
            stats = executor.get_execution_stats()

        assert stats["total_executions"] == 2
        assert stats["successful_executions"] == 1
        assert stats["failed_executions"] == 1
        assert stats["active_executions"] == 0

    @pytest.mark.asyncio
    async def test_recent_executions(self, calculator_tool):
        async with CodeExecutor([calculator_tool]) as executor:
            await executor.execute("print(1)")
            with pytest.raises(ExecutionError):
                await executor.execute("raise SystemExit(3)")
            recent = executor.get_recent_executions(limit=5)

        assert [ex["execution_id"] for ex in recent] == ["exec_0001", "exec_0002"]
        assert [ex["exit_code"] for ex in recent] == [0, 3]
        assert recent[1]["success"] is False


def _alive(pid: int) -> bool:
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return False
    # Zombies have already been killed, they only wait to be reaped
    return stat.rsplit(")", 1)[1].split()[0] != "Z"


async def _wait_gone(pid: int, within: float = 3.0) -> bool:
    for _ in range(int(within / 0.05)):
        if not _alive(pid):
            return True
        await asyncio.sleep(0.05)
    return not _alive(pid)


BACKGROUND_SLEEPER = textwrap.dedent(
    """
    import subprocess
    import sys

    sleeper = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    print(sleeper.pid)
    """
)


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inspects /proc")
class TestChildProcessCleanup:
    """Tests for background processes started by generated code."""

    @pytest.mark.asyncio
    async def test_exit_status_decides_even_with_pipes_held_open(self, calculator_tool):
        code = BACKGROUND_SLEEPER + "print(calculator('2+2'))\n"
        async with CodeExecutor([calculator_tool], ExecutorConfig(execution_timeout=20)) as executor:
            result = await executor.execute(code)

        sleeper_pid, answer = result.output.splitlines()
        assert answer == "4"
        assert result.duration < 10
        assert await _wait_gone(int(sleeper_pid))

    @pytest.mark.asyncio
    async def test_timeout_kills_background_children(self, calculator_tool):
        code = BACKGROUND_SLEEPER + "import time\ntime.sleep(30)\n"
        async with CodeExecutor([calculator_tool]) as executor:
            with pytest.raises(ExecutionTimeoutError) as exc_info:
                await executor.execute(code, timeout=1)

        assert await _wait_gone(int(exc_info.value.result.output))


class TestToolNameMapping:
    @pytest.mark.asyncio
    async def test_colliding_tool_names_both_callable(self):
        tools = [
            Tool(name="get-x", func=lambda _: "dash", description="Dashed name."),
            Tool(name="get_x", func=lambda _: "underscore", description="Underscored name."),
            Tool(name="list", func=lambda _: "guarded", description="Shadows a builtin."),
        ]
        code = "print(get_x(), get_x_2(), list_(), list('ab'))"
        async with CodeExecutor(tools) as executor:
            result = await executor.execute(code)

        assert result.output == "underscore dash guarded ['a', 'b']"
