"""Code Executor - Run model-authored programs as local subprocesses.

The executor owns a ToolServer (server mode) or a DirectToolDispatcher (direct
mode), renders the language bridge for the registered tools, writes the
composed program to a scratch directory and runs it with a deadline, capturing
stdout and stderr in full.
"""

import asyncio
import contextlib
import os
import shutil
import signal
import tempfile
import time
from collections.abc import Coroutine, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any, NamedTuple

import structlog
from langchain_core.tools import BaseTool

from ptc_runtime.config.core import ExecutionLanguage, ExecutionMode, ExecutorConfig

from .bridges import UNREACHABLE_MARKER, BridgeRenderer
from .direct import STREAM_LIMIT, DirectToolDispatcher
from .exceptions import (
    CodeValidationError,
    CompilationError,
    ExecutionError,
    ExecutionTimeoutError,
    ProcessLaunchError,
    ToolServerConnectionError,
)
from .monitor import ExecutionMonitor, hash_code
from .registry import ToolRegistry
from .server import ToolServer

logger = structlog.get_logger(__name__)

TOOL_SERVER_URL_ENV = "PTC_TOOL_SERVER_URL"

GO_MOD = "module ptcprogram\n\ngo 1.21\n"

# Seconds to keep reading pipes after the child exits
OUTPUT_GRACE_PERIOD = 0.5


@dataclass(frozen=True)
class ExecutionResult:
    """Result of one code execution."""

    output: str  # stripped stdout
    stdout: str
    stderr: str
    exit_code: int | None = None  # None if the child never finished
    duration: float = 0.0
    execution_id: str = ""
    code_hash: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class _ProcessOutput(NamedTuple):
    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool


async def _drain(stream: asyncio.StreamReader, sink: bytearray) -> None:
    while chunk := await stream.read(65536):
        sink.extend(chunk)


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill the child and everything left in its process group."""
    with contextlib.suppress(ProcessLookupError, PermissionError):
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    await process.wait()


async def _collect(readers: list[asyncio.Task[None]], grace: float) -> None:
    done, pending = await asyncio.wait(readers, timeout=grace)
    if pending:
        logger.warning("Output pipes still open after child exit, discarding", pending=len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    for task in done:
        task.result()


class CodeExecutor:
    """Executes generated Python or Go programs against a set of tools.

    Lifecycle: start() brings up the owned tool server, stop() shuts it
    down. Both may be called repeatedly. The executor never mutates the tools.
    """

    def __init__(self, tools: Sequence[BaseTool], config: ExecutorConfig | None = None) -> None:
        """Initialize the executor.

        Args:
            tools: Tools exposed to generated code
            config: Executor configuration

        Raises:
            ValueError: On duplicate tool names
        """
        self.config = config or ExecutorConfig()
        self.registry = ToolRegistry(tools)
        self.renderer = BridgeRenderer(self.registry, self.config.language)
        self.monitor = ExecutionMonitor()
        self.execution_count = 0

        self.server: ToolServer | None = None
        self.dispatcher: DirectToolDispatcher | None = None
        if self.config.mode is ExecutionMode.SERVER:
            self.server = ToolServer(self.registry, self.config.server)
        else:
            self.dispatcher = DirectToolDispatcher(self.registry)

        logger.info(
            "Initialized CodeExecutor",
            language=self.config.language.value,
            mode=self.config.mode.value,
            tools=self.registry.names,
        )

    @property
    def language(self) -> ExecutionLanguage:
        return self.config.language

    @property
    def mode(self) -> ExecutionMode:
        return self.config.mode

    async def start(self) -> None:
        """Start the owned tool server. A no-op in direct mode."""
        if self.server is not None:
            await self.server.start()

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the owned tool server. Safe to call when never started."""
        if self.server is not None:
            await self.server.stop(timeout)

    def get_tool_definitions(self) -> str:
        """Tool catalog text for the system prompt."""
        return self.renderer.tool_definitions()

    def get_execution_stats(self) -> dict[str, Any]:
        return self.monitor.get_execution_stats()

    def get_recent_executions(self, limit: int = 10) -> list[dict[str, Any]]:
        return self.monitor.get_recent_executions(limit)

    async def execute(self, code: str, timeout: float | None = None) -> ExecutionResult:
        """Execute model-authored code with the tool bridge injected.

        Args:
            code: Source in the configured language
            timeout: Execution deadline in seconds (default: config.execution_timeout)

        Returns:
            ExecutionResult of a program that exited with status 0

        Raises:
            CodeValidationError: If the code is longer than max_code_length
            ToolServerConnectionError: If the tool server is not running or the
                program could not reach it
            ProcessLaunchError: If the interpreter or toolchain cannot be started
            CompilationError: If a Go program fails to build
            ExecutionTimeoutError: If the deadline elapsed and the child was killed
            ExecutionError: If the program exited with a non-zero status
        """
        self.execution_count += 1
        execution_id = f"exec_{self.execution_count:04d}"
        code_hash = hash_code(code)
        deadline = timeout or self.config.execution_timeout

        if len(code) > self.config.max_code_length:
            msg = f"Code length {len(code)} exceeds maximum of {self.config.max_code_length} characters"
            raise CodeValidationError(msg, self._result("", "", None, 0.0, execution_id, code_hash))

        if self.server is not None and not self.server.is_running:
            msg = "Tool server is not running; call start() before execute()"
            raise ToolServerConnectionError(msg, self._result("", "", None, 0.0, execution_id, code_hash))

        logger.info(
            "Executing code",
            execution_id=execution_id,
            code_hash=code_hash,
            code_length=len(code),
            language=self.language.value,
        )
        self.monitor.start_execution(execution_id, code, self.language.value)
        started = time.monotonic()

        work_dir = Path(tempfile.mkdtemp(prefix=f"ptc_{execution_id}_", dir=self.config.work_dir))
        try:
            if self.language is ExecutionLanguage.GO:
                result = await self._execute_go(code, work_dir, deadline, started, execution_id, code_hash)
            else:
                result = await self._execute_python(code, work_dir, deadline, started, execution_id, code_hash)
        except ExecutionError as e:
            exit_code = e.result.exit_code if e.result else None
            self.monitor.end_execution(execution_id, success=False, exit_code=exit_code, error=str(e))
            logger.warning(
                "Execution failed",
                execution_id=execution_id,
                error_type=type(e).__name__,
                exit_code=exit_code,
            )
            raise
        except asyncio.CancelledError:
            self.monitor.end_execution(execution_id, success=False, error="cancelled")
            logger.info("Execution cancelled", execution_id=execution_id)
            raise
        finally:
            if self.config.keep_files:
                logger.debug("Keeping execution files", execution_id=execution_id, path=str(work_dir))
            else:
                shutil.rmtree(work_dir, ignore_errors=True)

        self.monitor.end_execution(execution_id, success=True, exit_code=result.exit_code)
        logger.info(
            "Execution completed",
            execution_id=execution_id,
            duration=round(result.duration, 3),
            output_length=len(result.output),
        )
        return result

    async def _execute_python(
        self,
        code: str,
        work_dir: Path,
        timeout: float,
        started: float,
        execution_id: str,
        code_hash: str,
    ) -> ExecutionResult:
        bridge = self.renderer.render_bridge(
            self.mode,
            base_url=self.server.base_url if self.server else "",
            request_timeout=self.config.server.request_timeout,
        )
        program = work_dir / "program.py"
        program.write_text(self.renderer.compose_python(code, bridge), encoding="utf-8")

        output = await self._run(
            [self.config.python_executable, "-u", str(program)],
            work_dir,
            timeout,
            interactive=self.dispatcher is not None,
        )
        return self._check(output, timeout, started, execution_id, code_hash)

    async def _execute_go(
        self,
        code: str,
        work_dir: Path,
        timeout: float,
        started: float,
        execution_id: str,
        code_hash: str,
    ) -> ExecutionResult:
        bridge = self.renderer.render_bridge(
            self.mode,
            base_url=self.server.base_url if self.server else "",
            request_timeout=self.config.server.request_timeout,
        )
        (work_dir / "main.go").write_text(self.renderer.compose_go(code), encoding="utf-8")
        (work_dir / "ptc_tools.go").write_text(bridge, encoding="utf-8")
        (work_dir / "go.mod").write_text(GO_MOD, encoding="utf-8")

        binary = work_dir / ("program.exe" if os.name == "nt" else "program")
        build = await self._run(
            [self.config.go_executable, "build", "-o", str(binary), "."],
            work_dir,
            self.config.compile_timeout,
            interactive=False,
        )
        if build.timed_out:
            result = self._result(build.stdout, build.stderr, None, time.monotonic() - started, execution_id, code_hash)
            raise ExecutionTimeoutError(self.config.compile_timeout, result, operation="go build")
        if build.returncode != 0:
            result = self._result(
                build.stdout, build.stderr, build.returncode, time.monotonic() - started, execution_id, code_hash
            )
            raise CompilationError(f"Go compilation failed:\n{build.stderr.strip()}", result)

        output = await self._run([str(binary)], work_dir, timeout, interactive=False)
        return self._check(output, timeout, started, execution_id, code_hash)

    def _child_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["PYTHONIOENCODING"] = "utf-8"
        env["PYTHONUNBUFFERED"] = "1"
        if self.server is not None:
            env[TOOL_SERVER_URL_ENV] = self.server.base_url
        return env

    async def _run(self, argv: list[str], cwd: Path, timeout: float, *, interactive: bool) -> _ProcessOutput:
        """Run a child to completion or deadline, capturing both streams.

        In interactive (direct) mode stderr is routed through the dispatcher,
        which answers tool calls on the child's stdin. The child leads its own
        process group; the group is killed once the child exits, times out or
        is cancelled, so background processes it started do not outlive it.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                env=self._child_env(),
                stdin=asyncio.subprocess.PIPE if interactive else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to launch {argv[0]}: {e}") from e

        if process.stdout is None or process.stderr is None:
            await _kill(process)
            raise ProcessLaunchError(f"Failed to attach output pipes to {argv[0]}")
        stdout, stderr = bytearray(), bytearray()
        readers: list[Coroutine[Any, Any, None]] = [_drain(process.stdout, stdout)]
        if interactive and self.dispatcher is not None and process.stdin is not None:
            readers.append(self.dispatcher.pump(process.stderr, process.stdin, stderr))
        else:
            readers.append(_drain(process.stderr, stderr))

        tasks = [asyncio.create_task(reader) for reader in readers]
        timed_out = False
        try:
            try:
                await asyncio.wait_for(process.wait(), timeout)
            except TimeoutError:
                timed_out = True
                logger.warning("Child exceeded deadline, killing", argv0=argv[0], timeout=timeout)
            await _kill(process)
            await _collect(tasks, OUTPUT_GRACE_PERIOD)
        except asyncio.CancelledError:
            await _kill(process)
            raise
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if process.stdin is not None:
                process.stdin.close()

        return _ProcessOutput(
            returncode=None if timed_out else process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            timed_out=timed_out,
        )

    def _result(
        self,
        stdout: str,
        stderr: str,
        exit_code: int | None,
        duration: float,
        execution_id: str,
        code_hash: str,
    ) -> ExecutionResult:
        return ExecutionResult(
            output=stdout.strip(),
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration=duration,
            execution_id=execution_id,
            code_hash=code_hash,
        )

    def _check(
        self,
        output: _ProcessOutput,
        timeout: float,
        started: float,
        execution_id: str,
        code_hash: str,
    ) -> ExecutionResult:
        result = self._result(
            output.stdout, output.stderr, output.returncode, time.monotonic() - started, execution_id, code_hash
        )
        if output.timed_out:
            raise ExecutionTimeoutError(timeout, result)
        if output.returncode != 0:
            if UNREACHABLE_MARKER in output.stderr:
                msg = f"Generated program could not reach the tool server:\n{output.stderr.strip()}"
                raise ToolServerConnectionError(msg, result)
            msg = f"Execution failed with exit code {output.returncode}:\n{output.stderr.strip()}"
            raise ExecutionError(msg, result)
        return result

    async def __aenter__(self) -> "CodeExecutor":
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
        await self.stop()
