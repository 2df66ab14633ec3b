"""Direct mode - Serve tool calls over a child's stdio pipes.

In direct mode there is no tool server. The generated program writes one
request per line on stderr, framed by IPC markers, and blocks reading the
matching result line from stdin:

    stderr: __PTC_TOOL_CALL__{"tool_name": ..., "input": ...}__PTC_END_CALL__
    stdin:  __PTC_TOOL_RESULT__{"success": ..., "result"|"error": ..., ...}__PTC_END_RESULT__

Payloads are the same ToolCallRequest/ToolCallResponse shapes the server
speaks, dispatched through the same ToolRegistry.
"""

import asyncio
import json

import structlog
from pydantic import ValidationError

from .bridges import IPC_TOOL_CALL_END, IPC_TOOL_CALL_START, IPC_TOOL_RESULT_END, IPC_TOOL_RESULT_START
from .registry import ToolCallRequest, ToolCallResponse, ToolRegistry, simplify_tool_error

logger = structlog.get_logger(__name__)

# Longest single stderr line accepted from the child
STREAM_LIMIT = 2**20


def parse_tool_call(line: str) -> str | None:
    """Return the JSON payload of a tool-call line, or None for ordinary output."""
    start = line.find(IPC_TOOL_CALL_START)
    if start < 0:
        return None
    end = line.find(IPC_TOOL_CALL_END, start)
    if end < 0:
        return None
    return line[start + len(IPC_TOOL_CALL_START) : end]


def format_tool_result(response: ToolCallResponse) -> bytes:
    payload = json.dumps(response.to_wire(), ensure_ascii=True)
    return f"{IPC_TOOL_RESULT_START}{payload}{IPC_TOOL_RESULT_END}\n".encode()


class DirectToolDispatcher:
    """Answers tool calls a child process makes over its stdio."""

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry
        self.call_count = 0

    async def handle(self, payload: str) -> ToolCallResponse:
        """Dispatch one framed request payload."""
        try:
            request = ToolCallRequest.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Malformed direct tool request", error=simplify_tool_error(e))
            return ToolCallResponse(
                success=False,
                error=f"Malformed tool request: {simplify_tool_error(e)}",
                tool="",
                input="",
            )
        self.call_count += 1
        return await self.registry.invoke(request.tool_name, request.input)

    async def pump(
        self,
        stderr: asyncio.StreamReader,
        stdin: asyncio.StreamWriter,
        sink: bytearray,
    ) -> None:
        """Read the child's stderr until EOF, answering tool calls as they arrive.

        Lines that are not tool calls are copied to ``sink`` unchanged, so the
        captured stderr contains only the program's own diagnostics.

        Args:
            stderr: Child stderr stream
            stdin: Child stdin stream, results are written here
            sink: Buffer collecting ordinary stderr output
        """
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                # asyncio drops a line longer than the stream limit
                logger.warning("Discarded oversized stderr line from child", limit=STREAM_LIMIT)
                sink.extend(b"[ptc: oversized stderr line discarded]\n")
                continue
            if not line:
                break

            payload = parse_tool_call(line.decode("utf-8", errors="replace"))
            if payload is None:
                sink.extend(line)
                continue

            response = await self.handle(payload)
            try:
                stdin.write(format_tool_result(response))
                await stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.warning("Child closed stdin before tool result was delivered", tool=response.tool)
