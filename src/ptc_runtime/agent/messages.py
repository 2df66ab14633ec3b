"""Message content parts as a closed set of variants.

LangChain message content is either a string or a list of strings and typed
dicts, and tool calls may also live on ``AIMessage.tool_calls``. Everything
that reads message content goes through ``iter_content_parts`` and matches
on the variants below, so a new part kind is added in one place.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, assert_never

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ToolCallPart:
    id: str | None
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultPart:
    tool_call_id: str | None
    content: str


@dataclass(frozen=True)
class OpaquePart:
    """Provider-specific block PTC does not interpret (images, reasoning, ...)."""

    kind: str
    data: dict[str, Any] = field(default_factory=dict)


ContentPart = TextPart | ToolCallPart | ToolResultPart | OpaquePart


def _content_block(block: str | dict[str, Any]) -> ContentPart:
    if isinstance(block, str):
        return TextPart(block)
    if not isinstance(block, dict):
        msg = f"Unsupported content block: {type(block).__name__}"
        raise ValueError(msg)

    kind = block.get("type")
    if kind == "text":
        return TextPart(str(block.get("text", "")))
    if kind == "tool_use":
        args = block.get("input")
        return ToolCallPart(block.get("id"), str(block.get("name", "")), args if isinstance(args, dict) else {})
    if kind == "tool_result":
        return ToolResultPart(block.get("tool_use_id"), _stringify_result(block.get("content", "")))
    if isinstance(kind, str):
        return OpaquePart(kind, block)
    msg = f"Content block without a type: {block!r}"
    raise ValueError(msg)


def _stringify_result(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part.text for part in map(_content_block, content) if isinstance(part, TextPart)
        )
    return str(content)


def iter_content_parts(message: BaseMessage) -> Iterator[ContentPart]:
    """Yield the content of a message as typed parts, in order.

    Raises:
        ValueError: If a content block has an unrecognised shape
    """
    if isinstance(message, ToolMessage):
        yield ToolResultPart(message.tool_call_id, _stringify_result(message.content))
        return

    seen_call_ids: set[str] = set()
    blocks = [message.content] if isinstance(message.content, str) else message.content
    for block in blocks:
        part = _content_block(block)
        if isinstance(part, ToolCallPart) and part.id:
            seen_call_ids.add(part.id)
        yield part

    if isinstance(message, AIMessage):
        for call in message.tool_calls:
            if call.get("id") and call["id"] in seen_call_ids:
                continue
            yield ToolCallPart(call.get("id"), call["name"], call.get("args", {}))


def message_text(message: BaseMessage) -> str:
    """Text content of a message, text parts joined by newlines."""
    texts: list[str] = []
    for part in iter_content_parts(message):
        match part:
            case TextPart(text=text):
                if text:
                    texts.append(text)
            case ToolCallPart() | ToolResultPart() | OpaquePart():
                pass
            case _:
                assert_never(part)
    return "\n".join(texts)


def tool_calls_of(message: BaseMessage) -> list[ToolCallPart]:
    """Tool-call parts of a message, in order."""
    calls: list[ToolCallPart] = []
    for part in iter_content_parts(message):
        match part:
            case ToolCallPart():
                calls.append(part)
            case TextPart() | ToolResultPart() | OpaquePart():
                pass
            case _:
                assert_never(part)
    return calls
