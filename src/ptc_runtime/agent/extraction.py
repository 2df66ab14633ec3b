"""Code extraction from model messages."""

import json
import re

from langchain_core.messages import BaseMessage

from ptc_runtime.core.exceptions import NoCodeFoundError

from .messages import message_text

FENCE = "```"

# Fences whose language tag marks the message as a request to execute
_EXECUTABLE_FENCE = re.compile(r"```[ \t]*(?:python3?|py|golang|go)(?![\w+#-])", re.IGNORECASE)


def extract_from_code_block(text: str) -> str:
    """Return the body of the first fenced code block, or "" if there is none.

    The body is the text after the opening fence's line (which may carry a
    language tag) up to the next fence, exclusive. An empty body counts as
    no block.
    """
    opening = text.find(FENCE)
    if opening < 0:
        return ""
    line_end = text.find("\n", opening + len(FENCE))
    if line_end < 0:
        return ""
    start = line_end + 1
    end = text.find(FENCE, opening + len(FENCE))
    if end <= start:
        return ""
    return text[start:end]


def _extract_json_code(text: str) -> str | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("code"), str):
        return data["code"]
    return None


def extract_code(message: BaseMessage) -> str:
    """Extract executable code from a model message.

    Priority: first fenced code block, then a JSON object's ``code`` field,
    then the raw message text.

    Raises:
        NoCodeFoundError: If the message has no text content
    """
    text = message_text(message)
    if not text.strip():
        msg = "No code found in message"
        raise NoCodeFoundError(msg)

    if code := extract_from_code_block(text):
        return code

    json_code = _extract_json_code(text)
    if json_code is not None:
        return json_code

    return text


def contains_code(message: BaseMessage) -> bool:
    """Whether a message carries a Python or Go code fence."""
    return bool(_EXECUTABLE_FENCE.search(message_text(message)))
