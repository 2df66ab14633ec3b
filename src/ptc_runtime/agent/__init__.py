"""Agent package - Control loops built on the PTC core.

Structure:
- agent.py: PTCAgent, the bounded generate/execute loop (LangGraph)
- node.py: PTCToolNode, runs code from the latest model message
- extraction.py: Code extraction from model messages
- messages.py: Typed message content parts
- prompts/: System prompt templates
- tool_calling.py: Baseline agent using structured tool calls
"""

from .agent import MAX_ITERATIONS_MESSAGE, PTCAgent, PTCState, create_ptc_agent, with_system_message
from .extraction import contains_code, extract_code, extract_from_code_block
from .messages import (
    ContentPart,
    OpaquePart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    iter_content_parts,
    message_text,
)
from .node import PTCToolNode
from .prompts import PromptLoader, build_system_prompt
from .tool_calling import create_tool_calling_agent

__all__ = [
    "MAX_ITERATIONS_MESSAGE",
    "ContentPart",
    "OpaquePart",
    "PTCAgent",
    "PTCState",
    "PTCToolNode",
    "PromptLoader",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "build_system_prompt",
    "contains_code",
    "create_ptc_agent",
    "create_tool_calling_agent",
    "extract_code",
    "extract_from_code_block",
    "iter_content_parts",
    "message_text",
    "with_system_message",
]
