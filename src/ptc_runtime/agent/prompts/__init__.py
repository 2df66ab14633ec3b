"""Prompt templates for the PTC agent.

Templates are stored as .md.j2 files and rendered with Jinja2.

Usage:
    from ptc_runtime.agent.prompts import build_system_prompt

    prompt = build_system_prompt(user_prompt, ExecutionLanguage.PYTHON, executor.get_tool_definitions())
"""

from .loader import (
    PromptLoader,
    build_system_prompt,
    get_loader,
    init_loader,
    reset_loader,
)

__all__ = [
    "PromptLoader",
    "build_system_prompt",
    "get_loader",
    "init_loader",
    "reset_loader",
]
