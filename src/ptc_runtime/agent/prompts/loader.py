"""Jinja2 template loader for prompt templates."""

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from ptc_runtime.config.core import ExecutionLanguage


class PromptLoader:
    """Load and render Jinja2 prompt templates.

    Uses Jinja2's built-in template object caching for efficient
    repeated template lookups. Rendering is deterministic: the same
    inputs always produce the same prompt text.
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        """Initialize the prompt loader.

        Args:
            templates_dir: Path to templates directory. Defaults to
                          ./templates relative to this file.
        """
        self.templates_dir = templates_dir or Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(self, template_name: str, **kwargs: Any) -> str:
        """Render a template with variables.

        Args:
            template_name: Path to template relative to templates_dir
            **kwargs: Variables to pass to the template

        Returns:
            Rendered template string
        """
        return self.env.get_template(template_name).render(**kwargs)

    def get_system_prompt(
        self,
        language: ExecutionLanguage,
        tool_definitions: str,
        user_prompt: str = "",
    ) -> str:
        """Get the PTC system prompt.

        Args:
            language: Language the model should write
            tool_definitions: Tool catalog text from the executor
            user_prompt: Caller-supplied instructions, placed first

        Returns:
            Rendered system prompt
        """
        return self.render(
            "ptc_system.md.j2",
            language=language.value,
            language_name=language.display_name,
            tool_definitions=tool_definitions,
            user_prompt=user_prompt.strip(),
        ).strip()


# Singleton instance
_loader: PromptLoader | None = None


def get_loader() -> PromptLoader:
    """Get the singleton PromptLoader instance."""
    global _loader
    if _loader is None:
        _loader = PromptLoader()
    return _loader


def init_loader(templates_dir: Path | None = None) -> PromptLoader:
    """Replace the singleton with a loader reading from ``templates_dir``."""
    global _loader
    _loader = PromptLoader(templates_dir)
    return _loader


def reset_loader() -> None:
    """Reset the singleton loader (useful for testing)."""
    global _loader
    _loader = None


def build_system_prompt(user_prompt: str, language: ExecutionLanguage, tool_definitions: str) -> str:
    """Render the system prompt with the shared loader."""
    return get_loader().get_system_prompt(language, tool_definitions, user_prompt)
