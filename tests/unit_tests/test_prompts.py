"""Tests for system prompt rendering."""

from ptc_runtime.agent.prompts import PromptLoader, build_system_prompt, get_loader, init_loader
from ptc_runtime.config import ExecutionLanguage

CATALOG = "- calculator(tool_input: str) -> str\n    Add two integers."


class TestBuildSystemPrompt:
    def test_python_prompt(self):
        prompt = build_system_prompt("", ExecutionLanguage.PYTHON, CATALOG)

        assert prompt.startswith("You are an AI assistant that can write Python code")
        assert CATALOG in prompt
        assert "```python\n# Your code here\n```" in prompt
        assert "ToolError" in prompt

    def test_go_prompt(self):
        prompt = build_system_prompt("", ExecutionLanguage.GO, "- calculator(input string) (string, error)")

        assert "write Go code" in prompt
        assert "```go\n// Your code here\n```" in prompt
        assert "callTool" in prompt

    def test_user_prompt_comes_first(self):
        prompt = build_system_prompt("You are a finance analyst.", ExecutionLanguage.PYTHON, CATALOG)
        assert prompt.startswith("You are a finance analyst.\n\nYou are an AI assistant")

    def test_deterministic(self):
        first = build_system_prompt("x", ExecutionLanguage.PYTHON, CATALOG)
        assert first == build_system_prompt("x", ExecutionLanguage.PYTHON, CATALOG)


class TestLoaderSingleton:
    def test_get_loader_is_cached(self):
        assert get_loader() is get_loader()

    def test_init_loader_replaces_singleton(self, tmp_path):
        (tmp_path / "ptc_system.md.j2").write_text("custom {{ language_name }}: {{ tool_definitions }}")
        loader = init_loader(tmp_path)

        assert isinstance(loader, PromptLoader)
        assert get_loader() is loader
        assert build_system_prompt("", ExecutionLanguage.GO, "tools") == "custom Go: tools"
