"""Tests for code extraction from model messages."""

import json

import pytest
from langchain_core.messages import AIMessage

from ptc_runtime.agent.extraction import contains_code, extract_code, extract_from_code_block
from ptc_runtime.core.exceptions import NoCodeFoundError


class TestExtractFromCodeBlock:
    """Tests for fenced code block extraction."""

    def test_extracts_body_of_tagged_block(self):
        text = "Here you go:\n```python\nprint('hi')\n```\nDone."
        assert extract_from_code_block(text) == "print('hi')\n"

    def test_untagged_block(self):
        assert extract_from_code_block("```\nx = 1\n```") == "x = 1\n"

    def test_first_block_wins(self):
        text = "```python\nfirst()\n```\nand\n```python\nsecond()\n```"
        assert extract_from_code_block(text) == "first()\n"

    def test_independent_of_surrounding_prose(self):
        body = "total = 0\nfor i in range(3):\n    total += i\nprint(total)\n"
        for prefix, suffix in [("", ""), ("Sure!\n", "\nHope that helps."), ("a ``b`` c\n", "\n\n--")]:
            assert extract_from_code_block(f"{prefix}```python\n{body}```{suffix}") == body

    def test_no_fence_returns_empty(self):
        assert extract_from_code_block("just prose") == ""

    def test_unclosed_fence_returns_empty(self):
        assert extract_from_code_block("```python\nprint(1)\n") == ""

    def test_fence_without_newline_returns_empty(self):
        assert extract_from_code_block("```python print(1)```") == ""

    def test_empty_block_returns_empty(self):
        assert extract_from_code_block("```python\n```") == ""


class TestExtractCode:
    """Tests for the extraction priority order."""

    def test_prefers_code_block(self):
        message = AIMessage(content='{"code": "print(2)"}\n```python\nprint(1)\n```')
        assert extract_code(message) == "print(1)\n"

    def test_json_code_field(self):
        message = AIMessage(content=json.dumps({"code": "print(2)", "language": "python"}))
        assert extract_code(message) == "print(2)"

    def test_json_without_code_field_falls_back_to_raw(self):
        raw = json.dumps({"answer": 42})
        assert extract_code(AIMessage(content=raw)) == raw

    def test_raw_text_last_resort(self):
        assert extract_code(AIMessage(content="print(3)")) == "print(3)"

    def test_list_content_text_parts(self):
        message = AIMessage(
            content=[
                {"type": "text", "text": "Running:"},
                {"type": "text", "text": "```python\nprint(4)\n```"},
            ]
        )
        assert extract_code(message) == "print(4)\n"

    def test_empty_message_raises(self):
        with pytest.raises(NoCodeFoundError):
            extract_code(AIMessage(content="   "))

    def test_tool_call_only_message_raises(self):
        message = AIMessage(content="", tool_calls=[{"name": "calculator", "args": {}, "id": "call_1"}])
        with pytest.raises(NoCodeFoundError):
            extract_code(message)


class TestContainsCode:
    """Tests for routing detection of executable fences."""

    @pytest.mark.parametrize("tag", ["python", "Python", "PY", "python3", "go", "Go", "golang"])
    def test_recognised_tags(self, tag):
        assert contains_code(AIMessage(content=f"```{tag}\ncode\n```"))

    @pytest.mark.parametrize("text", ["no code here", "```\nplain\n```", "```bash\nls\n```", "```json\n{}\n```"])
    def test_not_executable(self, text):
        assert not contains_code(AIMessage(content=text))

    def test_similar_tag_is_not_code(self):
        assert not contains_code(AIMessage(content="```gotemplate\n{{ . }}\n```"))
