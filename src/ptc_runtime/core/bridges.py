"""Bridge Generator - Render language-specific tool bridges for generated code.

A bridge is the preamble injected next to model-authored code. For every
registered tool it defines a native callable that sends the tool request and
returns the ``result`` field, or raises/returns the ``error`` field. The
Python and Go bridges differ only in syntax; both speak the same JSON shapes.
"""

import ast
import builtins
import json
import keyword
import re
from dataclasses import dataclass
from pathlib import Path

import structlog
from jinja2 import Environment, FileSystemLoader

from ptc_runtime.config.core import ExecutionLanguage, ExecutionMode

from .registry import ToolRegistry

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Printed by bridges on stderr when the tool server cannot be reached
UNREACHABLE_MARKER = "PTC_TOOL_SERVER_UNREACHABLE"

# Direct mode IPC markers (stderr requests, stdin results)
IPC_TOOL_CALL_START = "__PTC_TOOL_CALL__"
IPC_TOOL_CALL_END = "__PTC_END_CALL__"
IPC_TOOL_RESULT_START = "__PTC_TOOL_RESULT__"
IPC_TOOL_RESULT_END = "__PTC_END_RESULT__"

GO_KEYWORDS = frozenset({
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type", "var",
})

GO_PREDECLARED = frozenset({
    "any", "append", "bool", "byte", "cap", "close", "complex", "copy", "delete", "error",
    "false", "float32", "float64", "int", "int64", "len", "make", "new", "nil", "panic",
    "print", "println", "recover", "rune", "string", "true",
})

# Package names imported by the Go bridge and the snippet prelude
GO_IMPORTED = frozenset({"bytes", "errors", "fmt", "http", "io", "json", "os", "strings", "time"})

# Names the bridges define themselves, module globals included
RESERVED_NAMES = frozenset({
    "call_tool", "callTool", "ToolError", "main",
    "_ptc_json", "_ptc_sys", "_ptc_request", "_ptc_urlerror",
    "_PTC_CALL_URL", "_PTC_TIMEOUT", "_PTC_OPENER",
    "ptcCallURL", "ptcClient", "ptcToolRequest", "ptcToolResponse",
})

# Go programs without a package clause and without func main are wrapped in one
GO_SNIPPET_PRELUDE = """package main

import (
\t"encoding/json"
\t"fmt"
\t"strings"
)

var (
\t_ = json.Marshal
\t_ = fmt.Sprintf
\t_ = strings.TrimSpace
)

func main() {
"""


def tool_function_name(tool_name: str, language: ExecutionLanguage) -> str:
    """Map a tool name to a valid function identifier in the target language.

    Args:
        tool_name: Registered tool name
        language: Target language

    Returns:
        Identifier used for the tool's bridge function
    """
    name = re.sub(r"\W", "_", tool_name, flags=re.ASCII) or "_tool"
    if name[0].isdigit():
        name = f"_{name}"
    if language is ExecutionLanguage.GO:
        clashes = name in GO_KEYWORDS or name in GO_PREDECLARED or name in GO_IMPORTED
    else:
        clashes = keyword.iskeyword(name) or hasattr(builtins, name)
    if clashes or name in RESERVED_NAMES:
        name = f"{name}_"
    return name


@dataclass(frozen=True)
class BridgeTool:
    """A tool as seen by a bridge template."""

    name: str
    function_name: str
    description: str


def _literal(value: str) -> str:
    # A JSON string literal is also a valid Python and Go string literal
    return json.dumps(value, ensure_ascii=True)


def _unique_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    suffix = 2
    while f"{name}_{suffix}" in taken:
        suffix += 1
    return f"{name}_{suffix}"


def split_future_imports(code: str) -> tuple[list[str], str]:
    """Separate ``from __future__`` statements from the rest of a module.

    Parenthesised imports spanning several lines are kept whole. Code that
    does not parse is returned unchanged so the interpreter reports the error.

    Returns:
        (future import lines, remaining code)
    """
    try:
        tree = ast.parse(code)
    except SyntaxError:
        return [], code

    future_lines: set[int] = set()
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and node.module == "__future__":
            future_lines.update(range(node.lineno, (node.end_lineno or node.lineno) + 1))

    lines = code.splitlines()
    future = [line for number, line in enumerate(lines, 1) if number in future_lines]
    body = "\n".join(line for number, line in enumerate(lines, 1) if number not in future_lines)
    return future, body


class BridgeRenderer:
    """Generates bridge code and the model-facing tool catalog."""

    def __init__(self, registry: ToolRegistry, language: ExecutionLanguage) -> None:
        """Initialize the renderer.

        Args:
            registry: Tools to bridge
            language: Target language

        Tool names that are already valid identifiers keep them. Any other tool
        whose sanitised name is taken gets a numeric suffix (``get_x_2``).
        """
        self.registry = registry
        self.language = language
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters["literal"] = _literal

        candidates = {tool.name: tool_function_name(tool.name, language) for tool in registry}
        taken = {function_name for name, function_name in candidates.items() if function_name == name}

        self.tools: list[BridgeTool] = []
        for tool in registry:
            function_name = candidates[tool.name]
            if function_name != tool.name:
                function_name = _unique_name(function_name, taken)
                taken.add(function_name)
            self.tools.append(BridgeTool(tool.name, function_name, tool.description or ""))

    def render_bridge(self, mode: ExecutionMode, base_url: str = "", request_timeout: float = 30.0) -> str:
        """Render the bridge source for the configured language.

        Args:
            mode: SERVER (HTTP) or DIRECT (stdio IPC)
            base_url: Tool server base URL (server mode)
            request_timeout: Bridge-side HTTP timeout in seconds

        Returns:
            Bridge source code
        """
        if self.language is ExecutionLanguage.GO:
            template_name = "go_bridge.go.j2"
        elif mode is ExecutionMode.DIRECT:
            template_name = "python_direct_bridge.py.j2"
        else:
            template_name = "python_bridge.py.j2"

        logger.debug(
            "Rendering tool bridge",
            language=self.language.value,
            mode=mode.value,
            tool_count=len(self.tools),
        )
        return self.env.get_template(template_name).render(
            tools=self.tools,
            base_url=base_url,
            call_path="/call",
            request_timeout=request_timeout,
            unreachable_marker=UNREACHABLE_MARKER,
            ipc_call_start=IPC_TOOL_CALL_START,
            ipc_call_end=IPC_TOOL_CALL_END,
            ipc_result_start=IPC_TOOL_RESULT_START,
            ipc_result_end=IPC_TOOL_RESULT_END,
        )

    def compose_python(self, code: str, bridge: str) -> str:
        """Prepend the bridge to model code, keeping __future__ imports first."""
        future, body = split_future_imports(code)
        return "\n".join([*future, bridge, body]) + "\n"

    def compose_go(self, code: str) -> str:
        """Turn model code into a complete main.go.

        Full programs are used as-is; a file with func main but no package
        clause gets one; anything else becomes the body of func main.
        """
        if re.search(r"^\s*package\s+\w+", code, re.MULTILINE):
            return code
        if re.search(r"^\s*func\s+main\s*\(", code, re.MULTILINE):
            return f"package main\n\n{code}\n"
        return f"{GO_SNIPPET_PRELUDE}{code}\n}}\n"

    def tool_definitions(self) -> str:
        """Render the tool catalog for the system prompt.

        One entry per tool in registration order. The registered name is shown
        as ``[tool: name]`` only when it cannot be read off the function name.
        """
        entries = []
        for tool in self.tools:
            if self.language is ExecutionLanguage.GO:
                signature = f"{tool.function_name}(input string) (string, error)"
            else:
                signature = f"{tool.function_name}(tool_input: str) -> str"
            if tool.function_name not in (tool.name, f"{tool.name}_"):
                signature += f"  [tool: {tool.name}]"
            lines = [f"- {signature}"]
            lines.extend(f"    {line}" for line in tool.description.strip().splitlines())
            entries.append("\n".join(lines))
        return "\n".join(entries)
