# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Catalogue of text-processing tools and the prompt describing them.

:func:`create_tool_prompt` lists which catalogued tools the sandbox actually
provides and adds per-format hints for the uploaded files, e.g.
``For JSON: jq, grep, sed``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Final, Literal

from .._logging import StructuredLogger, get_logger
from ..errors import BackendOperationError
from ..sandbox._types import Sandbox

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "tools.prompt"})

type ToolCategory = Literal[
    "search",
    "transform",
    "view",
    "organize",
    "compare",
    "count-format",
    "structured-data",
    "network",
    "utilities",
]
type FileFormat = Literal[
    "json", "yaml", "html", "xml", "csv", "toml", "ini", "binary", "text"
]


@dataclass(frozen=True, slots=True)
class BashToolInfo:
    name: str
    purpose: str
    category: ToolCategory


BASH_TOOLS: Final[tuple[BashToolInfo, ...]] = (
    BashToolInfo("grep", "Pattern matching and searching (regex support)", "search"),
    BashToolInfo("sed", "Stream editor for substitution and transformation", "transform"),
    BashToolInfo("awk", "Field-based processing and pattern scanning", "transform"),
    BashToolInfo("cat", "Concatenate and display file contents", "view"),
    BashToolInfo("head", "View first N lines of a file", "view"),
    BashToolInfo("tail", "View last N lines (also follow logs with -f)", "view"),
    BashToolInfo("sort", "Sort lines alphabetically/numerically", "organize"),
    BashToolInfo("uniq", "Remove duplicates or count occurrences", "organize"),
    BashToolInfo("cut", "Extract columns/fields by delimiter", "organize"),
    BashToolInfo("tr", "Translate, squeeze, or delete characters", "transform"),
    BashToolInfo("wc", "Count lines, words, characters", "count-format"),
    BashToolInfo("find", "Locate files (often piped to text tools)", "search"),
    BashToolInfo("xargs", "Build commands from stdin", "utilities"),
    BashToolInfo("diff", "Compare files line by line", "compare"),
    BashToolInfo("jq", "Parse and manipulate JSON", "structured-data"),
    BashToolInfo("yq", "Parse and manipulate YAML, XML, TOML, INI", "structured-data"),
    BashToolInfo("tee", "Split output to file and stdout", "utilities"),
    BashToolInfo("paste", "Merge lines from multiple files", "organize"),
    BashToolInfo("column", "Format text into aligned columns", "count-format"),
    BashToolInfo("printf", "Formatted output with precise control", "count-format"),
    BashToolInfo("comm", "Compare two sorted files (common/unique lines)", "compare"),
    BashToolInfo("rev", "Reverse characters in each line", "transform"),
    BashToolInfo("fold", "Wrap lines to specified width", "count-format"),
    BashToolInfo("nl", "Number lines in output", "count-format"),
    BashToolInfo("split", "Split file into smaller pieces", "organize"),
    BashToolInfo("join", "SQL-like join on sorted files", "organize"),
    BashToolInfo("less", "Pager for viewing large files", "view"),
    BashToolInfo("expand", "Convert tabs to spaces", "transform"),
    BashToolInfo("unexpand", "Convert spaces to tabs", "transform"),
    BashToolInfo("strings", "Extract printable strings from binaries", "view"),
    BashToolInfo("od", "Octal dump for binary inspection", "view"),
    BashToolInfo("xxd", "Hex dump for binary inspection", "view"),
    BashToolInfo("iconv", "Convert between character encodings", "transform"),
    BashToolInfo("curl", "Fetch content from URLs", "network"),
    BashToolInfo("python3", "Run short Python scripts for complex transformations", "utilities"),
)

TOOLS_BY_FORMAT: Final[Mapping[FileFormat, tuple[str, ...]]] = {
    "json": ("jq", "grep", "sed", "cat", "head", "tail", "less", "curl"),
    "yaml": ("yq", "grep", "sed", "cat", "head", "tail", "less"),
    "html": ("grep", "sed", "curl", "cat", "less"),
    "xml": ("yq", "grep", "sed", "awk", "cat", "head", "tail", "less"),
    "csv": (
        "awk",
        "cut",
        "sort",
        "uniq",
        "join",
        "paste",
        "column",
        "grep",
        "sed",
        "head",
        "tail",
    ),
    "toml": ("yq", "grep", "sed", "cat", "head", "tail", "less"),
    "ini": ("yq", "grep", "sed", "cat", "head", "tail", "less"),
    "binary": ("strings", "od", "xxd", "head", "tail", "split"),
    "text": (
        "grep",
        "sed",
        "awk",
        "cat",
        "head",
        "tail",
        "sort",
        "uniq",
        "cut",
        "tr",
        "wc",
        "diff",
        "comm",
        "paste",
        "join",
        "column",
        "fold",
        "nl",
        "rev",
        "iconv",
    ),
}

FORMAT_LABELS: Final[Mapping[FileFormat, str]] = {
    "json": "JSON",
    "yaml": "YAML",
    "html": "HTML",
    "xml": "XML",
    "csv": "CSV/TSV",
    "toml": "TOML",
    "ini": "INI",
    "binary": "binary",
    "text": "text",
}

_EXTENSION_FORMATS: Final[Mapping[str, FileFormat]] = {
    ".json": "json",
    ".jsonl": "json",
    ".ndjson": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".html": "html",
    ".htm": "html",
    ".xml": "xml",
    ".svg": "xml",
    ".csv": "csv",
    ".tsv": "csv",
    ".toml": "toml",
    ".ini": "ini",
    ".cfg": "ini",
    ".conf": "ini",
    ".bin": "binary",
    ".exe": "binary",
    ".so": "binary",
    ".dylib": "binary",
    ".a": "binary",
    ".o": "binary",
}

DISCOVERY_COMMAND: Final[str] = "ls /usr/bin /usr/local/bin /bin /sbin /usr/sbin 2>/dev/null"


def tools_by_category(category: ToolCategory) -> list[BashToolInfo]:
    return [tool for tool in BASH_TOOLS if tool.category == category]


def tools_for_format(file_format: FileFormat) -> list[BashToolInfo]:
    names = set(TOOLS_BY_FORMAT[file_format])
    return [tool for tool in BASH_TOOLS if tool.name in names]


def detect_format(filename: str) -> FileFormat | None:
    """Return the format implied by ``filename``'s extension, if known."""
    dot = filename.rfind(".")
    if dot == -1:
        return None
    return _EXTENSION_FORMATS.get(filename[dot:].lower())


async def discover_available_tools(sandbox: Sandbox) -> set[str]:
    """Return the catalogued tools present in the sandbox's bin directories.

    A single ``ls`` lists every bin directory; missing directories make
    ``ls`` exit non-zero, so any stdout is still used.
    """
    known = {tool.name for tool in BASH_TOOLS}
    result = await sandbox.execute_command(DISCOVERY_COMMAND)
    if result.exit_code != 0 and not result.stdout:
        return set()
    return {
        entry
        for entry in (line.strip() for line in result.stdout.split("\n"))
        if entry and not entry.endswith(":") and entry in known
    }


def format_tool_prompt(available: Iterable[str], filenames: Iterable[str]) -> str:
    """Render the prompt for an already discovered tool set."""
    available_tools = set(available)
    if not available_tools:
        return ""

    lines = [f"Available tools: {', '.join(sorted(available_tools))}, and more"]

    detected: list[FileFormat] = []
    for filename in filenames:
        file_format = detect_format(filename)
        if file_format in {None, "text", "binary"} or file_format in detected:
            continue
        detected.append(file_format)  # type: ignore[arg-type]

    for file_format in detected:
        present = [name for name in TOOLS_BY_FORMAT[file_format] if name in available_tools]
        if present:
            lines.append(f"For {FORMAT_LABELS[file_format]}: {', '.join(present[:3])}")

    return "\n".join(lines)


async def create_tool_prompt(sandbox: Sandbox, filenames: Iterable[str]) -> str:
    """Discover tools in ``sandbox`` and describe them for ``filenames``.

    Discovery failures degrade to an empty prompt.
    """
    try:
        available = await discover_available_tools(sandbox)
    except BackendOperationError as error:
        _LOGGER.warning(
            "Tool discovery failed",
            event="tools.prompt.discovery_failed",
            context={"error": str(error)},
        )
        return ""
    return format_tool_prompt(available, filenames)


__all__ = [
    "BASH_TOOLS",
    "DISCOVERY_COMMAND",
    "FORMAT_LABELS",
    "TOOLS_BY_FORMAT",
    "BashToolInfo",
    "FileFormat",
    "ToolCategory",
    "create_tool_prompt",
    "detect_format",
    "discover_available_tools",
    "format_tool_prompt",
    "tools_by_category",
    "tools_for_format",
]
