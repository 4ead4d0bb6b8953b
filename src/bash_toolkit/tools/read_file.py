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

"""The ``readFile`` tool.

Invocation logs (``*.invocation``) are read as their stdout section only.
Extraction runs inside the sandbox with awk; when that fails the whole file
is fetched and decoded locally, and a file that does not decode as a log is
returned verbatim. Output filters stream through the sandbox exactly as for
the ``bash`` tool; a filtered log whose markers are missing is filtered as
raw text.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import Any, Final

from .._logging import StructuredLogger, get_logger
from ..errors import LogFormatError
from ..invocation_log import STDOUT_EXTRACT_PROGRAM, is_invocation_file, parse_invocation_log
from ..posix_path import posix_resolve
from ..sandbox._types import Sandbox
from ._common import (
    OUTPUT_FILTER_PARAMETER,
    decode_text,
    object_schema,
    quote_path,
    run_with_timeout,
)

_LOGGER: StructuredLogger = get_logger(
    __name__, context={"component": "tools.read_file"}
)

_DESCRIPTION: Final[str] = "\n".join(
    [
        "Read the contents of a file from the sandbox.",
        "Relative paths resolve against the working directory.",
        "",
        "OUTPUT FILTERING:",
        "Use the outputFilter parameter to filter content before it is returned.",
        "Examples:",
        '  outputFilter: "tail -50"      # Last 50 lines',
        '  outputFilter: "head -100"     # First 100 lines',
        '  outputFilter: "grep error"    # Lines containing "error"',
        '  outputFilter: "grep -i warn"  # Case-insensitive search',
        "",
        "INVOCATION FILES:",
        "For .invocation files (from bash tool logs), automatically extracts stdout.",
        "Use outputFilter to re-query stored command output with different filters.",
    ]
)


@dataclass(frozen=True, slots=True)
class ReadFileResult:
    """File content plus the filter error, if the filter failed."""

    content: str
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"content": self.content}
        if self.error is not None:
            payload["error"] = self.error
        return payload


class ReadFileTool:
    name: Final[str] = "readFile"
    description: Final[str] = _DESCRIPTION

    def __init__(
        self, *, sandbox: Sandbox, cwd: str, timeout_seconds: float | None = None
    ) -> None:
        self._sandbox = sandbox
        self._cwd = cwd
        self._timeout = timeout_seconds
        self.parameters: dict[str, Any] = object_schema(
            {
                "path": {"type": "string", "description": "The path to the file to read"},
                "outputFilter": OUTPUT_FILTER_PARAMETER,
            },
            required=("path",),
        )

    async def execute(self, path: str, output_filter: str | None = None) -> ReadFileResult:
        return await run_with_timeout(
            self._execute(path, output_filter or None),
            timeout_seconds=self._timeout,
            operation="readFile",
            target=path,
        )

    async def _execute(self, path: str, output_filter: str | None) -> ReadFileResult:
        resolved = posix_resolve(self._cwd, path)
        quoted = quote_path(resolved)

        if is_invocation_file(resolved):
            if output_filter is None:
                return ReadFileResult(content=await self._invocation_stdout(resolved))
            result = await self._sandbox.execute_command(
                f"cd {quote_path(self._cwd)} && test -e {quoted} && "
                f"{_extract_or_raw(quoted)} | {output_filter}"
            )
            if result.exit_code != 0:
                return ReadFileResult(
                    content=await self._invocation_stdout(resolved),
                    error=f"Filter error: {result.stderr}",
                )
            return ReadFileResult(content=result.stdout)

        if output_filter is None:
            return ReadFileResult(content=decode_text(await self._sandbox.read_file(resolved)))

        result = await self._sandbox.execute_command(
            f"cd {quote_path(self._cwd)} && test -e {quoted} && cat {quoted} | {output_filter}"
        )
        if result.exit_code != 0:
            content = decode_text(await self._sandbox.read_file(resolved))
            return ReadFileResult(content=content, error=f"Filter error: {result.stderr}")
        return ReadFileResult(content=result.stdout)

    async def _invocation_stdout(self, path: str) -> str:
        result = await self._sandbox.execute_command(
            f"awk {shlex.quote(STDOUT_EXTRACT_PROGRAM)} {quote_path(path)}"
        )
        if result.exit_code == 0:
            return result.stdout

        _LOGGER.debug(
            "Falling back to local invocation log decoding",
            event="read_file.invocation_fallback",
            context={"path": path, "exit_code": result.exit_code},
        )
        raw = decode_text(await self._sandbox.read_file(path))
        try:
            return parse_invocation_log(raw).stdout
        except LogFormatError:
            return raw


def _extract_or_raw(quoted_path: str) -> str:
    """Shell snippet printing a log's stdout section, or the raw file.

    The markers are checked before extraction so a malformed log is never
    reduced to empty output ahead of the filter.
    """
    program = shlex.quote(STDOUT_EXTRACT_PROGRAM)
    return (
        f"if awk {program} {quoted_path} >/dev/null 2>&1; "
        f"then awk {program} {quoted_path}; else cat {quoted_path}; fi"
    )


__all__ = ["ReadFileResult", "ReadFileTool"]
