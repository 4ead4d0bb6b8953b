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

"""Command execution pipeline behind the ``bash`` tool.

Each call runs through the same stages:

1. ``on_before_bash_call`` may substitute the command.
2. The command runs from the working directory (``cd <cwd> && ...``).
3. Without an output filter the raw result is fetched directly. With one,
   a single generated script captures both streams to temporary files,
   optionally writes the invocation log, pipes stdout through the filter
   and cleans up, so unfiltered output never leaves the sandbox.
4. stdout and stderr are truncated independently.
5. ``on_after_bash_call`` may substitute the (truncated) result.
"""

from __future__ import annotations

import shlex
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Final

from .._logging import StructuredLogger, get_logger
from ..errors import BackendOperationError
from ..invocation_log import (
    DEFAULT_LOG_DIRECTORY,
    STDERR_MARKER,
    STDOUT_MARKER,
    InvocationLog,
    format_header_lines,
    format_invocation_log,
    invocation_log_filename,
    invocation_timestamp,
)
from ..posix_path import posix_join, posix_resolve
from ..sandbox._types import CommandResult, FileEntry, Sandbox
from ._common import (
    OUTPUT_FILTER_PARAMETER,
    maybe_await,
    object_schema,
    quote_path,
    run_with_timeout,
)

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "tools.bash"})

DEFAULT_MAX_OUTPUT_LENGTH: Final[int] = 30_000
_MAX_SAMPLE_FILES: Final[int] = 8

type BeforeBashCall = Callable[[str], str | None | Awaitable[str | None]]
type AfterBashCall = Callable[
    [str, CommandResult], CommandResult | None | Awaitable[CommandResult | None]
]


@dataclass(frozen=True, slots=True)
class BashResult:
    """Response returned to the caller of the ``bash`` tool.

    ``invocation_log_path`` is set exactly when invocation logging is on.
    """

    stdout: str
    stderr: str
    exit_code: int
    invocation_log_path: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
        }
        if self.invocation_log_path is not None:
            payload["invocationLogPath"] = self.invocation_log_path
        return payload


@dataclass(frozen=True, slots=True)
class InvocationLogTarget:
    """Where a generated script should write its invocation log."""

    directory: str
    path: str
    timestamp: str


def truncate_output(output: str, max_length: int, stream_name: str) -> str:
    """Keep the first ``max_length`` characters and note how many were cut.

    Output of exactly ``max_length`` characters is returned unchanged.
    """
    if len(output) <= max_length:
        return output
    removed = len(output) - max_length
    return f"{output[:max_length]}\n\n[{stream_name} truncated: {removed} characters removed]"


def build_filtered_command(
    *,
    command: str,
    output_filter: str,
    cwd: str,
    log_target: InvocationLogTarget | None = None,
) -> str:
    """Return one shell script that runs ``command`` and filters its stdout.

    The script exits with the filter's status when the filter fails and with
    the command's status otherwise. The command's stderr is emitted first,
    followed by the filter's stderr.
    """
    directory = quote_path(cwd)
    lines = [
        '_bt_out=$(mktemp) && _bt_err=$(mktemp) && _bt_ferr=$(mktemp) || exit 125',
        "(",
        f"cd {directory} || exit",
        command,
        ') >"$_bt_out" 2>"$_bt_err"',
        "_bt_code=$?",
    ]
    if log_target is not None:
        lines.append(_log_writer(command, output_filter, log_target))
    lines.extend(
        [
            "(",
            f"cd {directory} || exit",
            output_filter,
            ') <"$_bt_out" 2>"$_bt_ferr"',
            "_bt_fcode=$?",
            'cat "$_bt_err" >&2',
            'cat "$_bt_ferr" >&2',
            'rm -f "$_bt_out" "$_bt_err" "$_bt_ferr"',
            'if [ "$_bt_fcode" -ne 0 ]; then exit "$_bt_fcode"; fi',
            'exit "$_bt_code"',
        ]
    )
    return "\n".join(lines)


def _log_writer(command: str, output_filter: str, target: InvocationLogTarget) -> str:
    headers = format_header_lines(
        timestamp=target.timestamp,
        command=command,
        exit_code="",
        output_filter=output_filter,
    )
    quoted = [
        '"# exitCode: $_bt_code"' if header == "# exitCode: " else shlex.quote(header)
        for header in headers
    ]
    quoted.append(shlex.quote(STDOUT_MARKER))
    log_path = quote_path(target.path)
    return (
        f"mkdir -p {quote_path(target.directory)} && "
        f"{{ printf '%s\\n' {' '.join(quoted)}; "
        'cat "$_bt_out"; '
        f"printf '\\n%s\\n' {shlex.quote(STDERR_MARKER)}; "
        f'cat "$_bt_err"; }} >{log_path} '
        f"|| printf '%s\\n' {shlex.quote(f'warning: unable to write invocation log {target.path}')} >&2"
    )


def generate_bash_description(
    *,
    cwd: str,
    files: Sequence[str] = (),
    tool_prompt: str = "",
    extra_instructions: str | None = None,
    invocation_log_directory: str | None = None,
) -> str:
    lines = [
        "Execute bash commands in the sandbox environment.",
        "",
        f"WORKING DIRECTORY: {cwd}",
        "All commands execute from this directory. Use relative paths from here.",
        "",
    ]

    if files:
        lines.append("Available files:")
        lines.extend(f"  {name}" for name in files[:_MAX_SAMPLE_FILES])
        if len(files) > _MAX_SAMPLE_FILES:
            lines.append(f"  ... and {len(files) - _MAX_SAMPLE_FILES} more files")
        lines.append("")

    if tool_prompt:
        lines.extend([tool_prompt, ""])

    lines.extend(
        [
            "Common operations:",
            "  ls -la              # List files with details",
            "  find . -name '*.py' # Find files by pattern",
            "  grep -r 'pattern' . # Search file contents",
            "  cat <file>          # View file contents",
            "",
            "OUTPUT FILTERING:",
            "Use the outputFilter parameter to filter stdout before it is returned.",
            "Examples:",
            '  outputFilter: "tail -50"      # Last 50 lines',
            '  outputFilter: "head -100"     # First 100 lines',
            '  outputFilter: "grep error"    # Lines containing "error"',
            '  outputFilter: "grep -i warn"  # Case-insensitive search',
            "",
        ]
    )

    if invocation_log_directory is not None:
        lines.extend(
            [
                "INVOCATION LOGS:",
                f"Full, unfiltered output of every command is saved under {invocation_log_directory}.",
                "The result's invocationLogPath can be re-read with readFile and a different",
                "outputFilter instead of running the command again.",
                "",
            ]
        )

    if extra_instructions:
        lines.extend([extra_instructions, ""])

    return "\n".join(lines).strip()


class BashTool:
    """The ``bash`` tool: runs commands from a fixed working directory."""

    name: Final[str] = "bash"

    def __init__(
        self,
        *,
        sandbox: Sandbox,
        cwd: str,
        files: Sequence[str] = (),
        tool_prompt: str = "",
        extra_instructions: str | None = None,
        on_before_bash_call: BeforeBashCall | None = None,
        on_after_bash_call: AfterBashCall | None = None,
        max_output_length: int = DEFAULT_MAX_OUTPUT_LENGTH,
        enable_invocation_log: bool = False,
        invocation_log_path: str = DEFAULT_LOG_DIRECTORY,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sandbox = sandbox
        self._cwd = cwd
        self._before = on_before_bash_call
        self._after = on_after_bash_call
        self._max_output_length = max_output_length
        self._timeout = timeout_seconds
        self._clock = clock
        self._log_directory = (
            posix_resolve(cwd, invocation_log_path) if enable_invocation_log else None
        )
        self.description = generate_bash_description(
            cwd=cwd,
            files=files,
            tool_prompt=tool_prompt,
            extra_instructions=extra_instructions,
            invocation_log_directory=self._log_directory,
        )
        self.parameters: dict[str, Any] = object_schema(
            {
                "command": {"type": "string", "description": "The bash command to execute"},
                "outputFilter": OUTPUT_FILTER_PARAMETER,
            },
            required=("command",),
        )

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def invocation_log_directory(self) -> str | None:
        return self._log_directory

    async def execute(self, command: str, output_filter: str | None = None) -> BashResult:
        return await run_with_timeout(
            self._execute(command, output_filter or None),
            timeout_seconds=self._timeout,
            operation="bash",
            target=command,
        )

    async def _execute(self, original_command: str, output_filter: str | None) -> BashResult:
        command = original_command
        if self._before is not None:
            replacement = await maybe_await(self._before(command))
            if replacement is not None:
                command = replacement

        log_target = self._next_log_target()
        if output_filter is None:
            result = await self._sandbox.execute_command(
                f"cd {quote_path(self._cwd)} && {command}"
            )
            if log_target is not None:
                await self._write_log(command, result, log_target)
        else:
            result = await self._sandbox.execute_command(
                build_filtered_command(
                    command=command,
                    output_filter=output_filter,
                    cwd=self._cwd,
                    log_target=log_target,
                )
            )

        result = replace(
            result,
            stdout=truncate_output(result.stdout, self._max_output_length, "stdout"),
            stderr=truncate_output(result.stderr, self._max_output_length, "stderr"),
        )

        if self._after is not None:
            replacement_result = await maybe_await(self._after(command, result))
            if replacement_result is not None:
                result = replacement_result

        _LOGGER.debug(
            "Executed bash command",
            event="bash.execute",
            context={
                "exit_code": result.exit_code,
                "filtered": output_filter is not None,
                "invocation_log": log_target.path if log_target else None,
            },
        )
        return BashResult(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            invocation_log_path=log_target.path if log_target else None,
        )

    def _next_log_target(self) -> InvocationLogTarget | None:
        if self._log_directory is None:
            return None
        timestamp = invocation_timestamp(self._clock() if self._clock else None)
        return InvocationLogTarget(
            directory=self._log_directory,
            path=posix_join(self._log_directory, invocation_log_filename(timestamp)),
            timestamp=timestamp,
        )

    async def _write_log(
        self, command: str, result: CommandResult, target: InvocationLogTarget
    ) -> None:
        created = await self._sandbox.execute_command(
            f"mkdir -p {quote_path(target.directory)}"
        )
        if created.exit_code != 0:
            raise BackendOperationError(
                f"Failed to create invocation log directory: {created.stderr}",
                operation="execute_command",
                target=target.directory,
            )
        log = InvocationLog(
            timestamp=target.timestamp,
            command=command,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        await self._sandbox.write_files(
            [FileEntry.from_text(target.path, format_invocation_log(log))]
        )


__all__ = [
    "DEFAULT_MAX_OUTPUT_LENGTH",
    "AfterBashCall",
    "BashResult",
    "BashTool",
    "BeforeBashCall",
    "InvocationLogTarget",
    "build_filtered_command",
    "generate_bash_description",
    "truncate_output",
]
