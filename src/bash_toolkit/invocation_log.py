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

"""Codec for persisted command invocation logs.

A log records one command's complete, unfiltered execution in a text format
that the sandbox's own tools can grep::

    # timestamp: 2024-01-15T10:30:45.123Z
    # command: cat numbers.txt
    # exitCode: 0
    # outputFilter: tail -2
    ---STDOUT---
    <stdout verbatim>
    ---STDERR---
    <stderr verbatim>

Lines are joined with ``\\n`` and no trailing newline is added, so stdout and
stderr are recovered byte for byte. Output that itself contains a marker line
is not escaped; the first matching marker wins when decoding.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

from .errors import LogFormatError

STDOUT_MARKER: Final[str] = "---STDOUT---"
STDERR_MARKER: Final[str] = "---STDERR---"
INVOCATION_SUFFIX: Final[str] = ".invocation"
DEFAULT_LOG_DIRECTORY: Final[str] = ".bash-tool/commands"

STDOUT_EXTRACT_PROGRAM: Final[str] = (
    f'state == 1 && $0 == "{STDERR_MARKER}" {{ state = 2; next }} '
    'state == 1 { if (n++) printf "\\n"; printf "%s", $0 } '
    f'state == 0 && $0 == "{STDOUT_MARKER}" {{ state = 1 }} '
    "END { if (state != 2) exit 3 }"
)
"""awk program printing exactly the stdout section of a log.

Exits with status 3 when either marker is missing.
"""

_HEADER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^# (timestamp|command|exitCode|outputFilter): ?(.*)$"
)
_STDERR_SEPARATOR: Final[str] = f"\n{STDERR_MARKER}"


@dataclass(frozen=True, slots=True)
class InvocationLog:
    """Complete record of a single command execution."""

    timestamp: str
    command: str
    exit_code: int
    stdout: str
    stderr: str
    output_filter: str | None = None


def invocation_timestamp(moment: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    value = (moment or datetime.now(UTC)).astimezone(UTC)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def invocation_log_filename(timestamp: str) -> str:
    """Return the filesystem-safe log filename for ``timestamp``.

    >>> invocation_log_filename("2024-01-15T10:30:45.123Z")
    '2024-01-15T10-30-45.123Z.invocation'
    """
    return f"{timestamp.replace(':', '-')}{INVOCATION_SUFFIX}"


def is_invocation_file(path: str) -> bool:
    return path.endswith(INVOCATION_SUFFIX)


def format_header_lines(
    *, timestamp: str, command: str, exit_code: int | str, output_filter: str | None
) -> list[str]:
    """Return the header lines in their fixed order.

    ``exit_code`` may be a shell expression such as ``$_bt_code`` when the
    header is rendered inside a generated script.
    """
    lines = [
        f"# timestamp: {timestamp}",
        f"# command: {command}",
        f"# exitCode: {exit_code}",
    ]
    if output_filter:
        lines.append(f"# outputFilter: {output_filter}")
    return lines


def format_invocation_log(log: InvocationLog) -> str:
    """Encode ``log``; the ``outputFilter`` line is omitted when unset."""
    lines = format_header_lines(
        timestamp=log.timestamp,
        command=log.command,
        exit_code=log.exit_code,
        output_filter=log.output_filter,
    )
    lines.extend([STDOUT_MARKER, log.stdout, STDERR_MARKER, log.stderr])
    return "\n".join(lines)


def parse_invocation_log(content: str) -> InvocationLog:
    """Decode a log produced by :func:`format_invocation_log`.

    Header lines may appear in any order. A line that is not a recognised
    header continues the previous field, which keeps multi-line commands
    intact.

    Raises:
        LogFormatError: When a marker or a required header is missing, or
            the exit code is not an integer.
    """
    header_text, stdout_start = _split_header(content)
    stderr_index = _find_stderr_separator(content, stdout_start)

    stdout = content[stdout_start:stderr_index]
    stderr_start = stderr_index + len(_STDERR_SEPARATOR) + 1
    stderr = content[stderr_start:]

    fields = _parse_headers(header_text)
    missing = [key for key in ("timestamp", "command", "exitCode") if key not in fields]
    if missing:
        raise LogFormatError(f"Invocation log is missing headers: {', '.join(missing)}")
    try:
        exit_code = int(fields["exitCode"].strip())
    except ValueError as error:
        raise LogFormatError(
            f"Invocation log has a non-integer exit code: {fields['exitCode']!r}"
        ) from error

    return InvocationLog(
        timestamp=fields["timestamp"],
        command=fields["command"],
        exit_code=exit_code,
        stdout=stdout,
        stderr=stderr,
        output_filter=fields.get("outputFilter") or None,
    )


def _split_header(content: str) -> tuple[str, int]:
    marker_line = f"{STDOUT_MARKER}\n"
    if content.startswith(marker_line):
        return "", len(marker_line)
    index = content.find(f"\n{marker_line}")
    if index == -1:
        raise LogFormatError(f"Invocation log is missing the {STDOUT_MARKER} marker.")
    return content[:index], index + 1 + len(marker_line)


def _find_stderr_separator(content: str, start: int) -> int:
    # Hand-written logs may omit the empty stdout line entirely.
    position = start - 1
    while True:
        index = content.find(_STDERR_SEPARATOR, position)
        if index == -1:
            raise LogFormatError(f"Invocation log is missing the {STDERR_MARKER} marker.")
        end = index + len(_STDERR_SEPARATOR)
        if end == len(content) or content[end] == "\n":
            return index
        position = index + 1


def _parse_headers(header_text: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    current: str | None = None
    for line in header_text.split("\n") if header_text else []:
        match = _HEADER_PATTERN.match(line)
        if match is not None:
            current = match.group(1)
            fields[current] = match.group(2)
        elif current is not None:
            fields[current] = f"{fields[current]}\n{line}"
    return fields


__all__ = [
    "DEFAULT_LOG_DIRECTORY",
    "INVOCATION_SUFFIX",
    "STDERR_MARKER",
    "STDOUT_EXTRACT_PROGRAM",
    "STDOUT_MARKER",
    "InvocationLog",
    "format_header_lines",
    "format_invocation_log",
    "invocation_log_filename",
    "invocation_timestamp",
    "is_invocation_file",
    "parse_invocation_log",
]
