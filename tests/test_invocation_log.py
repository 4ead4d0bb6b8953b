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

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from bash_toolkit.errors import LogFormatError
from bash_toolkit.invocation_log import (
    InvocationLog,
    format_header_lines,
    format_invocation_log,
    invocation_log_filename,
    invocation_timestamp,
    is_invocation_file,
    parse_invocation_log,
)

SAMPLE = InvocationLog(
    timestamp="2024-01-15T10:30:45.123Z",
    command="cat numbers.txt",
    exit_code=0,
    stdout="1\n2\n3\n4\n5",
    stderr="",
    output_filter="tail -2",
)


class TestFormat:
    def test_layout(self) -> None:
        assert format_invocation_log(SAMPLE) == "\n".join(
            [
                "# timestamp: 2024-01-15T10:30:45.123Z",
                "# command: cat numbers.txt",
                "# exitCode: 0",
                "# outputFilter: tail -2",
                "---STDOUT---",
                "1\n2\n3\n4\n5",
                "---STDERR---",
                "",
            ]
        )

    def test_omits_output_filter_when_unset(self) -> None:
        text = format_invocation_log(
            InvocationLog(
                timestamp="t", command="ls", exit_code=2, stdout="", stderr="boom"
            )
        )

        assert "outputFilter" not in text
        assert text.endswith("---STDERR---\nboom")

    def test_header_lines_accept_shell_expression(self) -> None:
        lines = format_header_lines(
            timestamp="t", command="ls", exit_code="$_bt_code", output_filter=None
        )

        assert lines == ["# timestamp: t", "# command: ls", "# exitCode: $_bt_code"]


class TestParse:
    def test_round_trip_sample(self) -> None:
        assert parse_invocation_log(format_invocation_log(SAMPLE)) == SAMPLE

    def test_multiline_command_is_kept(self) -> None:
        log = InvocationLog(
            timestamp="t",
            command="for i in 1 2; do\n  echo $i\ndone",
            exit_code=0,
            stdout="1\n2\n",
            stderr="",
        )

        assert parse_invocation_log(format_invocation_log(log)).command == log.command

    def test_headers_in_any_order(self) -> None:
        text = "# exitCode: 3\n# command: false\n# timestamp: t\n---STDOUT---\nout\n---STDERR---\nerr"

        parsed = parse_invocation_log(text)

        assert (parsed.exit_code, parsed.command, parsed.stdout, parsed.stderr) == (
            3,
            "false",
            "out",
            "err",
        )
        assert parsed.output_filter is None

    def test_hand_written_log_without_empty_stdout_line(self) -> None:
        text = "# timestamp: t\n# command: true\n# exitCode: 0\n---STDOUT---\n---STDERR---\n"

        parsed = parse_invocation_log(text)

        assert parsed.stdout == ""
        assert parsed.stderr == ""

    def test_missing_stdout_marker(self) -> None:
        with pytest.raises(LogFormatError, match="STDOUT"):
            _ = parse_invocation_log("# timestamp: t\nplain text")

    def test_missing_stderr_marker(self) -> None:
        with pytest.raises(LogFormatError, match="STDERR"):
            _ = parse_invocation_log("# timestamp: t\n---STDOUT---\nout")

    def test_missing_headers(self) -> None:
        with pytest.raises(LogFormatError, match="command, exitCode"):
            _ = parse_invocation_log("# timestamp: t\n---STDOUT---\n\n---STDERR---\n")

    def test_non_integer_exit_code(self) -> None:
        with pytest.raises(LogFormatError, match="non-integer"):
            _ = parse_invocation_log(
                "# timestamp: t\n# command: x\n# exitCode: abc\n---STDOUT---\n\n---STDERR---\n"
            )


_TEXT = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=60)


@given(stdout=_TEXT, stderr=_TEXT)
def test_streams_survive_encoding(stdout: str, stderr: str) -> None:
    # Streams containing a marker line are not escaped.
    assume("---STDERR---" not in stdout and "---STDOUT---" not in stdout)
    log = InvocationLog(
        timestamp="t", command="cmd", exit_code=0, stdout=stdout, stderr=stderr
    )

    parsed = parse_invocation_log(format_invocation_log(log))

    assert (parsed.stdout, parsed.stderr) == (stdout, stderr)


def test_filename_is_filesystem_safe() -> None:
    assert (
        invocation_log_filename("2024-01-15T10:30:45.123Z")
        == "2024-01-15T10-30-45.123Z.invocation"
    )
    assert is_invocation_file("/logs/2024-01-15T10-30-45.123Z.invocation")
    assert not is_invocation_file("/logs/output.txt")


def test_timestamp_is_utc_with_milliseconds() -> None:
    moment = datetime(2024, 1, 15, 12, 30, 45, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert invocation_timestamp(moment) == "2024-01-15T10:30:45.123Z"
    assert invocation_timestamp().endswith("Z")
    assert invocation_timestamp(datetime(2024, 1, 1, tzinfo=UTC)) == "2024-01-01T00:00:00.000Z"
