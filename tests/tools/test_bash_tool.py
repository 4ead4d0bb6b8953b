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

import asyncio
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from bash_toolkit.errors import BackendOperationError, CommandTimeoutError
from bash_toolkit.invocation_log import parse_invocation_log
from bash_toolkit.sandbox import CommandResult
from bash_toolkit.tools.bash import (
    BashResult,
    BashTool,
    generate_bash_description,
    truncate_output,
)
from tests.helpers.sandboxes import FakeSandbox, respond

Runner = Callable[[Coroutine[Any, Any, Any]], Any]

_FIXED = datetime(2024, 1, 15, 10, 30, 45, 123000, tzinfo=UTC)


def _clock() -> datetime:
    return _FIXED


class TestTruncateOutput:
    def test_exact_length_is_untouched(self) -> None:
        assert truncate_output("abcde", 5, "stdout") == "abcde"

    def test_notice_counts_removed_characters(self) -> None:
        assert (
            truncate_output("abcdefg", 5, "stderr")
            == "abcde\n\n[stderr truncated: 2 characters removed]"
        )

    @given(text=st.text(max_size=40), limit=st.integers(min_value=1, max_value=30))
    def test_prefix_is_kept_and_count_is_exact(self, text: str, limit: int) -> None:
        truncated = truncate_output(text, limit, "stdout")

        if len(text) <= limit:
            assert truncated == text
        else:
            assert truncated.startswith(text[:limit])
            assert truncated.endswith(
                f"[stdout truncated: {len(text) - limit} characters removed]"
            )


class TestDescription:
    def test_lists_sample_of_files(self) -> None:
        files = [f"file{index}.txt" for index in range(10)]

        description = generate_bash_description(cwd="/workspace", files=files)

        assert "WORKING DIRECTORY: /workspace" in description
        assert "  file7.txt" in description
        assert "  file8.txt" not in description
        assert "  ... and 2 more files" in description
        assert "INVOCATION LOGS" not in description

    def test_includes_prompt_logs_and_extra_instructions(self) -> None:
        description = generate_bash_description(
            cwd="/w",
            tool_prompt="Available tools: jq, and more",
            extra_instructions="Be careful.",
            invocation_log_directory="/w/.bash-tool/commands",
        )

        assert "Available tools: jq, and more" in description
        assert "/w/.bash-tool/commands" in description
        assert description.endswith("Be careful.")


class TestExecute:
    def test_runs_from_working_directory(self, run: Runner) -> None:
        sandbox = FakeSandbox(handler=respond(stdout="ok\n", stderr="warn", exit_code=3))
        tool = BashTool(sandbox=sandbox, cwd="/work space")

        result = run(tool.execute("ls"))

        assert sandbox.commands == ['cd "/work space" && ls']
        assert result == BashResult(stdout="ok\n", stderr="warn", exit_code=3)
        assert result.to_dict() == {"stdout": "ok\n", "stderr": "warn", "exitCode": 3}

    def test_output_streams_are_truncated_independently(self, run: Runner) -> None:
        sandbox = FakeSandbox(handler=respond(stdout="x" * 12, stderr="y" * 3))
        tool = BashTool(sandbox=sandbox, cwd="/w", max_output_length=10)

        result = run(tool.execute("cat big"))

        assert result.stdout == "x" * 10 + "\n\n[stdout truncated: 2 characters removed]"
        assert result.stderr == "yyy"

    def test_empty_filter_runs_unfiltered(self, run: Runner) -> None:
        sandbox = FakeSandbox()

        _ = run(BashTool(sandbox=sandbox, cwd="/w").execute("ls", output_filter=""))

        assert sandbox.commands == ["cd /w && ls"]

    def test_filter_runs_single_script(self, run: Runner) -> None:
        sandbox = FakeSandbox()

        _ = run(BashTool(sandbox=sandbox, cwd="/w").execute("seq 5", output_filter="tail -2"))

        assert len(sandbox.commands) == 1
        script = sandbox.commands[0]
        assert "seq 5" in script
        assert "tail -2" in script
        assert "mkdir -p" not in script


class TestHooks:
    def test_before_hook_replaces_command(self, run: Runner) -> None:
        sandbox = FakeSandbox()
        tool = BashTool(
            sandbox=sandbox, cwd="/w", on_before_bash_call=lambda command: f"{command} -la"
        )

        _ = run(tool.execute("ls"))

        assert sandbox.commands == ["cd /w && ls -la"]

    def test_async_before_hook_returning_none_keeps_command(self, run: Runner) -> None:
        seen: list[str] = []

        async def before(command: str) -> str | None:
            seen.append(command)
            return None

        sandbox = FakeSandbox()
        _ = run(BashTool(sandbox=sandbox, cwd="/w", on_before_bash_call=before).execute("ls"))

        assert seen == ["ls"]
        assert sandbox.commands == ["cd /w && ls"]

    def test_after_hook_sees_truncated_result(self, run: Runner) -> None:
        seen: list[tuple[str, CommandResult]] = []

        def after(command: str, result: CommandResult) -> CommandResult:
            seen.append((command, result))
            return CommandResult(stdout="redacted", stderr="", exit_code=0)

        sandbox = FakeSandbox(handler=respond(stdout="secret-value", exit_code=1))
        tool = BashTool(
            sandbox=sandbox,
            cwd="/w",
            max_output_length=6,
            on_before_bash_call=lambda command: "cat secret",
            on_after_bash_call=after,
        )

        result = run(tool.execute("ls"))

        assert seen[0][0] == "cat secret"
        assert seen[0][1].stdout.startswith("secret\n\n[stdout truncated")
        assert result.stdout == "redacted"
        assert result.exit_code == 0


class TestInvocationLog:
    def test_unfiltered_log_is_written_with_hooked_command(self, run: Runner) -> None:
        sandbox = FakeSandbox(handler=respond(stdout="1\n2\n", stderr="e"))
        tool = BashTool(
            sandbox=sandbox,
            cwd="/w",
            enable_invocation_log=True,
            on_before_bash_call=lambda command: "seq 2",
            clock=_clock,
        )

        result = run(tool.execute("original"))

        path = "/w/.bash-tool/commands/2024-01-15T10-30-45.123Z.invocation"
        assert result.invocation_log_path == path
        assert result.to_dict()["invocationLogPath"] == path
        assert sandbox.commands[1] == "mkdir -p /w/.bash-tool/commands"
        log = parse_invocation_log(sandbox.files[path].decode())
        assert (log.command, log.stdout, log.stderr, log.exit_code) == ("seq 2", "1\n2\n", "e", 0)
        assert log.timestamp == "2024-01-15T10:30:45.123Z"
        assert log.output_filter is None

    def test_custom_log_directory_resolves_against_cwd(self) -> None:
        tool = BashTool(
            sandbox=FakeSandbox(),
            cwd="/w",
            enable_invocation_log=True,
            invocation_log_path="../logs",
        )

        assert tool.invocation_log_directory == "/logs"
        assert "INVOCATION LOGS" in tool.description

    def test_log_directory_failure_is_reported(self, run: Runner) -> None:
        def handler(command: str) -> CommandResult:
            if command.startswith("mkdir"):
                return CommandResult(stdout="", stderr="denied", exit_code=1)
            return CommandResult(stdout="", stderr="", exit_code=0)

        tool = BashTool(sandbox=FakeSandbox(handler=handler), cwd="/w", enable_invocation_log=True)

        with pytest.raises(BackendOperationError, match="denied"):
            run(tool.execute("ls"))

    def test_filtered_log_is_written_by_the_script(self, run: Runner) -> None:
        sandbox = FakeSandbox()
        tool = BashTool(sandbox=sandbox, cwd="/w", enable_invocation_log=True, clock=_clock)

        result = run(tool.execute("seq 5", output_filter="tail -2"))

        assert len(sandbox.commands) == 1
        assert sandbox.writes == []
        assert result.invocation_log_path is not None
        assert result.invocation_log_path in sandbox.commands[0]

    def test_disabled_logging_leaves_path_unset(self, run: Runner) -> None:
        result = run(BashTool(sandbox=FakeSandbox(), cwd="/w").execute("ls"))

        assert result.invocation_log_path is None
        assert "invocationLogPath" not in result.to_dict()


def test_timeout_raises(run: Runner) -> None:
    class _Slow(FakeSandbox):
        async def execute_command(self, command: str) -> CommandResult:
            await asyncio.sleep(5)
            return CommandResult(stdout="", stderr="", exit_code=0)

    tool = BashTool(sandbox=_Slow(), cwd="/w", timeout_seconds=0.05)

    with pytest.raises(CommandTimeoutError) as excinfo:
        run(tool.execute("sleep 5"))

    assert excinfo.value.operation == "bash"


def test_parameters_schema() -> None:
    tool = BashTool(sandbox=FakeSandbox(), cwd="/w")

    assert tool.name == "bash"
    assert tool.parameters["required"] == ["command"]
    assert set(tool.parameters["properties"]) == {"command", "outputFilter"}
