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

from dataclasses import dataclass

import pytest

from bash_toolkit.errors import ConfigurationError
from bash_toolkit.sandbox import (
    CommandResult,
    RemoteSandbox,
    SandboxKind,
    VirtualSandbox,
    classify_sandbox,
    wrap_sandbox,
)
from tests.helpers.sandboxes import FakeSandbox, FakeVM


@dataclass
class _ExecShell:
    def exec(self, command: str) -> CommandResult:
        return CommandResult(stdout=command, stderr="", exit_code=0)


@dataclass
class _Hybrid(FakeVM):
    def exec(self, command: str) -> CommandResult:
        return CommandResult(stdout="", stderr="", exit_code=0)


class _NotASandbox:
    async def execute_command(self, command: str) -> CommandResult:
        return CommandResult(stdout="", stderr="", exit_code=0)


class TestClassify:
    def test_remote_vm(self) -> None:
        assert classify_sandbox(FakeVM()) is SandboxKind.REMOTE

    def test_exec_shell(self) -> None:
        assert classify_sandbox(_ExecShell()) is SandboxKind.VIRTUAL

    def test_remote_wins_over_exec(self) -> None:
        assert classify_sandbox(_Hybrid()) is SandboxKind.REMOTE

    def test_non_string_sandbox_id_is_not_remote(self) -> None:
        vm = FakeVM()
        vm.sandbox_id = 42  # type: ignore[assignment]

        assert classify_sandbox(vm) is SandboxKind.CUSTOM

    def test_custom(self) -> None:
        assert classify_sandbox(FakeSandbox()) is SandboxKind.CUSTOM


class TestWrap:
    def test_remote_is_adapted(self) -> None:
        vm = FakeVM()

        wrapped = wrap_sandbox(vm)

        assert isinstance(wrapped, RemoteSandbox)
        assert wrapped.vm is vm
        assert wrapped.sandbox_id == "sbx_test"

    def test_exec_shell_is_adapted(self) -> None:
        shell = _ExecShell()

        wrapped = wrap_sandbox(shell)

        assert isinstance(wrapped, VirtualSandbox)
        assert wrapped.backend is shell

    def test_custom_sandbox_keeps_identity(self) -> None:
        sandbox = FakeSandbox()

        assert wrap_sandbox(sandbox) is sandbox

    def test_incomplete_object_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="read_file, write_files"):
            _ = wrap_sandbox(_NotASandbox())
