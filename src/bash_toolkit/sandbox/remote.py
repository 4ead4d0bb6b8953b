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

"""Adapter for remote VM sandboxes.

A remote VM is recognised by its shape: a string ``sandbox_id`` plus
callable ``run_command``, ``read_file`` and ``write_files`` attributes. The
adapter tolerates both sync and async SDK surfaces: every value it receives
is awaited when awaitable.

Commands run as ``bash -c <command>``. The command result exposes
``stdout``/``stderr`` either as values or as (async) callables, and both
streams are collected before the adapter returns, whatever the exit code.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, Iterable, Sequence
from typing import Final

from .._logging import StructuredLogger, get_logger
from ..errors import BackendOperationError, BashToolkitError, SandboxFileNotFoundError
from ._types import CommandResult, FileEntry

_LOGGER: StructuredLogger = get_logger(
    __name__, context={"component": "sandbox.remote"}
)

DEFAULT_REMOTE_DESTINATION: Final[str] = "/vercel/sandbox/workspace"
_SHELL: Final[str] = "bash"


async def _resolve(value: object) -> object:
    if inspect.isawaitable(value):
        return await value
    return value


class RemoteSandbox:
    """Sandbox backed by a remote VM client object."""

    def __init__(self, vm: object) -> None:
        self._vm = vm

    @property
    def vm(self) -> object:
        return self._vm

    @property
    def sandbox_id(self) -> str:
        return str(getattr(self._vm, "sandbox_id", ""))

    async def execute_command(self, command: str) -> CommandResult:
        try:
            outcome = await _resolve(
                self._vm.run_command(_SHELL, ["-c", command])  # type: ignore[attr-defined]
            )
            stdout, stderr = await asyncio.gather(
                _read_stream(outcome, "stdout"), _read_stream(outcome, "stderr")
            )
        except BashToolkitError:
            raise
        except Exception as error:
            raise BackendOperationError(
                f"Remote command failed: {error}",
                operation="execute_command",
                target=command,
            ) from error

        exit_code = getattr(outcome, "exit_code", None)
        if exit_code is None:
            exit_code = getattr(outcome, "exitCode", 0)
        _LOGGER.debug(
            "Executed remote command",
            event="sandbox.remote.exec",
            context={"sandbox_id": self.sandbox_id, "exit_code": exit_code},
        )
        return CommandResult(stdout=stdout, stderr=stderr, exit_code=int(exit_code))

    async def read_file(self, path: str) -> bytes:
        try:
            stream = await _resolve(self._vm.read_file(path))  # type: ignore[attr-defined]
            if stream is None:
                raise SandboxFileNotFoundError(path)
            return await _drain(stream)
        except BashToolkitError:
            raise
        except Exception as error:
            raise BackendOperationError(
                f"Remote read failed: {error}", operation="read_file", target=path
            ) from error

    async def write_files(self, files: Sequence[FileEntry]) -> None:
        payload = [
            {"path": entry.path, "content": _as_binary(entry.content)} for entry in files
        ]
        try:
            _ = await _resolve(self._vm.write_files(payload))  # type: ignore[attr-defined]
        except BashToolkitError:
            raise
        except Exception as error:
            target = files[0].path if files else ""
            raise BackendOperationError(
                f"Remote write failed: {error}", operation="write_files", target=target
            ) from error


def _as_binary(content: bytes | str) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


async def _read_stream(outcome: object, name: str) -> str:
    value = getattr(outcome, name, "")
    if callable(value):
        value = value()
    value = await _resolve(value)
    if isinstance(value, bytes | bytearray):
        return bytes(value).decode("utf-8", errors="replace")
    return "" if value is None else str(value)


async def _drain(stream: object) -> bytes:
    """Collect every chunk of a byte stream returned by the VM client."""
    if isinstance(stream, bytes):
        return stream
    if isinstance(stream, bytearray | memoryview):
        return bytes(stream)
    if isinstance(stream, str):
        return stream.encode("utf-8")

    read = getattr(stream, "read", None)
    if callable(read):
        data = await _resolve(read())
        return await _drain(data)

    chunks: list[bytes] = []
    if isinstance(stream, AsyncIterable):
        async for chunk in stream:
            chunks.append(_chunk_bytes(chunk))
    elif isinstance(stream, Iterable):
        for chunk in stream:
            chunks.append(_chunk_bytes(chunk))
    else:
        raise TypeError(f"Unsupported stream type: {type(stream).__name__}")
    return b"".join(chunks)


def _chunk_bytes(chunk: object) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)  # type: ignore[arg-type]


__all__ = ["DEFAULT_REMOTE_DESTINATION", "RemoteSandbox"]
