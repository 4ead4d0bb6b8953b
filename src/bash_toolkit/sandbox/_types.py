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

"""Core types shared by every sandbox backend.

A sandbox is any object exposing three coroutines:

- ``execute_command(command)`` returning a :class:`CommandResult`
- ``read_file(path)`` returning the file's bytes
- ``write_files(entries)`` writing a batch of :class:`FileEntry` values

Backends agree on exit-code semantics (``0`` means success) and raise
:class:`~bash_toolkit.errors.SandboxFileNotFoundError` for missing files
instead of returning empty content.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a single command.

    Instances are immutable; truncation and hooks derive new values with
    :func:`dataclasses.replace`.
    """

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A file to be written into a sandbox.

    ``path`` identifies the entry. Text is UTF-8 encoded before it becomes an
    entry, so ``content`` is always opaque bytes.
    """

    path: str
    content: bytes = field(repr=False)

    @classmethod
    def from_text(cls, path: str, text: str) -> FileEntry:
        return cls(path=path, content=text.encode("utf-8"))


@runtime_checkable
class Sandbox(Protocol):
    """Contract implemented by every execution backend."""

    async def execute_command(self, command: str) -> CommandResult:
        """Run ``command`` through a ``/bin/sh`` compatible shell."""
        ...

    async def read_file(self, path: str) -> bytes:
        """Return the bytes stored at ``path``.

        Raises:
            SandboxFileNotFoundError: When ``path`` does not exist.
        """
        ...

    async def write_files(self, files: Sequence[FileEntry]) -> None:
        """Write every entry, creating parent directories as needed."""
        ...


__all__ = ["CommandResult", "FileEntry", "Sandbox"]
