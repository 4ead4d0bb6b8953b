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

"""The ``writeFile`` tool."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

from ..posix_path import posix_resolve
from ..sandbox._types import FileEntry, Sandbox
from ._common import object_schema, run_with_timeout


@dataclass(frozen=True, slots=True)
class WriteFileResult:
    path: str
    success: bool = True

    def to_dict(self) -> dict[str, object]:
        return {"success": self.success, "path": self.path}


class WriteFileTool:
    name: Final[str] = "writeFile"
    description: Final[str] = (
        "Write content to a file in the sandbox. Creates parent directories if "
        "needed. Relative paths resolve against the working directory."
    )

    def __init__(
        self, *, sandbox: Sandbox, cwd: str, timeout_seconds: float | None = None
    ) -> None:
        self._sandbox = sandbox
        self._cwd = cwd
        self._timeout = timeout_seconds
        self.parameters: dict[str, Any] = object_schema(
            {
                "path": {
                    "type": "string",
                    "description": "The path where the file should be written",
                },
                "content": {
                    "type": "string",
                    "description": "The content to write to the file",
                },
            },
            required=("path", "content"),
        )

    async def execute(self, path: str, content: str) -> WriteFileResult:
        resolved = posix_resolve(self._cwd, path)
        await run_with_timeout(
            self._sandbox.write_files([FileEntry.from_text(resolved, content)]),
            timeout_seconds=self._timeout,
            operation="writeFile",
            target=resolved,
        )
        return WriteFileResult(path=resolved)


__all__ = ["WriteFileResult", "WriteFileTool"]
