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

"""Sandbox contract and backend adapters."""

from __future__ import annotations

from ._detect import (
    SandboxKind,
    classify_sandbox,
    is_remote_sandbox,
    is_virtual_backend,
    wrap_sandbox,
)
from ._types import CommandResult, FileEntry, Sandbox
from .remote import DEFAULT_REMOTE_DESTINATION, RemoteSandbox
from .virtual import (
    DEFAULT_MOUNT_POINT,
    DEFAULT_WORKDIR,
    OverlayMount,
    VirtualSandbox,
    VirtualShell,
    coerce_command_result,
)

__all__ = [
    "DEFAULT_MOUNT_POINT",
    "DEFAULT_REMOTE_DESTINATION",
    "DEFAULT_WORKDIR",
    "CommandResult",
    "FileEntry",
    "OverlayMount",
    "RemoteSandbox",
    "Sandbox",
    "SandboxKind",
    "VirtualSandbox",
    "VirtualShell",
    "classify_sandbox",
    "coerce_command_result",
    "is_remote_sandbox",
    "is_virtual_backend",
    "wrap_sandbox",
]
