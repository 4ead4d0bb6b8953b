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

"""Structural detection of caller-supplied sandbox objects.

Signatures are tested in priority order:

1. Remote VM: string ``sandbox_id`` plus callable ``run_command``,
   ``read_file`` and ``write_files``.
2. Virtual shell: callable ``exec``.
3. Anything else must already satisfy the sandbox contract.

An object matching both native signatures is treated as a remote VM, the
more specific of the two.
"""

from __future__ import annotations

from enum import Enum

from ..errors import ConfigurationError
from ._types import Sandbox
from .remote import RemoteSandbox
from .virtual import VirtualSandbox

_REMOTE_METHODS = ("run_command", "read_file", "write_files")
_SANDBOX_METHODS = ("execute_command", "read_file", "write_files")


class SandboxKind(Enum):
    REMOTE = "remote"
    VIRTUAL = "virtual"
    CUSTOM = "custom"


def is_remote_sandbox(candidate: object) -> bool:
    return isinstance(getattr(candidate, "sandbox_id", None), str) and all(
        callable(getattr(candidate, name, None)) for name in _REMOTE_METHODS
    )


def is_virtual_backend(candidate: object) -> bool:
    return callable(getattr(candidate, "exec", None))


def classify_sandbox(candidate: object) -> SandboxKind:
    if is_remote_sandbox(candidate):
        return SandboxKind.REMOTE
    if is_virtual_backend(candidate):
        return SandboxKind.VIRTUAL
    return SandboxKind.CUSTOM


def wrap_sandbox(candidate: object) -> Sandbox:
    """Return ``candidate`` adapted to the :class:`Sandbox` contract.

    Custom sandboxes are returned unchanged.

    Raises:
        ConfigurationError: When ``candidate`` matches no known signature.
    """
    match classify_sandbox(candidate):
        case SandboxKind.REMOTE:
            return RemoteSandbox(candidate)
        case SandboxKind.VIRTUAL:
            return VirtualSandbox(candidate)
        case SandboxKind.CUSTOM:
            missing = [
                name
                for name in _SANDBOX_METHODS
                if not callable(getattr(candidate, name, None))
            ]
            if missing:
                raise ConfigurationError(
                    f"Unsupported sandbox {type(candidate).__name__!r}: missing "
                    f"{', '.join(missing)}."
                )
            return candidate  # type: ignore[return-value]


__all__ = [
    "SandboxKind",
    "classify_sandbox",
    "is_remote_sandbox",
    "is_virtual_backend",
    "wrap_sandbox",
]
