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

"""Base exception hierarchy for :mod:`bash_toolkit`."""

from __future__ import annotations


class BashToolkitError(Exception):
    """Base class for all bash_toolkit exceptions.

    Callers can catch every library-specific failure with a single handler
    while standard Python exceptions keep propagating normally.

    Example:
        Catch any toolkit error::

            try:
                toolkit = await create_bash_tool(config)
            except BashToolkitError as e:
                logger.error("Toolkit setup failed: %s", e)

    Note:
        Subclasses also inherit from builtin exception types (``ValueError``,
        ``RuntimeError``, ``FileNotFoundError``) so existing handlers keep
        working.
    """


class ConfigurationError(BashToolkitError, ValueError):
    """Raised when toolkit configuration cannot be applied.

    Configuration errors are detected before any sandbox mutation happens,
    so an upload is never partially applied. Common causes:

    - More files selected for upload than ``max_files`` allows
    - An optional dependency (for example ``pyyaml``) is not installed
    - Invalid values such as a relative destination or a negative limit
    """


class BackendOperationError(BashToolkitError, RuntimeError):
    """Raised when a sandbox backend fails to complete an operation.

    The error records which operation failed and against which target
    (a path or a command) so failures stay diagnosable after they cross
    the adapter boundary.

    Attributes:
        operation: Name of the sandbox operation, e.g. ``"read_file"``.
        target: Path or command the operation was applied to.
    """

    def __init__(self, message: str, *, operation: str, target: str) -> None:
        super().__init__(message)
        self.operation = operation
        self.target = target


class SandboxFileNotFoundError(BackendOperationError, FileNotFoundError):
    """Raised when a sandbox read targets a file that does not exist.

    A missing file is never reported as empty content.
    """

    def __init__(self, path: str, *, operation: str = "read_file") -> None:
        super().__init__(
            f"File not found: {path}", operation=operation, target=path
        )


class CommandTimeoutError(BackendOperationError, TimeoutError):
    """Raised when a sandbox call exceeds its configured timeout."""

    def __init__(
        self, *, operation: str, target: str, timeout_seconds: float
    ) -> None:
        super().__init__(
            f"{operation} exceeded the {timeout_seconds:g}s timeout.",
            operation=operation,
            target=target,
        )
        self.timeout_seconds = timeout_seconds


class LogFormatError(BashToolkitError, ValueError):
    """Raised when an invocation log cannot be parsed.

    A log missing its ``---STDOUT---`` or ``---STDERR---`` marker is
    indistinguishable from unrelated text and is rejected rather than
    treated as empty output.
    """


class SkillError(BashToolkitError):
    """Base class for skill discovery and loading failures."""


class SkillValidationError(SkillError, ValueError):
    """Raised when a ``SKILL.md`` file has missing or malformed frontmatter.

    Discovery treats this as "not a skill" and skips the directory; direct
    callers of the parser see the error.
    """


__all__ = [
    "BackendOperationError",
    "BashToolkitError",
    "CommandTimeoutError",
    "ConfigurationError",
    "LogFormatError",
    "SandboxFileNotFoundError",
    "SkillError",
    "SkillValidationError",
]
