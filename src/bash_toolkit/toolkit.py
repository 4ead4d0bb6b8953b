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

"""Toolkit orchestration: configure a sandbox, populate it, build the tools.

Example::

    async with await create_bash_tool(
        BashToolConfig(files={"src/app.py": "print('hi')"})
    ) as toolkit:
        result = await toolkit.bash.execute("python3 src/app.py")
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import TracebackType
from typing import Final

from ._logging import StructuredLogger, get_logger
from .errors import ConfigurationError
from .files.loader import UploadDirectory, get_file_paths, stream_files
from .files.upload import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FILES,
    ensure_file_limit,
    upload_files,
)
from .invocation_log import DEFAULT_LOG_DIRECTORY
from .posix_path import normalize_posix_path, posix_join
from .sandbox._detect import SandboxKind, classify_sandbox, wrap_sandbox
from .sandbox._types import Sandbox
from .sandbox.remote import DEFAULT_REMOTE_DESTINATION
from .sandbox.virtual import (
    DEFAULT_MOUNT_POINT,
    DEFAULT_WORKDIR,
    OverlayMount,
    VirtualSandbox,
    VirtualShell,
)
from .tools.bash import (
    DEFAULT_MAX_OUTPUT_LENGTH,
    AfterBashCall,
    BashTool,
    BeforeBashCall,
)
from .tools.prompt import create_tool_prompt
from .tools.read_file import ReadFileTool
from .tools.write_file import WriteFileTool

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "toolkit"})

DEFAULT_DESTINATION: Final[str] = DEFAULT_WORKDIR


@dataclass(frozen=True, slots=True)
class BashToolConfig:
    """Configuration for :func:`create_bash_tool`.

    Attributes:
        destination: Absolute sandbox directory that receives uploaded files
            and serves as every command's working directory. Defaults to
            ``/workspace``, ``/vercel/sandbox/workspace`` for remote VMs, or
            the overlay mount point when a directory is mounted into the
            built-in virtual shell.
        files: Inline files keyed by path relative to ``destination``. They
            override directory files with the same relative path.
        upload_directory: Host directory to upload. Without a ``sandbox`` it
            is mounted as a copy-on-write overlay instead of being uploaded.
        sandbox: Remote VM client, ``exec``-style shell, or an object that
            already implements the sandbox contract.
        max_output_length: Per-stream character limit for command output.
        max_files: Upload limit; ``0`` disables it.
        enable_invocation_log: Persist every command's full output.
        invocation_log_path: Log directory, relative to ``destination``.
        on_before_bash_call: May return a replacement command.
        on_after_bash_call: May return a replacement result.
        extra_instructions: Appended to the ``bash`` tool description.
        tool_prompt: Fixed tool prompt; skips tool discovery when set.
        timeout_seconds: Limit applied to each tool call.
        batch_size: Files per ``write_files`` call during upload.
    """

    destination: str | None = None
    files: Mapping[str, str] = field(default_factory=dict)
    upload_directory: UploadDirectory | None = None
    sandbox: object | None = None
    max_output_length: int = DEFAULT_MAX_OUTPUT_LENGTH
    max_files: int = DEFAULT_MAX_FILES
    enable_invocation_log: bool = False
    invocation_log_path: str = DEFAULT_LOG_DIRECTORY
    on_before_bash_call: BeforeBashCall | None = None
    on_after_bash_call: AfterBashCall | None = None
    extra_instructions: str | None = None
    tool_prompt: str | None = None
    timeout_seconds: float | None = None
    batch_size: int = DEFAULT_BATCH_SIZE


@dataclass(frozen=True, slots=True)
class BashToolkit:
    """Tools bound to one sandbox and destination.

    ``aclose`` releases the virtual shell the toolkit created itself; caller
    supplied sandboxes are left untouched.
    """

    bash: BashTool
    read_file: ReadFileTool
    write_file: WriteFileTool
    sandbox: Sandbox
    destination: str
    files: tuple[str, ...] = ()
    owned_shell: VirtualShell | None = field(default=None, repr=False)

    @property
    def tools(self) -> Mapping[str, BashTool | ReadFileTool | WriteFileTool]:
        return {"bash": self.bash, "readFile": self.read_file, "writeFile": self.write_file}

    async def aclose(self) -> None:
        if self.owned_shell is not None:
            self.owned_shell.close()

    async def __aenter__(self) -> BashToolkit:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()


def _validate(config: BashToolConfig) -> None:
    if config.destination is not None and not config.destination.startswith("/"):
        raise ConfigurationError(
            f"destination must be an absolute path, got {config.destination!r}."
        )
    if config.max_output_length < 1:
        raise ConfigurationError("max_output_length must be a positive integer.")
    if config.max_files < 0:
        raise ConfigurationError("max_files must be zero or a positive integer.")
    if config.batch_size < 1:
        raise ConfigurationError("batch_size must be at least 1.")
    if config.timeout_seconds is not None and config.timeout_seconds <= 0:
        raise ConfigurationError("timeout_seconds must be positive when set.")


def resolve_destination(config: BashToolConfig) -> str:
    if config.destination is not None:
        return normalize_posix_path(config.destination)
    if config.sandbox is not None:
        if classify_sandbox(config.sandbox) is SandboxKind.REMOTE:
            return DEFAULT_REMOTE_DESTINATION
        return DEFAULT_DESTINATION
    if config.upload_directory is not None:
        return DEFAULT_MOUNT_POINT
    return DEFAULT_DESTINATION


async def create_bash_tool(config: BashToolConfig | None = None) -> BashToolkit:
    """Create a sandbox-backed toolkit.

    Without ``config.sandbox`` a :class:`VirtualShell` is created: inline
    files are seeded into it and ``upload_directory`` is mounted as an
    overlay. With a sandbox, files are uploaded in batches after the file
    limit check passes.

    Raises:
        ConfigurationError: For invalid settings or too many files. Raised
            before anything is written.
        BackendOperationError: When the sandbox rejects an upload.
    """
    config = config or BashToolConfig()
    _validate(config)
    destination = resolve_destination(config)
    overlay = config.sandbox is None and config.upload_directory is not None

    relative_paths = get_file_paths(config.files, config.upload_directory)
    if not overlay:
        ensure_file_limit(len(relative_paths), config.max_files)

    owned_shell: VirtualShell | None = None
    if config.sandbox is None:
        owned_shell = VirtualShell(
            files={posix_join(destination, path): text for path, text in config.files.items()},
            cwd=destination,
            overlay=(
                OverlayMount(config.upload_directory.source, mount_point=destination)
                if config.upload_directory is not None
                else None
            ),
        )
        sandbox: Sandbox = VirtualSandbox(owned_shell, owns_backend=True)
    else:
        sandbox = wrap_sandbox(config.sandbox)
        _ = await upload_files(
            sandbox,
            stream_files(config.files, config.upload_directory),
            destination=destination,
            batch_size=config.batch_size,
        )

    tool_prompt = config.tool_prompt
    if tool_prompt is None:
        tool_prompt = await create_tool_prompt(sandbox, relative_paths)

    bash = BashTool(
        sandbox=sandbox,
        cwd=destination,
        files=relative_paths,
        tool_prompt=tool_prompt,
        extra_instructions=config.extra_instructions,
        on_before_bash_call=config.on_before_bash_call,
        on_after_bash_call=config.on_after_bash_call,
        max_output_length=config.max_output_length,
        enable_invocation_log=config.enable_invocation_log,
        invocation_log_path=config.invocation_log_path,
        timeout_seconds=config.timeout_seconds,
    )

    _LOGGER.info(
        "Created bash toolkit",
        event="toolkit.create",
        context={
            "destination": destination,
            "files": len(relative_paths),
            "sandbox": type(sandbox).__name__,
            "overlay": overlay,
        },
    )
    return BashToolkit(
        bash=bash,
        read_file=ReadFileTool(
            sandbox=sandbox, cwd=destination, timeout_seconds=config.timeout_seconds
        ),
        write_file=WriteFileTool(
            sandbox=sandbox, cwd=destination, timeout_seconds=config.timeout_seconds
        ),
        sandbox=sandbox,
        destination=destination,
        files=tuple(relative_paths),
        owned_shell=owned_shell,
    )


__all__ = [
    "DEFAULT_DESTINATION",
    "BashToolConfig",
    "BashToolkit",
    "OverlayMount",
    "UploadDirectory",
    "create_bash_tool",
    "resolve_destination",
]
