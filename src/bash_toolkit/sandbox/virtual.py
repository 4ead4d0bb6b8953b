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

"""In-process virtual backend and the adapter for ``exec``-style shells.

:class:`VirtualShell` gives each instance a private scratch directory that
stands in for the sandbox filesystem. Commands run through ``/bin/sh`` with
the shell's virtual roots (``/workspace`` by default) rewritten into the
scratch directory, and scratch paths are rewritten back in the output, so a
command observes the virtual layout: ``pwd`` prints ``/workspace`` rather
than the host temp path.

Rewriting is quote aware. Single-quoted strings and the bodies of
here-documents with a quoted delimiter are literal data and pass through
untouched, so ``grep -c '/workspace' notes.txt`` searches for the text
``/workspace``. Paths must therefore be unquoted or double-quoted to be
mapped. Commands are ordinary host processes: only the owned roots and
``$TMPDIR`` live in the scratch directory.

File reads and writes made through :meth:`VirtualShell.read_file` and
:meth:`VirtualShell.write_files` map every absolute path into the scratch
directory and never touch the host filesystem outside it.

:class:`VirtualSandbox` adapts any object with an ``exec(command)`` method,
sync or async, to the :class:`~bash_toolkit.sandbox.Sandbox` contract.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
import os
import re
import shlex
import shutil
import subprocess  # nosec: B404
import tempfile
import weakref
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .._logging import StructuredLogger, get_logger
from ..errors import BackendOperationError, CommandTimeoutError, SandboxFileNotFoundError
from ..files._constants import IGNORED_DIRECTORIES
from ..posix_path import normalize_posix_path, posix_dirname, posix_resolve
from ._types import CommandResult, FileEntry

_LOGGER: StructuredLogger = get_logger(
    __name__, context={"component": "sandbox.virtual"}
)

DEFAULT_WORKDIR: Final[str] = "/workspace"
DEFAULT_MOUNT_POINT: Final[str] = "/home/user/project"
_SCRATCH_ROOT_ENV: Final[str] = "BASH_TOOLKIT_SCRATCH_ROOT"
_SHELL: Final[str] = "/bin/sh"
_NOT_FOUND_STATUS: Final[int] = 44
_MAX_SCRIPT_CHARS: Final[int] = 96_000
_BASE64_CHUNK: Final[int] = 64_000
_SYSTEM_ROOTS: Final[frozenset[str]] = frozenset(
    {
        "bin",
        "boot",
        "dev",
        "etc",
        "lib",
        "lib32",
        "lib64",
        "proc",
        "run",
        "sbin",
        "sys",
        "tmp",
        "usr",
        "var",
    }
)
_HEREDOC_PATTERN: Final[re.Pattern[str]] = re.compile(r"<<-?[ \t]*(['\"]?)([\w.-]+)\1")
_COMMENT_PRECEDERS: Final[str] = " \t\n;&|()"


@dataclass(frozen=True, slots=True)
class OverlayMount:
    """A host directory exposed inside a :class:`VirtualShell`.

    The tree is copied into the shell's scratch space when the shell is
    created; writes made through the sandbox never reach ``source``.
    """

    source: str | Path
    mount_point: str = DEFAULT_MOUNT_POINT


class VirtualShell:
    """Shell backend rooted in a private scratch directory.

    Args:
        files: Initial files keyed by virtual path. Relative keys resolve
            against ``cwd``.
        cwd: Working directory. Defaults to the overlay mount point when an
            overlay is given, otherwise ``/workspace``.
        overlay: Optional host directory copied in at its mount point.
        timeout_seconds: Per-command limit. ``None`` waits indefinitely.
        env: Extra environment variables for every command.
    """

    def __init__(
        self,
        *,
        files: Mapping[str, str | bytes] | None = None,
        cwd: str | None = None,
        overlay: OverlayMount | None = None,
        timeout_seconds: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        default_cwd = overlay.mount_point if overlay is not None else DEFAULT_WORKDIR
        self._cwd = normalize_posix_path(cwd or default_cwd)
        self._overlay = overlay
        self._timeout = timeout_seconds
        self._env = dict(env or {})
        self._scratch = _create_scratch_dir()
        self._finalizer = weakref.finalize(self, shutil.rmtree, self._scratch, True)

        seeded = {
            posix_resolve(self._cwd, path): content
            for path, content in (files or {}).items()
        }
        anchors = [self._cwd, *(posix_dirname(path) for path in seeded)]
        if overlay is not None:
            anchors.append(normalize_posix_path(overlay.mount_point))
        self._roots: list[str] = []
        self._root_pattern = re.compile(r"(?!)")
        self._claim_roots(anchors)

        self.host_path(self._cwd).mkdir(parents=True, exist_ok=True)
        self.host_path("/tmp").mkdir(parents=True, exist_ok=True)
        if overlay is not None:
            self._copy_overlay(overlay)
        for path, content in seeded.items():
            target = self.host_path(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                _ = target.write_text(content, encoding="utf-8")
            else:
                _ = target.write_bytes(content)

        _LOGGER.debug(
            "Created virtual shell",
            event="sandbox.virtual.create",
            context={
                "cwd": self._cwd,
                "roots": list(self._roots),
                "files": len(seeded),
                "overlay": str(overlay.source) if overlay is not None else None,
            },
        )

    @property
    def cwd(self) -> str:
        return self._cwd

    @property
    def scratch_dir(self) -> Path:
        return self._scratch

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def host_path(self, virtual_path: str, *, operation: str = "host_path") -> Path:
        """Map a virtual path to its scratch location.

        Relative paths resolve against ``cwd``; ``..`` never climbs above the
        virtual root.

        Raises:
            BackendOperationError: When a symlink inside the scratch
                directory would carry the path outside it.
        """
        resolved = posix_resolve(self._cwd, virtual_path)
        target = self._scratch / resolved.lstrip("/")
        if not target.resolve().is_relative_to(self._scratch):
            raise BackendOperationError(
                f"Path escapes the virtual filesystem: {virtual_path}",
                operation=operation,
                target=virtual_path,
            )
        return target

    def to_host(self, text: str) -> str:
        """Rewrite owned virtual roots in ``text`` to scratch paths.

        Literal shell text (single-quoted strings and quoted here-document
        bodies) is left as written.
        """
        pieces: list[str] = []
        cursor = 0
        for start, end in _literal_spans(text):
            pieces.extend([self._rewrite(text[cursor:start]), text[start:end]])
            cursor = end
        pieces.append(self._rewrite(text[cursor:]))
        return "".join(pieces)

    def to_virtual(self, text: str) -> str:
        """Strip the scratch prefix from paths appearing in ``text``."""
        return text.replace(str(self._scratch), "")

    async def exec(self, command: str) -> CommandResult:
        """Run ``command`` from the working directory."""
        self._ensure_open("exec", command)
        return await asyncio.to_thread(self._run, command)

    async def read_file(self, path: str) -> bytes:
        """Return the bytes stored at ``path`` inside the scratch directory.

        Raises:
            SandboxFileNotFoundError: When nothing exists at ``path``.
            BackendOperationError: When the path escapes the scratch
                directory or cannot be read.
        """
        self._ensure_open("read_file", path)
        return await asyncio.to_thread(self._read, path)

    async def write_files(self, files: Sequence[FileEntry]) -> None:
        """Write each entry inside the scratch directory, creating parents.

        Absolute paths outside the current roots become owned roots, so later
        commands see the written files at their virtual paths.
        """
        if files:
            self._ensure_open("write_files", files[0].path)
        await asyncio.to_thread(self._write, files)

    def close(self) -> None:
        finalizer = self._finalizer
        if finalizer.alive:
            _ = finalizer()

    def __enter__(self) -> VirtualShell:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _ensure_open(self, operation: str, target: str) -> None:
        if self.closed:
            raise BackendOperationError(
                "Virtual shell is closed.", operation=operation, target=target
            )

    def _claim_roots(self, paths: Iterable[str]) -> None:
        roots = {*self._roots, *(_owned_root(path) for path in paths)}
        if len(roots) == len(self._roots):
            return
        self._roots = sorted(roots, key=len, reverse=True)
        self._root_pattern = re.compile(
            "|".join(rf"(?<![\w./-]){re.escape(root)}(?![\w.-])" for root in self._roots)
        )

    def _rewrite(self, text: str) -> str:
        return self._root_pattern.sub(lambda match: f"{self._scratch}{match.group(0)}", text)

    def _read(self, path: str) -> bytes:
        target = self.host_path(path, operation="read_file")
        try:
            return target.read_bytes()
        except FileNotFoundError as error:
            raise SandboxFileNotFoundError(path) from error
        except OSError as error:
            raise BackendOperationError(
                f"Failed to read file: {path}\n{error}", operation="read_file", target=path
            ) from error

    def _write(self, files: Sequence[FileEntry]) -> None:
        for entry in files:
            target = self.host_path(entry.path, operation="write_files")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                _ = target.write_bytes(entry.content)
            except OSError as error:
                raise BackendOperationError(
                    f"Failed to write file: {entry.path}\n{error}",
                    operation="write_files",
                    target=entry.path,
                ) from error
            self._claim_roots([posix_dirname(posix_resolve(self._cwd, entry.path))])
        _LOGGER.debug(
            "Wrote files to virtual shell",
            event="sandbox.virtual.write_files",
            context={"count": len(files)},
        )

    def _run(self, command: str) -> CommandResult:
        environment = {
            **os.environ,
            **self._env,
            "PWD": str(self.host_path(self._cwd)),
            "TMPDIR": str(self.host_path("/tmp")),
        }
        try:
            completed = subprocess.run(  # nosec: B603
                [_SHELL, "-c", self.to_host(command)],
                capture_output=True,
                timeout=self._timeout,
                cwd=self.host_path(self._cwd),
                env=environment,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise CommandTimeoutError(
                operation="exec",
                target=command,
                timeout_seconds=float(self._timeout or 0),
            ) from error
        except OSError as error:
            raise BackendOperationError(
                f"Unable to start {_SHELL}: {error}", operation="exec", target=command
            ) from error

        result = CommandResult(
            stdout=self.to_virtual(completed.stdout.decode("utf-8", errors="replace")),
            stderr=self.to_virtual(completed.stderr.decode("utf-8", errors="replace")),
            exit_code=completed.returncode,
        )
        _LOGGER.debug(
            "Executed virtual command",
            event="sandbox.virtual.exec",
            context={"exit_code": result.exit_code, "cwd": self._cwd},
        )
        return result

    def _copy_overlay(self, overlay: OverlayMount) -> None:
        source = Path(overlay.source).expanduser().resolve()
        if not source.is_dir():
            raise BackendOperationError(
                f"Overlay source is not a directory: {source}",
                operation="overlay",
                target=str(source),
            )
        _ = shutil.copytree(
            source,
            self.host_path(overlay.mount_point),
            symlinks=True,
            ignore=shutil.ignore_patterns(*IGNORED_DIRECTORIES),
            dirs_exist_ok=True,
        )


class VirtualSandbox:
    """Adapter exposing an ``exec``-style shell as a sandbox.

    Backends that provide their own ``read_file``/``write_files`` (such as
    :class:`VirtualShell`) handle file transfer directly. For the rest, files
    travel as base64 so binary content survives text-only ``exec`` results.
    Closing the adapter closes the wrapped shell only when ``owns_backend``
    is set.
    """

    def __init__(self, backend: object, *, owns_backend: bool = False) -> None:
        self._backend = backend
        self._owns_backend = owns_backend

    @property
    def backend(self) -> object:
        return self._backend

    async def execute_command(self, command: str) -> CommandResult:
        try:
            outcome = self._backend.exec(command)  # type: ignore[attr-defined]
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except BackendOperationError:
            raise
        except Exception as error:
            raise BackendOperationError(
                f"Command execution failed: {error}",
                operation="execute_command",
                target=command,
            ) from error
        return coerce_command_result(outcome)

    async def read_file(self, path: str) -> bytes:
        native = getattr(self._backend, "read_file", None)
        if callable(native):
            data = await self._call_native(native, "read_file", path, path)
            return data.encode("utf-8") if isinstance(data, str) else bytes(data)  # type: ignore[arg-type]

        quoted = shlex.quote(path)
        result = await self.execute_command(
            f"if [ ! -e {quoted} ]; then exit {_NOT_FOUND_STATUS}; fi; base64 < {quoted}"
        )
        if result.exit_code == _NOT_FOUND_STATUS:
            raise SandboxFileNotFoundError(path)
        if result.exit_code != 0:
            raise BackendOperationError(
                f"Failed to read file: {path}\n{result.stderr}",
                operation="read_file",
                target=path,
            )
        return base64.b64decode("".join(result.stdout.split()))

    async def write_files(self, files: Sequence[FileEntry]) -> None:
        if not files:
            return
        native = getattr(self._backend, "write_files", None)
        if callable(native):
            _ = await self._call_native(native, "write_files", files[0].path, list(files))
            return

        for script, paths in _pack_scripts(files):
            result = await self.execute_command(script)
            if result.exit_code != 0:
                raise BackendOperationError(
                    f"Failed to write files: {', '.join(paths)}\n{result.stderr}",
                    operation="write_files",
                    target=paths[0],
                )

    @staticmethod
    async def _call_native(
        method: Callable[..., object], operation: str, target: str, argument: object
    ) -> object:
        try:
            outcome = method(argument)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except BackendOperationError:
            raise
        except FileNotFoundError as error:
            raise SandboxFileNotFoundError(target, operation=operation) from error
        except Exception as error:
            raise BackendOperationError(
                f"Backend {operation} failed: {error}", operation=operation, target=target
            ) from error
        return outcome

    async def aclose(self) -> None:
        if not self._owns_backend:
            return
        close = getattr(self._backend, "close", None)
        if callable(close):
            outcome = close()
            if inspect.isawaitable(outcome):
                await outcome


def coerce_command_result(outcome: object) -> CommandResult:
    """Normalise a backend result object or mapping into :class:`CommandResult`."""
    if isinstance(outcome, CommandResult):
        return outcome
    stdout = _field(outcome, "stdout")
    stderr = _field(outcome, "stderr")
    exit_code = _field(outcome, "exit_code", "exitCode", "returncode")
    return CommandResult(
        stdout=_as_text(stdout),
        stderr=_as_text(stderr),
        exit_code=int(exit_code) if exit_code is not None else 0,  # type: ignore[arg-type]
    )


def _field(outcome: object, *names: str) -> object:
    for name in names:
        if isinstance(outcome, Mapping):
            if name in outcome:
                return outcome[name]  # type: ignore[index]
        elif hasattr(outcome, name):
            return getattr(outcome, name)
    return None


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _pack_scripts(files: Sequence[FileEntry]) -> list[tuple[str, list[str]]]:
    scripts: list[tuple[str, list[str]]] = []
    lines: list[str] = []
    paths: list[str] = []
    size = 0
    for entry in files:
        for line in _write_commands(entry):
            if lines and size + len(line) + 1 > _MAX_SCRIPT_CHARS:
                scripts.append(("set -e\n" + "\n".join(lines), paths))
                lines, paths, size = [], [], 0
            lines.append(line)
            size += len(line) + 1
            if not paths or paths[-1] != entry.path:
                paths.append(entry.path)
    if lines:
        scripts.append(("set -e\n" + "\n".join(lines), paths))
    return scripts


def _write_commands(entry: FileEntry) -> list[str]:
    target = shlex.quote(entry.path)
    encoded = base64.b64encode(entry.content).decode("ascii")
    commands = [f"mkdir -p {shlex.quote(posix_dirname(entry.path))}", f": > {target}"]
    for start in range(0, len(encoded), _BASE64_CHUNK):
        chunk = encoded[start : start + _BASE64_CHUNK]
        commands.append(f"printf '%s' '{chunk}' | base64 -d >> {target}")
    return commands


def _literal_spans(command: str) -> list[tuple[int, int]]:
    """Return the ``(start, end)`` ranges of ``command`` the shell takes literally.

    Single-quoted strings and the bodies of here-documents whose delimiter is
    quoted are literal. Comments are skipped so an apostrophe inside one does
    not open a quote.
    """
    spans: list[tuple[int, int]] = []
    pending: list[tuple[str, bool]] = []
    in_double = False
    index = 0
    length = len(command)
    while index < length:
        char = command[index]
        if char == "\\":
            index += 2
            continue
        if in_double:
            in_double = char != '"'
            index += 1
            continue
        if char == "'":
            closing = command.find("'", index + 1)
            end = length if closing == -1 else closing + 1
            spans.append((index, end))
            index = end
            continue
        if char == '"':
            in_double = True
        elif char == "#" and (index == 0 or command[index - 1] in _COMMENT_PRECEDERS):
            newline = command.find("\n", index)
            index = length if newline == -1 else newline
            continue
        elif command.startswith("<<<", index):
            index += 3
            continue
        elif char == "<" and (heredoc := _HEREDOC_PATTERN.match(command, index)):
            pending.append((heredoc.group(2), bool(heredoc.group(1))))
            index = heredoc.end()
            continue
        elif char == "\n" and pending:
            index = _skip_heredoc_bodies(command, index + 1, pending, spans)
            pending = []
            continue
        index += 1
    return spans


def _skip_heredoc_bodies(
    command: str, start: int, pending: list[tuple[str, bool]], spans: list[tuple[int, int]]
) -> int:
    position = start
    length = len(command)
    for delimiter, quoted in pending:
        body_start = position
        while position < length:
            newline = command.find("\n", position)
            line_end = length if newline == -1 else newline
            line = command[position:line_end]
            position = min(line_end + 1, length)
            if line.lstrip("\t") == delimiter:
                break
        if quoted:
            spans.append((body_start, position))
    return position


def _owned_root(path: str) -> str:
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return DEFAULT_WORKDIR
    if segments[0] in _SYSTEM_ROOTS:
        return "/" + "/".join(segments)
    return f"/{segments[0]}"


def _create_scratch_dir() -> Path:
    root = os.environ.get(_SCRATCH_ROOT_ENV) or None
    if root is not None:
        Path(root).mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix="bash-toolkit-", dir=root)).resolve()


__all__ = [
    "DEFAULT_MOUNT_POINT",
    "DEFAULT_WORKDIR",
    "OverlayMount",
    "VirtualSandbox",
    "VirtualShell",
    "coerce_command_result",
]
