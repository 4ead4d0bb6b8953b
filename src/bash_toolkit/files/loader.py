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

"""Merge inline files and on-disk directory trees into one file stream.

Inline files are emitted first and claim their paths; directory files whose
relative path was already claimed are skipped, so inline content always
overrides disk content. Entries are produced lazily so the size of the
uploaded tree never bounds memory.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

from ..errors import ConfigurationError
from ..posix_path import normalize_posix_path
from ..sandbox._types import FileEntry
from ._constants import DEFAULT_INCLUDE, IGNORED_DIRECTORIES


@dataclass(frozen=True, slots=True)
class UploadDirectory:
    """A directory on the local disk to upload into the sandbox.

    Attributes:
        source: Host path of the directory.
        include: Glob selecting files relative to ``source``. ``**`` matches
            zero or more directories; ``*`` stays within one path segment.
    """

    source: str | Path
    include: str = DEFAULT_INCLUDE


def match_glob(path: str, pattern: str) -> bool:
    """Match a relative POSIX path against a glob, segment by segment.

    ``*``, ``?`` and ``[...]`` never cross a ``/``. A ``**`` segment matches
    zero or more whole directories, so ``**/*.py`` also matches
    ``setup.py``. Leading dots are not special.

    >>> match_glob("src/app.py", "*.py")
    False
    >>> match_glob("src/app.py", "**/*.py")
    True
    """
    return _match_segments(tuple(path.split("/")), tuple(pattern.split("/")))


def _match_segments(parts: tuple[str, ...], patterns: tuple[str, ...]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(_match_segments(parts[index:], rest) for index in range(len(parts) + 1))
    return (
        bool(parts)
        and fnmatch.fnmatchcase(parts[0], head)
        and _match_segments(parts[1:], rest)
    )


def iter_directory_files(directory: UploadDirectory) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_path, absolute_path)`` for matching files.

    Traversal is sorted so repeated scans of an unchanged tree produce the
    same order. Version-control and dependency-cache directories are pruned.
    """
    root = _resolve_source(directory.source)
    for dirpath, dirnames, filenames in root.walk():
        dirnames[:] = sorted(name for name in dirnames if name not in IGNORED_DIRECTORIES)
        for name in sorted(filenames):
            absolute = dirpath / name
            if not absolute.is_file():
                continue
            relative = absolute.relative_to(root).as_posix()
            if match_glob(relative, directory.include):
                yield relative, absolute


def stream_files(
    files: Mapping[str, str] | None = None,
    upload_directory: UploadDirectory | None = None,
) -> Iterator[FileEntry]:
    """Yield file entries with inline files taking precedence."""
    for path, load in _plan(files, upload_directory):
        yield FileEntry(path=path, content=load())


def get_file_paths(
    files: Mapping[str, str] | None = None,
    upload_directory: UploadDirectory | None = None,
) -> list[str]:
    """Return the paths :func:`stream_files` would yield, without reading content."""
    return [path for path, _ in _plan(files, upload_directory)]


def _plan(
    files: Mapping[str, str] | None,
    upload_directory: UploadDirectory | None,
) -> Iterator[tuple[str, Callable[[], bytes]]]:
    claimed: set[str] = set()

    for path, text in (files or {}).items():
        claimed.add(normalize_posix_path(path))
        yield path, _encoder(text)

    if upload_directory is None:
        return

    for relative, absolute in iter_directory_files(upload_directory):
        if relative in claimed:
            continue
        claimed.add(relative)
        yield relative, absolute.read_bytes


def _encoder(text: str) -> Callable[[], bytes]:
    return lambda: text.encode("utf-8")


def _resolve_source(source: str | Path) -> Path:
    root = Path(source).expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Upload source is not a directory: {root}")
    return root


__all__ = [
    "DEFAULT_INCLUDE",
    "IGNORED_DIRECTORIES",
    "UploadDirectory",
    "get_file_paths",
    "iter_directory_files",
    "match_glob",
    "stream_files",
]
