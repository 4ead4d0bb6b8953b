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

"""Batched upload of file entries into a sandbox."""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Iterator
from typing import Final

from .._logging import StructuredLogger, get_logger
from ..errors import ConfigurationError
from ..posix_path import posix_join
from ..sandbox._types import FileEntry, Sandbox

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "files.upload"})

DEFAULT_BATCH_SIZE: Final[int] = 20
DEFAULT_MAX_FILES: Final[int] = 1000


def ensure_file_limit(count: int, max_files: int) -> None:
    """Fail before any write when ``count`` exceeds ``max_files``.

    A ``max_files`` of ``0`` disables the check.
    """
    if max_files < 0:
        raise ConfigurationError("max_files must be zero or a positive integer.")
    if max_files == 0 or count <= max_files:
        return
    raise ConfigurationError(
        f"Too many files to upload: {count} files exceed the limit of "
        f"{max_files}. Raise max_files (0 disables the limit) or narrow the "
        "upload_directory include pattern."
    )


def batched[T](items: Iterable[T], size: int) -> Iterator[list[T]]:
    """Group ``items`` into lists of at most ``size`` elements, in order."""
    if size < 1:
        raise ConfigurationError("batch_size must be at least 1.")
    for chunk in itertools.batched(items, size):
        yield list(chunk)


async def upload_files(
    sandbox: Sandbox,
    entries: Iterable[FileEntry],
    *,
    destination: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Write ``entries`` under ``destination`` one batch at a time.

    Entries are consumed lazily; each batch is awaited before the next one
    is read from disk. Returns the number of files written.
    """
    written = 0
    for index, batch in enumerate(batched(entries, batch_size)):
        await sandbox.write_files(
            [
                FileEntry(path=posix_join(destination, entry.path), content=entry.content)
                for entry in batch
            ]
        )
        written += len(batch)
        _LOGGER.debug(
            "Uploaded file batch",
            event="files.upload.batch",
            context={"batch": index, "size": len(batch), "total": written},
        )
    return written


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_FILES",
    "batched",
    "ensure_file_limit",
    "upload_files",
]
