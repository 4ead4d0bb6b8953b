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

"""File ingestion: inline and directory sources, batched uploads."""

from __future__ import annotations

from .loader import (
    DEFAULT_INCLUDE,
    IGNORED_DIRECTORIES,
    UploadDirectory,
    get_file_paths,
    iter_directory_files,
    match_glob,
    stream_files,
)
from .upload import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_FILES,
    batched,
    ensure_file_limit,
    upload_files,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_INCLUDE",
    "DEFAULT_MAX_FILES",
    "IGNORED_DIRECTORIES",
    "UploadDirectory",
    "batched",
    "ensure_file_limit",
    "get_file_paths",
    "iter_directory_files",
    "match_glob",
    "stream_files",
    "upload_files",
]
