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

"""POSIX path utilities for sandbox paths.

Sandbox paths always use forward slashes regardless of the host OS, so the
toolkit never routes them through :mod:`os.path` or :mod:`pathlib`.

Functions:
    normalize_posix_path: Collapse ``.``, ``..`` and repeated slashes
    posix_join: Join segments and normalize the result
    posix_resolve: Resolve a possibly-relative path against a base directory
"""

from __future__ import annotations


def normalize_posix_path(path: str) -> str:
    """Normalize a POSIX path without touching the filesystem.

    ``..`` pops the previous segment. On absolute paths a ``..`` at the root
    is dropped; on relative paths it is kept so the result still points
    above its starting directory.

    Examples:
        >>> normalize_posix_path("/a//b/./c/../d")
        '/a/b/d'
        >>> normalize_posix_path("/../etc")
        '/etc'
        >>> normalize_posix_path("../a/b/..")
        '../a'
        >>> normalize_posix_path("")
        '.'
    """
    is_absolute = path.startswith("/")
    result: list[str] = []
    for segment in path.split("/"):
        if segment in {"", "."}:
            continue
        if segment == "..":
            if result and result[-1] != "..":
                _ = result.pop()
            elif not is_absolute:
                result.append("..")
            continue
        result.append(segment)

    normalized = "/".join(result)
    if is_absolute:
        return f"/{normalized}"
    return normalized or "."


def posix_join(*segments: str) -> str:
    """Join path segments with ``/`` and normalize the result.

    Empty segments are skipped, so ``posix_join("", "a")`` is ``"a"``.
    """
    return normalize_posix_path("/".join(segment for segment in segments if segment))


def posix_resolve(base: str, path: str) -> str:
    """Resolve ``path`` against ``base``.

    Absolute paths ignore ``base`` entirely and are only normalized.
    """
    if path.startswith("/"):
        return normalize_posix_path(path)
    return normalize_posix_path(f"{base}/{path}")


def posix_dirname(path: str) -> str:
    """Return the parent directory of a normalized POSIX path."""
    normalized = normalize_posix_path(path)
    head, _, _ = normalized.rpartition("/")
    if not head:
        return "/" if normalized.startswith("/") else "."
    return head


__all__ = [
    "normalize_posix_path",
    "posix_dirname",
    "posix_join",
    "posix_resolve",
]
