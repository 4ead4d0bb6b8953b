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

"""Helpers shared by the sandbox tools."""

from __future__ import annotations

import asyncio
import inspect
import re
from collections.abc import Awaitable, Mapping
from typing import Any, Final

from ..errors import CommandTimeoutError

_SAFE_PATH: Final[re.Pattern[str]] = re.compile(r"[\w@%+=:,./-]+", re.ASCII)
_DOUBLE_QUOTE_SPECIALS: Final[re.Pattern[str]] = re.compile(r'([\\"$`])')

OUTPUT_FILTER_PARAMETER: Final[Mapping[str, str]] = {
    "type": "string",
    "description": (
        "Optional shell filter to apply to the output "
        "(e.g., 'tail -20', 'grep -i error')"
    ),
}


async def maybe_await[T](value: T | Awaitable[T]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value


async def run_with_timeout[T](
    call: Awaitable[T],
    *,
    timeout_seconds: float | None,
    operation: str,
    target: str,
) -> T:
    """Await ``call``, raising :class:`CommandTimeoutError` past the limit."""
    if timeout_seconds is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout_seconds)
    except TimeoutError as error:
        if isinstance(error, CommandTimeoutError):
            raise
        raise CommandTimeoutError(
            operation=operation, target=target, timeout_seconds=timeout_seconds
        ) from error


def quote_path(path: str) -> str:
    """Quote a sandbox path for use in a shell command.

    Paths that need quoting are double-quoted: virtual shells pass
    single-quoted text through verbatim and would not map the path.
    """
    if _SAFE_PATH.fullmatch(path):
        return path
    escaped = _DOUBLE_QUOTE_SPECIALS.sub(r"\\\1", path)
    return f'"{escaped}"'


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def object_schema(
    properties: Mapping[str, Mapping[str, Any]], *, required: tuple[str, ...]
) -> dict[str, Any]:
    """Build a JSON schema object for tool parameters."""
    return {
        "type": "object",
        "properties": {name: dict(schema) for name, schema in properties.items()},
        "required": list(required),
        "additionalProperties": False,
    }


__all__ = [
    "OUTPUT_FILTER_PARAMETER",
    "decode_text",
    "maybe_await",
    "object_schema",
    "quote_path",
    "run_with_timeout",
]
