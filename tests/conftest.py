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

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from pathlib import Path
from typing import TypeVar

import pytest

T = TypeVar("T")


@pytest.fixture
def run() -> Callable[[Awaitable[T]], T]:
    """Drive a coroutine to completion on a fresh event loop."""

    def _run(awaitable: Awaitable[T]) -> T:
        async def _wrapper() -> T:
            return await awaitable

        return asyncio.run(_wrapper())

    return _run


@pytest.fixture
def scratch_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Keep virtual shell scratch directories under the test's tmp path."""
    root = tmp_path / "scratch"
    monkeypatch.setenv("BASH_TOOLKIT_SCRATCH_ROOT", str(root))
    yield root


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A small on-disk project tree with an ignored directory."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "README.md").write_text("# demo\n", encoding="utf-8")
    (root / "setup.py").write_text("print('setup')\n", encoding="utf-8")
    (root / "src" / "app.py").write_text("print('app')\n", encoding="utf-8")
    (root / "src" / "data.json").write_text('{"n": 1}\n', encoding="utf-8")
    (root / "node_modules" / "pkg" / "index.js").write_text("x\n", encoding="utf-8")
    return root
