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

"""Discovery and parsing of skill directories.

A skill is a directory containing ``SKILL.md``: YAML frontmatter with
``name`` and ``description`` followed by free-form instructions. Parsing
YAML requires the optional ``pyyaml`` dependency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from importlib import import_module
from pathlib import Path
from typing import Any, Final, Protocol

from .._logging import StructuredLogger, get_logger
from ..errors import ConfigurationError, SkillError, SkillValidationError

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "skills"})

SKILL_FILENAME: Final[str] = "SKILL.md"
_OPENING: Final[str] = "---\n"
_CLOSING: Final[str] = "\n---"
_YAML_MISSING: Final[str] = (
    "Parsing SKILL.md frontmatter requires pyyaml. "
    "Install it with: pip install 'bash-toolkit[skills]'"
)


class _YAMLModule(Protocol):
    YAMLError: type[Exception]

    def safe_load(self, stream: str) -> object: ...


@dataclass(frozen=True, slots=True)
class SkillMetadata:
    name: str
    description: str


@dataclass(frozen=True, slots=True)
class Skill:
    """A discovered skill.

    Attributes:
        name: Skill name from the frontmatter.
        description: What the skill does and when to use it.
        local_path: Skill directory on the host.
        sandbox_path: Skill directory inside the sandbox, relative to the
            working directory (e.g. ``./skills/csv``).
        files: Files in the skill directory, relative to it.
    """

    name: str
    description: str
    local_path: Path
    sandbox_path: str
    files: tuple[str, ...] = field(default=())


def _load_yaml_module() -> _YAMLModule:
    try:
        module = import_module("yaml")
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
        raise ConfigurationError(_YAML_MISSING) from exc
    return module  # type: ignore[return-value]


def _split_frontmatter(content: str) -> tuple[str, str]:
    if not content.startswith(_OPENING):
        raise SkillValidationError("SKILL.md must start with YAML frontmatter (---)")

    position = len(_OPENING) - 1
    while True:
        end = content.find(_CLOSING, position)
        if end == -1:
            raise SkillValidationError("SKILL.md frontmatter must end with ---")
        after = end + len(_CLOSING)
        if after == len(content) or content[after] == "\n":
            return content[len(_OPENING) : end], content[after + 1 :]
        position = end + 1


def parse_frontmatter(content: str) -> SkillMetadata:
    """Parse and validate the frontmatter of ``SKILL.md`` content.

    Raises:
        SkillValidationError: If frontmatter is missing, malformed, or lacks a
            non-empty string ``name`` or ``description``.
        ConfigurationError: If pyyaml is not installed.
    """
    yaml_text, _ = _split_frontmatter(content)
    yaml_module = _load_yaml_module()

    try:
        parsed: Any = yaml_module.safe_load(yaml_text)
    except yaml_module.YAMLError as e:
        raise SkillValidationError(f"Invalid YAML in SKILL.md frontmatter: {e}") from e

    if not isinstance(parsed, dict):
        raise SkillValidationError("SKILL.md frontmatter must be a mapping")

    name = parsed.get("name")
    description = parsed.get("description")
    if not isinstance(name, str) or not name:
        raise SkillValidationError("SKILL.md frontmatter requires a 'name' string")
    if not isinstance(description, str) or not description:
        raise SkillValidationError("SKILL.md frontmatter requires a 'description' string")
    return SkillMetadata(name=name, description=description)


def extract_body(content: str) -> str:
    """Return the instructions following the frontmatter, stripped.

    Content without valid frontmatter is returned whole.
    """
    try:
        _, body = _split_frontmatter(content)
    except SkillValidationError:
        return content.strip()
    return body.strip()


def list_skill_files(skill_path: Path) -> list[str]:
    """Return every file below ``skill_path`` as a sorted relative POSIX path."""
    if not skill_path.is_dir():
        return []
    return sorted(
        path.relative_to(skill_path).as_posix()
        for path in skill_path.rglob("*")
        if path.is_file()
    )


def discover_skills(skills_directory: str | Path, sandbox_destination: str) -> list[Skill]:
    """Find skill directories below ``skills_directory``.

    Directories without a valid ``SKILL.md`` are skipped. The returned skills
    carry no file list; see :func:`list_skill_files`.

    Raises:
        SkillError: If ``skills_directory`` cannot be read.
    """
    root = Path(skills_directory).expanduser().resolve()
    try:
        entries = sorted(root.iterdir())
    except OSError as error:
        raise SkillError(f"Failed to read skills directory: {root}. {error}") from error

    skills: list[Skill] = []
    for entry in entries:
        skill_md = entry / SKILL_FILENAME
        if not entry.is_dir() or not skill_md.is_file():
            continue
        try:
            metadata = parse_frontmatter(skill_md.read_text(encoding="utf-8"))
        except (SkillValidationError, OSError, UnicodeDecodeError) as error:
            _LOGGER.debug(
                "Skipping skill directory",
                event="skills.skip",
                context={"path": str(entry), "reason": str(error)},
            )
            continue
        skills.append(
            Skill(
                name=metadata.name,
                description=metadata.description,
                local_path=entry,
                sandbox_path=f"{sandbox_destination}/{entry.name}",
            )
        )
    return skills


__all__ = [
    "SKILL_FILENAME",
    "Skill",
    "SkillMetadata",
    "discover_skills",
    "extract_body",
    "list_skill_files",
    "parse_frontmatter",
]
