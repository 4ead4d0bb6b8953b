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

"""Skill toolkit: skill files for the sandbox plus the ``loadSkill`` tool.

Example::

    skills = create_skill_toolkit("./skills")
    toolkit = await create_bash_tool(
        BashToolConfig(files=skills.files, extra_instructions=skills.instructions)
    )
    result = await skills.load_skill.execute("csv")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final

from .._logging import StructuredLogger, get_logger
from ..posix_path import posix_join
from ..tools._common import object_schema
from .parser import SKILL_FILENAME, Skill, discover_skills, extract_body, list_skill_files

_LOGGER: StructuredLogger = get_logger(__name__, context={"component": "skills"})

DEFAULT_SKILLS_DESTINATION: Final[str] = "skills"


@dataclass(frozen=True, slots=True)
class LoadSkillResult:
    success: bool
    skill: Mapping[str, str] | None = None
    instructions: str = ""
    files: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "skill": dict(self.skill or {}),
            "instructions": self.instructions,
            "files": list(self.files),
        }


class LoadSkillTool:
    """Returns a skill's instructions so an agent can learn how to use it."""

    name: Final[str] = "loadSkill"

    def __init__(self, skills: Sequence[Skill]) -> None:
        self._skills = {skill.name: skill for skill in skills}
        self.description = _describe(skills)
        self.parameters: dict[str, Any] = object_schema(
            {"skillName": {"type": "string", "description": "The name of the skill to load"}},
            required=("skillName",),
        )

    async def execute(self, skill_name: str) -> LoadSkillResult:
        skill = self._skills.get(skill_name)
        if skill is None:
            available = ", ".join(self._skills) or "none"
            return LoadSkillResult(
                success=False,
                error=f'Skill "{skill_name}" not found. Available skills: {available}',
            )

        try:
            content = (skill.local_path / SKILL_FILENAME).read_text(encoding="utf-8")
        except OSError as error:
            return LoadSkillResult(
                success=False, error=f'Failed to read skill "{skill_name}": {error}'
            )

        return LoadSkillResult(
            success=True,
            skill={
                "name": skill.name,
                "description": skill.description,
                "path": skill.sandbox_path,
            },
            instructions=extract_body(content),
            files=tuple(name for name in skill.files if name != SKILL_FILENAME),
        )


@dataclass(frozen=True, slots=True)
class SkillToolkit:
    """Everything needed to expose skills through a bash toolkit.

    Attributes:
        load_skill: The ``loadSkill`` tool.
        skills: Discovered skills with their file lists.
        files: Inline files (sandbox path to text) for ``BashToolConfig.files``.
        instructions: Text for ``BashToolConfig.extra_instructions``.
    """

    load_skill: LoadSkillTool
    skills: tuple[Skill, ...]
    files: Mapping[str, str] = field(default_factory=dict)
    instructions: str = ""


def create_skill_toolkit(
    skills_directory: str | Path, *, destination: str = DEFAULT_SKILLS_DESTINATION
) -> SkillToolkit:
    """Discover skills and collect their text files for upload.

    Files are keyed relative to the working directory
    (``./<destination>/<skill dir>/<file>``) so they land next to whatever
    destination the bash toolkit uses. Files that are not valid UTF-8 are
    skipped.
    """
    skills: list[Skill] = []
    files: dict[str, str] = {}

    for discovered in discover_skills(skills_directory, f"./{destination}"):
        skill = replace(discovered, files=tuple(list_skill_files(discovered.local_path)))
        skills.append(skill)
        for name in skill.files:
            try:
                text = (skill.local_path / name).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            files[f"./{posix_join(destination, skill.local_path.name, name)}"] = text

    _LOGGER.info(
        "Discovered skills",
        event="skills.discover",
        context={"count": len(skills), "files": len(files)},
    )
    return SkillToolkit(
        load_skill=LoadSkillTool(skills),
        skills=tuple(skills),
        files=files,
        instructions=generate_skill_instructions(skills),
    )


def generate_skill_instructions(skills: Sequence[Skill]) -> str:
    if not skills:
        return ""
    lines = [
        "SKILL DIRECTORIES:",
        "Skills are available at the following paths:",
    ]
    lines.extend(
        f"  {skill.sandbox_path}/ - {skill.name}: {skill.description}" for skill in skills
    )
    lines.extend(
        [
            "",
            "To use a skill:",
            "  1. Call loadSkill to get the skill's instructions",
            "  2. Run scripts from the skill directory with bash",
        ]
    )
    return "\n".join(lines)


def _describe(skills: Sequence[Skill]) -> str:
    lines = [
        "Load a skill's instructions to learn how to use it.",
        "You can load multiple skills - each call returns that skill's instructions.",
        "",
        "Available skills:",
    ]
    if skills:
        lines.extend(f"  - {skill.name}: {skill.description}" for skill in skills)
    else:
        lines.append("  (no skills found)")
    lines.extend(
        [
            "",
            "After loading a skill, use the bash tool to run its scripts from the skill's directory.",
        ]
    )
    return "\n".join(lines)


__all__ = [
    "DEFAULT_SKILLS_DESTINATION",
    "LoadSkillResult",
    "LoadSkillTool",
    "SkillToolkit",
    "create_skill_toolkit",
    "generate_skill_instructions",
]
