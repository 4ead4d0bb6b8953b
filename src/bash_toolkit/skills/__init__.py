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

"""Skill directories: discovery, upload files, and the ``loadSkill`` tool."""

from __future__ import annotations

from ..errors import SkillError, SkillValidationError
from .parser import (
    SKILL_FILENAME,
    Skill,
    SkillMetadata,
    discover_skills,
    extract_body,
    list_skill_files,
    parse_frontmatter,
)
from .tool import (
    DEFAULT_SKILLS_DESTINATION,
    LoadSkillResult,
    LoadSkillTool,
    SkillToolkit,
    create_skill_toolkit,
    generate_skill_instructions,
)

__all__ = [
    "DEFAULT_SKILLS_DESTINATION",
    "SKILL_FILENAME",
    "LoadSkillResult",
    "LoadSkillTool",
    "Skill",
    "SkillError",
    "SkillMetadata",
    "SkillToolkit",
    "SkillValidationError",
    "create_skill_toolkit",
    "discover_skills",
    "extract_body",
    "generate_skill_instructions",
    "list_skill_files",
    "parse_frontmatter",
]
