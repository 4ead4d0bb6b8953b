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

from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

import pytest

from bash_toolkit.skills import (
    LoadSkillTool,
    create_skill_toolkit,
    generate_skill_instructions,
)

Runner = Callable[[Coroutine[Any, Any, Any]], Any]

_SKILL_MD = (
    "---\nname: csv\ndescription: Analyse CSV files\n---\n\n"
    "Run `bash scripts/stats.sh data.csv`.\n"
)


@pytest.fixture
def skills_dir(tmp_path: Path) -> Path:
    root = tmp_path / "skills"
    skill = root / "csv-tools"
    (skill / "scripts").mkdir(parents=True)
    (skill / "SKILL.md").write_text(_SKILL_MD, encoding="utf-8")
    (skill / "scripts" / "stats.sh").write_text("wc -l \"$1\"\n", encoding="utf-8")
    (skill / "logo.png").write_bytes(b"\x89PNG\xff\xfe")
    return root


def test_toolkit_collects_text_files(skills_dir: Path) -> None:
    toolkit = create_skill_toolkit(skills_dir)

    assert set(toolkit.files) == {
        "./skills/csv-tools/SKILL.md",
        "./skills/csv-tools/scripts/stats.sh",
    }
    assert toolkit.files["./skills/csv-tools/scripts/stats.sh"] == 'wc -l "$1"\n'
    assert toolkit.skills[0].files == ("SKILL.md", "logo.png", "scripts/stats.sh")


def test_custom_destination(skills_dir: Path) -> None:
    toolkit = create_skill_toolkit(skills_dir, destination=".agent/skills")

    assert "./.agent/skills/csv-tools/SKILL.md" in toolkit.files
    assert toolkit.skills[0].sandbox_path == "./.agent/skills/csv-tools"


def test_instructions_list_skill_paths(skills_dir: Path) -> None:
    toolkit = create_skill_toolkit(skills_dir)

    assert toolkit.instructions.startswith("SKILL DIRECTORIES:")
    assert "  ./skills/csv-tools/ - csv: Analyse CSV files" in toolkit.instructions
    assert generate_skill_instructions([]) == ""


class TestLoadSkill:
    def test_returns_instructions_and_files(self, skills_dir: Path, run: Runner) -> None:
        tool = create_skill_toolkit(skills_dir).load_skill

        result = run(tool.execute("csv"))

        assert result.to_dict() == {
            "success": True,
            "skill": {
                "name": "csv",
                "description": "Analyse CSV files",
                "path": "./skills/csv-tools",
            },
            "instructions": "Run `bash scripts/stats.sh data.csv`.",
            "files": ["logo.png", "scripts/stats.sh"],
        }

    def test_unknown_skill_lists_available(self, skills_dir: Path, run: Runner) -> None:
        tool = create_skill_toolkit(skills_dir).load_skill

        result = run(tool.execute("pdf"))

        assert not result.success
        assert result.to_dict() == {
            "success": False,
            "error": 'Skill "pdf" not found. Available skills: csv',
        }

    def test_no_skills(self, run: Runner) -> None:
        tool = LoadSkillTool([])

        result = run(tool.execute("any"))

        assert result.error == 'Skill "any" not found. Available skills: none'
        assert "(no skills found)" in tool.description
        assert tool.name == "loadSkill"
        assert tool.parameters["required"] == ["skillName"]
