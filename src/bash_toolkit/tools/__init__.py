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

"""Sandbox tools exposed to agents: ``bash``, ``readFile``, ``writeFile``."""

from __future__ import annotations

from .bash import (
    DEFAULT_MAX_OUTPUT_LENGTH,
    AfterBashCall,
    BashResult,
    BashTool,
    BeforeBashCall,
    InvocationLogTarget,
    build_filtered_command,
    generate_bash_description,
    truncate_output,
)
from .prompt import (
    BASH_TOOLS,
    TOOLS_BY_FORMAT,
    BashToolInfo,
    create_tool_prompt,
    detect_format,
    discover_available_tools,
    format_tool_prompt,
)
from .read_file import ReadFileResult, ReadFileTool
from .write_file import WriteFileResult, WriteFileTool

__all__ = [
    "BASH_TOOLS",
    "DEFAULT_MAX_OUTPUT_LENGTH",
    "TOOLS_BY_FORMAT",
    "AfterBashCall",
    "BashResult",
    "BashTool",
    "BashToolInfo",
    "BeforeBashCall",
    "InvocationLogTarget",
    "ReadFileResult",
    "ReadFileTool",
    "WriteFileResult",
    "WriteFileTool",
    "build_filtered_command",
    "create_tool_prompt",
    "detect_format",
    "discover_available_tools",
    "format_tool_prompt",
    "generate_bash_description",
    "truncate_output",
]
