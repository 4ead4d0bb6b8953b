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

"""Shell tools for agents, backed by virtual or remote sandboxes."""

from __future__ import annotations

from ._logging import StructuredLogger, configure_logging, get_logger
from .errors import (
    BackendOperationError,
    BashToolkitError,
    CommandTimeoutError,
    ConfigurationError,
    LogFormatError,
    SandboxFileNotFoundError,
    SkillError,
    SkillValidationError,
)
from .files import UploadDirectory, get_file_paths, stream_files
from .invocation_log import (
    InvocationLog,
    format_invocation_log,
    invocation_log_filename,
    parse_invocation_log,
)
from .posix_path import normalize_posix_path, posix_join, posix_resolve
from .sandbox import (
    CommandResult,
    FileEntry,
    OverlayMount,
    RemoteSandbox,
    Sandbox,
    SandboxKind,
    VirtualSandbox,
    VirtualShell,
    classify_sandbox,
    wrap_sandbox,
)
from .toolkit import BashToolConfig, BashToolkit, create_bash_tool
from .tools import (
    BashResult,
    BashTool,
    ReadFileResult,
    ReadFileTool,
    WriteFileResult,
    WriteFileTool,
    create_tool_prompt,
)

__all__ = [
    "BackendOperationError",
    "BashResult",
    "BashTool",
    "BashToolConfig",
    "BashToolkit",
    "BashToolkitError",
    "CommandResult",
    "CommandTimeoutError",
    "ConfigurationError",
    "FileEntry",
    "InvocationLog",
    "LogFormatError",
    "OverlayMount",
    "ReadFileResult",
    "ReadFileTool",
    "RemoteSandbox",
    "Sandbox",
    "SandboxFileNotFoundError",
    "SandboxKind",
    "SkillError",
    "SkillValidationError",
    "StructuredLogger",
    "UploadDirectory",
    "VirtualSandbox",
    "VirtualShell",
    "WriteFileResult",
    "WriteFileTool",
    "classify_sandbox",
    "configure_logging",
    "create_bash_tool",
    "create_tool_prompt",
    "format_invocation_log",
    "get_file_paths",
    "get_logger",
    "invocation_log_filename",
    "normalize_posix_path",
    "parse_invocation_log",
    "posix_join",
    "posix_resolve",
    "stream_files",
    "wrap_sandbox",
]
