"""External editor invocation."""

from .command import TEMPLATE_TEMP_FILE_NAME, PlatformFamily, build_command_line, quote_path
from .controller import EditorSessionController
from .variants import Editor, Terminal, build_template

__all__ = [
    "TEMPLATE_TEMP_FILE_NAME",
    "Editor",
    "EditorSessionController",
    "PlatformFamily",
    "Terminal",
    "build_command_line",
    "build_template",
    "quote_path",
]
