"""Platform-specific editor command lines.

The extension sends a shell and a command template containing the
placeholder path ``/path/to/temp.eml``. The placeholder, bare or wrapped in
quotes, is replaced with the quoted temporary file path and the result is
run through the shell.
"""

from __future__ import annotations

import shlex
import sys
from enum import Enum
from pathlib import Path

from external_editor_host.exceptions import TemplateError

TEMPLATE_TEMP_FILE_NAME = "/path/to/temp.eml"


class PlatformFamily(Enum):
    """Platform families with different shell and quoting rules."""

    POSIX = "posix"
    MACOS = "macos"
    WINDOWS = "windows"

    @classmethod
    def current(cls) -> PlatformFamily:
        if sys.platform == "darwin":
            return cls.MACOS
        if sys.platform == "win32":
            return cls.WINDOWS
        return cls.POSIX

    @property
    def shell_args(self) -> tuple[str, ...]:
        if self is PlatformFamily.MACOS:
            # login + interactive so ~/.zprofile and friends put Homebrew on PATH
            return ("-i", "-l", "-c")
        return ("-c",)


def quote_path(path: str, platform: PlatformFamily) -> str:
    """Quote a path for the platform's shell."""
    if platform is PlatformFamily.WINDOWS:
        escaped = path.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return shlex.quote(path)


def substitute_path(template: str, path: str, platform: PlatformFamily) -> str:
    """Replace the placeholder in ``template`` with the quoted ``path``.

    Raises:
        TemplateError: If the template does not mention the placeholder.
    """
    if TEMPLATE_TEMP_FILE_NAME not in template:
        raise TemplateError(
            f"The command template must contain {TEMPLATE_TEMP_FILE_NAME} "
            "where the temporary file path goes."
        )
    quoted = quote_path(path, platform)
    command = template
    for wrapper in ('"', "'"):
        command = command.replace(f"{wrapper}{TEMPLATE_TEMP_FILE_NAME}{wrapper}", quoted)
    return command.replace(TEMPLATE_TEMP_FILE_NAME, quoted)


def build_command_line(
    shell: str,
    template: str,
    path: Path | str,
    platform: PlatformFamily | None = None,
) -> list[str]:
    """Build the argument vector that runs the editor on ``path``.

    Args:
        shell: Shell executable.
        template: Command template with the placeholder.
        path: Temporary file to edit.
        platform: Platform family, defaults to the running one.

    Returns:
        Argument vector for the subprocess.

    Raises:
        TemplateError: If the shell is empty or the template lacks the
            placeholder.
    """
    platform = platform or PlatformFamily.current()
    if not shell.strip():
        raise TemplateError("No shell configured to run the editor command.")
    command = substitute_path(template, str(path), platform)
    return [shell, *platform.shell_args, command]
