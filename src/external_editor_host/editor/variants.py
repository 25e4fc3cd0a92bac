"""Built-in editor and terminal choices.

The set of supported tools is fixed, so each is an enum member carrying
what is needed to build its command template.
"""

from __future__ import annotations

from enum import Enum

from external_editor_host.editor.command import TEMPLATE_TEMP_FILE_NAME, PlatformFamily


class Editor(Enum):
    """Editors the extension can pick without a custom template."""

    NVIM = ("nvim", "nvim", False)
    VIM = ("vim", "vim", False)
    EMACS = ("emacs", "emacs", True)
    KAK = ("kak", "kak", False)
    NEOVIDE = ("neovide", "neovide --nofork", True)
    GVIM = ("gvim", "gvim --nofork", True)

    def __init__(self, key: str, command: str, gui: bool) -> None:
        self.key = key
        self.command = command
        self.gui = gui

    @classmethod
    def from_key(cls, key: str) -> Editor:
        for editor in cls:
            if editor.key == key:
                return editor
        raise ValueError(f"unknown editor: {key}")


class Terminal(Enum):
    """Terminal emulators that can host console editors."""

    KITTY = ("kitty", "kitty --start-as=normal --override=macos_quit_when_last_window_closed=yes --")
    ALACRITTY = ("alacritty", "alacritty -e")
    KONSOLE = ("konsole", "konsole -e")

    def __init__(self, key: str, command: str) -> None:
        self.key = key
        self.command = command

    @classmethod
    def from_key(cls, key: str) -> Terminal:
        for terminal in cls:
            if terminal.key == key:
                return terminal
        raise ValueError(f"unknown terminal: {key}")


def _with_prefix(command: str, prefix: str) -> str:
    binary, separator, arguments = command.partition(" ")
    if "/" in binary:
        return command
    return f"{prefix.rstrip('/')}/{binary}{separator}{arguments}"


def build_template(
    editor: Editor,
    terminal: Terminal | None,
    platform: PlatformFamily,
    homebrew_prefix: str = "/usr/local/bin/",
) -> str:
    """Build the command template for a built-in editor.

    GUI editors are run directly; console editors need a terminal. On macOS
    binaries without an explicit path are looked up under the Homebrew
    prefix.

    Raises:
        ValueError: If a console editor is chosen without a terminal.
    """
    editor_command = editor.command
    if platform is PlatformFamily.MACOS:
        editor_command = _with_prefix(editor_command, homebrew_prefix)
    placeholder = f'"{TEMPLATE_TEMP_FILE_NAME}"'
    if editor.gui:
        return f"{editor_command} {placeholder}"

    if terminal is None:
        raise ValueError(f"{editor.key} needs a terminal")
    terminal_command = terminal.command
    if platform is PlatformFamily.MACOS:
        terminal_command = _with_prefix(terminal_command, homebrew_prefix)
    return f"{terminal_command} {editor_command} {placeholder}"
