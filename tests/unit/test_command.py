"""Unit tests for editor command lines and built-in variants."""

import pytest

from external_editor_host.editor import (
    Editor,
    PlatformFamily,
    Terminal,
    build_command_line,
    build_template,
    quote_path,
)
from external_editor_host.exceptions import TemplateError


class TestBuildCommandLine:
    """Test suite for build_command_line."""

    def test_posix(self) -> None:
        """Test a POSIX shell invocation."""
        argv = build_command_line("sh", "vim /path/to/temp.eml", "/tmp/a b/x.eml", PlatformFamily.POSIX)

        assert argv == ["sh", "-c", "vim '/tmp/a b/x.eml'"]

    def test_macos_uses_login_shell(self) -> None:
        """Test that macOS runs an interactive login shell."""
        argv = build_command_line("zsh", "vim /path/to/temp.eml", "/tmp/x.eml", PlatformFamily.MACOS)

        assert argv == ["zsh", "-i", "-l", "-c", "vim /tmp/x.eml"]

    def test_quoted_placeholder_not_double_quoted(self) -> None:
        """Test templates that already quote the placeholder."""
        argv = build_command_line(
            "sh", 'kitty -- nvim "/path/to/temp.eml"', "/tmp/it's.eml", PlatformFamily.POSIX
        )

        assert argv[-1] == "kitty -- nvim '/tmp/it'\"'\"'s.eml'"

    def test_windows_escapes_backslashes(self) -> None:
        """Test Windows path quoting."""
        argv = build_command_line(
            "cmd", "notepad /path/to/temp.eml", "C:\\Users\\me\\x.eml", PlatformFamily.WINDOWS
        )

        assert argv == ["cmd", "-c", 'notepad "C:\\\\Users\\\\me\\\\x.eml"']

    def test_missing_placeholder(self) -> None:
        """Test that a template without the placeholder is rejected."""
        with pytest.raises(TemplateError):
            build_command_line("sh", "vim", "/tmp/x.eml", PlatformFamily.POSIX)

    def test_empty_shell(self) -> None:
        """Test that a shell is required."""
        with pytest.raises(TemplateError):
            build_command_line("", "vim /path/to/temp.eml", "/tmp/x.eml", PlatformFamily.POSIX)

    def test_quote_path_plain(self) -> None:
        """Test that safe paths are left unquoted on POSIX."""
        assert quote_path("/tmp/x.eml", PlatformFamily.POSIX) == "/tmp/x.eml"


class TestBuildTemplate:
    """Test suite for editor and terminal variants."""

    def test_console_editor_in_terminal(self) -> None:
        """Test a console editor run inside a terminal."""
        template = build_template(Editor.NVIM, Terminal.KONSOLE, PlatformFamily.POSIX)

        assert template == 'konsole -e nvim "/path/to/temp.eml"'

    def test_gui_editor_runs_directly(self) -> None:
        """Test that GUI editors do not need a terminal."""
        template = build_template(Editor.GVIM, None, PlatformFamily.POSIX)

        assert template == 'gvim --nofork "/path/to/temp.eml"'

    def test_macos_homebrew_prefix(self) -> None:
        """Test that binaries are looked up under the Homebrew prefix."""
        template = build_template(Editor.VIM, Terminal.ALACRITTY, PlatformFamily.MACOS, "/opt/homebrew/bin/")

        assert template == '/opt/homebrew/bin/alacritty -e /opt/homebrew/bin/vim "/path/to/temp.eml"'

    def test_console_editor_needs_terminal(self) -> None:
        """Test that a console editor without a terminal is rejected."""
        with pytest.raises(ValueError):
            build_template(Editor.KAK, None, PlatformFamily.POSIX)

    def test_generated_template_builds_command(self) -> None:
        """Test that generated templates contain the placeholder."""
        template = build_template(Editor.EMACS, None, PlatformFamily.POSIX)

        assert build_command_line("sh", template, "/tmp/x.eml", PlatformFamily.POSIX) == [
            "sh",
            "-c",
            "emacs /tmp/x.eml",
        ]

    def test_lookup_by_key(self) -> None:
        """Test resolving variants from configuration keys."""
        assert Editor.from_key("neovide") is Editor.NEOVIDE
        assert Terminal.from_key("kitty") is Terminal.KITTY
        with pytest.raises(ValueError):
            Editor.from_key("nano")
