"""One external editor round trip per edit session.

The controller writes the serialized document to a temporary file inside
a directory owned by the session, runs the editor on it, parses the result
and removes the directory again on every exit path, except when the edit
cannot be sent back; then the file is kept so the user can recover it.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
import tempfile
from pathlib import Path

import structlog

from external_editor_host.config import Settings, get_settings
from external_editor_host.dispatcher import body_budget
from external_editor_host.editor.command import PlatformFamily, build_command_line
from external_editor_host.editor.variants import Editor, Terminal, build_template
from external_editor_host.eml import ParsedEml, encode_eml, parse_eml, serialize_eml
from external_editor_host.exceptions import (
    EditorExitError,
    MessageTooLargeError,
    ProcessSpawnError,
    TemplateError,
    TemporaryFileError,
)
from external_editor_host.models import ComposeRequest, Configuration, SessionId
from external_editor_host.session import EditSession, SessionState
from external_editor_host.utils import retry_on_failure

logger = structlog.get_logger()

TEMP_DIR_PREFIX = "external_editor_"
TEMP_FILE_PREFIX = "external_editor_"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def temporary_file_name(session_id: SessionId) -> str:
    safe_id = _UNSAFE_FILENAME_CHARS.sub("_", str(session_id))[:32]
    return f"{TEMP_FILE_PREFIX}{safe_id}.eml"


def create_temporary_file(session_id: SessionId, data: bytes, directory: str | None = None) -> Path:
    """Write ``data`` to a new file in a fresh directory owned by the session.

    Args:
        session_id: Session the file belongs to, used in the file name.
        data: File content.
        directory: Parent directory, defaults to the platform temp dir.

    Returns:
        Path of the created file.

    Raises:
        TemporaryFileError: If the directory or file cannot be created.
    """
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    try:
        session_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=base))
    except OSError as exc:
        raise TemporaryFileError(
            f"Cannot create a temporary directory in {base}: {exc}",
            title="ExtEditorR failed to create temporary file",
        ) from exc

    path = session_dir / temporary_file_name(session_id)
    try:
        with open(path, "xb") as temp_file:
            temp_file.write(data)
    except OSError as exc:
        shutil.rmtree(session_dir, ignore_errors=True)
        raise TemporaryFileError(
            f"Cannot write {path}: {exc}",
            title="ExtEditorR failed to write to temporary file",
        ) from exc
    return path


def read_temporary_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise TemporaryFileError(
            f"Cannot read {path}: {exc}",
            title="ExtEditorR failed to read from temporary file",
        ) from exc


@retry_on_failure(max_retries=3, delay=0.1, exceptions=(OSError,))
def remove_temporary_file(path: Path) -> None:
    """Remove the file and the session directory holding it."""
    path.unlink(missing_ok=True)
    session_dir = path.parent
    if session_dir.name.startswith(TEMP_DIR_PREFIX) and session_dir.exists():
        # editors may leave swap or backup files next to the message
        shutil.rmtree(session_dir)


class EditorSessionController:
    """Runs the external editor for a session."""

    def __init__(self, settings: Settings | None = None, platform: PlatformFamily | None = None) -> None:
        """Initialize the controller.

        Args:
            settings: Host settings. If None, uses default settings.
            platform: Platform family for command lines. If None, detected.
        """
        self.settings = settings or get_settings()
        self.platform = platform or PlatformFamily.current()

    def resolve_command(self, configuration: Configuration) -> tuple[str, str]:
        """Pick the shell and command template for a request.

        An explicit template wins; otherwise one is generated from the
        built-in editor and terminal keys.

        Raises:
            TemplateError: If neither is usable.
        """
        if configuration.template.strip():
            return configuration.shell, configuration.template
        if not configuration.editor:
            raise TemplateError(
                "No editor is configured. Please choose an editor in the extension options."
            )
        try:
            editor = Editor.from_key(configuration.editor)
            terminal = Terminal.from_key(configuration.terminal) if configuration.terminal else None
            template = build_template(editor, terminal, self.platform, self.settings.homebrew_prefix)
        except ValueError as exc:
            raise TemplateError(str(exc)) from exc
        return configuration.shell or "sh", template

    async def run(self, session: EditSession, request: ComposeRequest) -> ParsedEml:
        """Edit the request's document and return the merged result.

        Raises:
            TemplateError: If no command line can be built.
            TemporaryFileError: If the temporary file cannot be created,
                read or removed.
            ProcessSpawnError: If the editor cannot be started.
            EditorExitError: If the editor exits with a non-zero status.
            EmlParseError: If the edited file cannot be understood.
            MessageTooLargeError: If the result cannot be sent back. The
                temporary file is kept and its path is in the message.
        """
        shell, template = self.resolve_command(request.configuration)
        data, warnings = encode_eml(serialize_eml(request))
        session.warnings.extend(warnings)

        session.temp_path = await asyncio.to_thread(
            create_temporary_file,
            request.session_id,
            data,
            request.configuration.temporary_directory,
        )
        logger.info("temporary_file_created", session_id=session.session_id, path=str(session.temp_path))

        try:
            argv = build_command_line(shell, template, session.temp_path, self.platform)
            await self._run_editor(session, argv)
            session.transition(SessionState.PARSING)
            edited = await asyncio.to_thread(read_temporary_file, session.temp_path)
            parsed = parse_eml(edited, request, session.warnings)
        except BaseException:
            await self._cleanup(session, raise_errors=False)
            raise

        try:
            body_budget(request, parsed, self.settings.max_frame_size)
        except MessageTooLargeError as exc:
            logger.error(
                "temporary_file_kept", session_id=session.session_id, path=str(session.temp_path)
            )
            raise MessageTooLargeError(
                f"{exc}\nYou can try recovering data from {session.temp_path}"
            ) from exc
        await self._cleanup(session, raise_errors=True)
        return parsed

    async def _run_editor(self, session: EditSession, argv: list[str]) -> None:
        session.transition(SessionState.EDITOR_RUNNING)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            raise ProcessSpawnError(f"{argv[0]}: {exc}") from exc
        session.process = process
        logger.info("editor_started", session_id=session.session_id, pid=process.pid, argv=argv)

        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            session.terminate_process()
            raise

        logger.info("editor_exited", session_id=session.session_id, returncode=process.returncode)
        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise EditorExitError(message or f"Editor exited with status {process.returncode}.")

    async def _cleanup(self, session: EditSession, raise_errors: bool) -> None:
        path = session.temp_path
        if path is None:
            return
        try:
            await asyncio.to_thread(remove_temporary_file, path)
        except OSError as exc:
            logger.error(
                "temporary_file_cleanup_failed",
                session_id=session.session_id,
                path=str(path),
                error=str(exc),
            )
            if raise_errors:
                raise TemporaryFileError(
                    f"{exc}.\nYou can try recovering data from {path}",
                    title="ExtEditorR failed to remove temporary file",
                ) from exc
            return
        logger.debug("temporary_file_removed", session_id=session.session_id, path=str(path))
