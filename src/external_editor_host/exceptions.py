"""Custom exceptions for the External Editor host.

Every error that reaches the mail client carries a short ``title`` and the
exception message as its human-readable body. ``reset`` tells the client
whether it must drop its session state and re-enable the compose action.
"""

from __future__ import annotations

from external_editor_host.models.messaging import WarningMessage


class ExternalEditorError(Exception):
    """Base exception for all External Editor host errors."""

    title = "ExtEditorR encountered an error"
    reset = True

    def __init__(self, message: str, *, title: str | None = None) -> None:
        super().__init__(message)
        if title is not None:
            self.title = title

    @property
    def message(self) -> str:
        return str(self)

    def to_warning(self) -> WarningMessage:
        return WarningMessage(title=self.title, message=self.message)


class FrameError(ExternalEditorError):
    """Malformed native messaging frame. The frame is dropped."""

    title = "ExtEditorR received a malformed message"


class MessageTooLargeError(FrameError):
    """An outbound message does not fit in one frame."""

    title = "ExtEditorR cannot send a message this large"


class ChannelClosedError(ExternalEditorError):
    """The mail client closed the standard streams."""

    title = "ExtEditorR lost connection to the mail client"


class VersionMismatchError(ExternalEditorError):
    """Extension and host disagree on major or minor version."""

    title = "ExtEditorR version mismatch!"


class SessionConflictError(ExternalEditorError):
    """A session with the same id is still in flight."""

    title = "ExtEditorR is already editing this message"
    reset = False


class SessionStateError(ExternalEditorError):
    """Illegal session state transition."""

    title = "ExtEditorR session error"


class TemplateError(ExternalEditorError):
    """The command template cannot be turned into a command line."""

    title = "ExtEditorR failed to build editor command"


class ProcessSpawnError(ExternalEditorError):
    """The editor process could not be started."""

    title = "ExtEditorR failed to start editor"


class EditorExitError(ExternalEditorError):
    """The editor exited with a non-zero status."""

    title = "ExtEditorR encountered error from external editor"


class TemporaryFileError(ExternalEditorError):
    """Creating, reading or removing the temporary file failed."""

    title = "ExtEditorR failed to handle temporary file"


class EmlParseError(ExternalEditorError):
    """The edited file contains a header value that cannot be understood."""

    title = "ExtEditorR failed to process temporary file"


class EncodingError(ExternalEditorError):
    """Text could not be represented as UTF-8 and was recovered lossily."""

    title = "Invalid UTF-8 found"
    reset = False


class UnknownOrDisallowedHeaderError(ExternalEditorError):
    """Edited file contains headers that cannot be passed to the mail client."""

    title = "Unknown header(s) found"
    reset = False

    def __init__(self, headers: list[str]) -> None:
        self.headers = list(headers)
        lines = "\n".join(f"- {name}" for name in self.headers)
        super().__init__(f"ExtEditorR did not recognise the following headers:\n{lines}")
