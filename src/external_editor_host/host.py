"""Native messaging host.

Reads requests from the frame channel and runs each edit in its own task,
so several compose windows can be edited at once. Every accepted request
ends with either the complete chunked response or one notification.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from external_editor_host import __version__
from external_editor_host.config import Settings, get_settings
from external_editor_host.dispatcher import build_responses
from external_editor_host.editor import EditorSessionController
from external_editor_host.exceptions import (
    ChannelClosedError,
    ExternalEditorError,
    FrameError,
    SessionConflictError,
    VersionMismatchError,
)
from external_editor_host.models import ComposeRequest, Notification, Ping, SessionId, dump_message
from external_editor_host.protocol import answer_ping, check_version
from external_editor_host.session import SessionRegistry, SessionState
from external_editor_host.transport import FrameChannel

logger = structlog.get_logger()

INVALID_REQUEST_TITLE = "ExtEditorR received an invalid request"
UNEXPECTED_ERROR_TITLE = "ExtEditorR encountered an unexpected error"


class NativeMessagingHost:
    """Serves edit requests from the mail client."""

    def __init__(
        self,
        channel: FrameChannel,
        settings: Settings | None = None,
        controller: EditorSessionController | None = None,
    ) -> None:
        """Initialize the host.

        Args:
            channel: Frame channel connected to the mail client.
            settings: Host settings. If None, uses default settings.
            controller: Editor controller. If None, one is created from
                the settings.
        """
        self.channel = channel
        self.settings = settings or get_settings()
        self.controller = controller or EditorSessionController(self.settings)
        self.registry = SessionRegistry()
        self._tasks: set[asyncio.Task[None]] = set()
        self._reader_thread: threading.Thread | None = None

    @property
    def pending_tasks(self) -> list[asyncio.Task[None]]:
        return [task for task in self._tasks if not task.done()]

    async def serve(self) -> None:
        """Handle requests until the mail client closes the channel.

        Frames are read by a daemon thread, so a cancelled host never
        waits for a blocked read of the input stream.
        """
        logger.info("host_started", version=__version__)
        inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._reader_thread = threading.Thread(
            target=self._read_frames,
            args=(asyncio.get_running_loop(), inbox),
            name="frame-reader",
            daemon=True,
        )
        self._reader_thread.start()
        try:
            while True:
                payload = await inbox.get()
                if isinstance(payload, ChannelClosedError):
                    logger.info("channel_closed", reason=payload.message)
                    break
                self.handle_message(payload)
        finally:
            await self.shutdown()

    def _read_frames(self, loop: asyncio.AbstractEventLoop, inbox: asyncio.Queue[Any]) -> None:
        while True:
            try:
                payload: Any = self.channel.read_message()
            except ChannelClosedError as exc:
                payload = exc
            except FrameError as exc:
                logger.warning("frame_dropped", error=exc.message)
                continue
            except (OSError, ValueError) as exc:
                payload = ChannelClosedError(f"input stream failed: {exc}")
            try:
                loop.call_soon_threadsafe(inbox.put_nowait, payload)
            except RuntimeError:
                # loop already closed, nobody is listening
                return
            if isinstance(payload, ChannelClosedError):
                return

    def handle_message(self, payload: Any) -> asyncio.Task[None] | None:
        """Start handling one decoded frame.

        Returns:
            The task handling the message, or None if it was dropped.
        """
        if not isinstance(payload, dict):
            logger.warning("message_dropped", reason="not a JSON object")
            return None

        if "ping" in payload:
            try:
                ping = Ping.model_validate(payload)
            except ValidationError as exc:
                logger.warning("message_dropped", reason="invalid ping", error=str(exc))
                return None
            return self._spawn(self._notify_peer(answer_ping(ping)))

        try:
            request = ComposeRequest.model_validate(payload)
        except ValidationError as exc:
            return self._reject_invalid(payload, exc)
        return self._spawn(self.handle_compose(request))

    async def handle_compose(self, request: ComposeRequest) -> None:
        """Run one edit session to completion.

        Args:
            request: Validated edit request.
        """
        session_id = request.session_id
        log = logger.bind(session_id=session_id)

        try:
            check_version(request.configuration)
        except VersionMismatchError as exc:
            log.warning("request_rejected", reason="version_mismatch", error=exc.message)
            await self._notify_error(request, exc)
            return

        try:
            session = self.registry.register(session_id)
        except SessionConflictError as exc:
            log.warning("request_rejected", reason="session_conflict")
            await self._notify_error(request, exc)
            return

        try:
            parsed = await self.controller.run(session, request)
            session.transition(SessionState.DISPATCHING)
            responses = build_responses(
                request, parsed, self.settings.max_body_length, self.settings.max_frame_size
            )
            for response in responses:
                await self.send(response)
            session.transition(SessionState.COMPLETE)
            log.info("session_complete", chunks=len(responses), send_on_exit=parsed.send_on_exit)
        except ExternalEditorError as exc:
            session.fail()
            log.error("session_failed", title=exc.title, error=exc.message)
            await self._notify_error(request, exc)
        except Exception as exc:
            session.fail()
            log.exception("session_crashed")
            await self._notify_error(request, ExternalEditorError(str(exc), title=UNEXPECTED_ERROR_TITLE))
        finally:
            self.registry.release(session)

    async def send(self, message: BaseModel) -> None:
        """Write one message to the mail client.

        Raises:
            FrameError: If the message cannot be written.
        """
        await asyncio.to_thread(self.channel.write_message, dump_message(message))

    async def shutdown(self) -> None:
        """Terminate running editors and wait for their sessions to clean up."""
        signalled = self.registry.terminate_all()
        tasks = self.pending_tasks
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("host_stopped", editors_terminated=signalled, tasks_cancelled=len(tasks))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _reject_invalid(self, payload: dict[str, Any], exc: ValidationError) -> asyncio.Task[None] | None:
        session_id = _recover_session_id(payload)
        if session_id is None:
            logger.warning("message_dropped", reason="invalid request", error=str(exc))
            return None
        logger.warning("request_rejected", reason="invalid request", session_id=session_id, error=str(exc))
        tab = payload.get("tab") if isinstance(payload.get("tab"), dict) else None
        notification = Notification(
            title=INVALID_REQUEST_TITLE,
            message=f"{exc.error_count()} invalid field(s) in the request:\n{_summarize(exc)}",
            reset=True,
            session_id=session_id,
            tab=tab,
        )
        return self._spawn(self._notify_peer(notification))

    async def _notify_error(self, request: ComposeRequest, exc: ExternalEditorError) -> None:
        notification = Notification(
            title=exc.title,
            message=exc.message,
            reset=exc.reset,
            session_id=request.session_id,
            tab=request.tab,
        )
        await self._notify_peer(notification)

    async def _notify_peer(self, message: BaseModel) -> None:
        try:
            await self.send(message)
        except FrameError as exc:
            logger.error("send_failed", error=exc.message)


def _recover_session_id(payload: dict[str, Any]) -> SessionId | None:
    candidate = payload.get("sessionId", payload.get("session_id"))
    if candidate is None and isinstance(payload.get("tab"), dict):
        candidate = payload["tab"].get("id")
    if isinstance(candidate, bool) or not isinstance(candidate, (int, str)):
        return None
    return candidate


def _summarize(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "request"
        lines.append(f"- {location}: {error['msg']}")
    return "\n".join(lines)
