"""Edit session registry and state machine.

A session lives from request acceptance until its final chunk or failure
notification is dispatched. The caller disables its compose action while a
session is active; releasing the session is the single point where that
action is re-enabled.
"""

from __future__ import annotations

import asyncio
import os
import signal
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from external_editor_host.exceptions import SessionConflictError, SessionStateError
from external_editor_host.models import SessionId, WarningMessage

logger = structlog.get_logger()


class SessionState(str, Enum):
    """Lifecycle states of an edit session."""

    REQUESTED = "requested"
    EDITOR_RUNNING = "editor_running"
    PARSING = "parsing"
    DISPATCHING = "dispatching"
    COMPLETE = "complete"
    FAILED = "failed"


_TERMINAL_STATES = frozenset({SessionState.COMPLETE, SessionState.FAILED})

_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.REQUESTED: frozenset({SessionState.EDITOR_RUNNING, SessionState.FAILED}),
    SessionState.EDITOR_RUNNING: frozenset({SessionState.PARSING, SessionState.FAILED}),
    SessionState.PARSING: frozenset({SessionState.DISPATCHING, SessionState.FAILED}),
    SessionState.DISPATCHING: frozenset({SessionState.COMPLETE, SessionState.FAILED}),
    SessionState.COMPLETE: frozenset(),
    SessionState.FAILED: frozenset(),
}


@dataclass
class EditSession:
    """State of one edit request."""

    session_id: SessionId
    state: SessionState = SessionState.REQUESTED
    temp_path: Path | None = None
    process: asyncio.subprocess.Process | None = None
    warnings: list[WarningMessage] = field(default_factory=list)
    action_enabled: bool = False
    history: list[SessionState] = field(default_factory=lambda: [SessionState.REQUESTED])

    @property
    def is_finished(self) -> bool:
        return self.state in _TERMINAL_STATES

    def transition(self, new_state: SessionState) -> None:
        """Move to ``new_state``.

        Raises:
            SessionStateError: If the transition is not allowed.
        """
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(
                f"Session {self.session_id} cannot go from {self.state.value} to {new_state.value}"
            )
        logger.debug(
            "session_transition",
            session_id=self.session_id,
            old_state=self.state.value,
            new_state=new_state.value,
        )
        self.state = new_state
        self.history.append(new_state)

    def fail(self) -> None:
        if self.state is not SessionState.FAILED:
            self.transition(SessionState.FAILED)

    def enable_action(self) -> None:
        """Hand the compose action back to the caller.

        Raises:
            SessionStateError: If the action was already re-enabled.
        """
        if self.action_enabled:
            raise SessionStateError(f"Session {self.session_id} re-enabled its action twice")
        self.action_enabled = True

    def terminate_process(self) -> bool:
        """Best-effort kill of a still running editor.

        Returns:
            True if a signal was delivered.
        """
        process = self.process
        if process is None or process.returncode is not None:
            return False
        try:
            if os.name == "posix":
                # the editor runs in its own process group, take down the shell's children too
                os.killpg(process.pid, signal.SIGTERM)
            else:
                process.terminate()
        except (ProcessLookupError, PermissionError) as exc:
            logger.warning(
                "editor_terminate_failed", session_id=self.session_id, pid=process.pid, error=str(exc)
            )
            return False
        logger.info("editor_terminated", session_id=self.session_id, pid=process.pid)
        return True


class SessionRegistry:
    """Concurrent map of active sessions keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[SessionId, EditSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get(self, session_id: SessionId) -> EditSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def active_sessions(self) -> list[EditSession]:
        with self._lock:
            return list(self._sessions.values())

    def register(self, session_id: SessionId) -> EditSession:
        """Admit a new session.

        Raises:
            SessionConflictError: If a session with this id is still active.
        """
        with self._lock:
            if session_id in self._sessions:
                raise SessionConflictError(
                    "An external editor is still open for this message. "
                    "Close it before starting another edit."
                )
            session = EditSession(session_id=session_id)
            self._sessions[session_id] = session
        logger.info("session_registered", session_id=session_id)
        return session

    def release(self, session: EditSession) -> bool:
        """Remove a session and re-enable the caller's action.

        Unfinished sessions are marked failed first. Releasing the same
        session twice is a no-op.

        Returns:
            True if the session was removed by this call.
        """
        with self._lock:
            if self._sessions.get(session.session_id) is not session:
                return False
            del self._sessions[session.session_id]
        if not session.is_finished:
            session.fail()
        session.enable_action()
        logger.info("session_released", session_id=session.session_id, state=session.state.value)
        return True

    def terminate_all(self) -> int:
        """Kill every running editor. Returns the number signalled."""
        return sum(1 for session in self.active_sessions() if session.terminate_process())
