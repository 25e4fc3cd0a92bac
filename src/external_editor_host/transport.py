"""Native messaging frame channel.

Each frame is a 4-byte unsigned length in native byte order followed by
that many bytes of UTF-8 encoded JSON. Requests are read from one binary
stream and responses written to another; writes are serialized so frames
from concurrent sessions never interleave.
"""

from __future__ import annotations

import json
import os
import struct
import sys
import threading
from typing import Any, BinaryIO

import structlog

from external_editor_host.config import DEFAULT_MAX_FRAME_SIZE
from external_editor_host.exceptions import ChannelClosedError, FrameError, MessageTooLargeError

logger = structlog.get_logger()

_LENGTH = struct.Struct("=I")


class FrameChannel:
    """Length-prefixed JSON over a pair of binary streams."""

    def __init__(
        self,
        reader: BinaryIO,
        writer: BinaryIO,
        max_frame_size: int = DEFAULT_MAX_FRAME_SIZE,
    ) -> None:
        """Create a channel.

        Args:
            reader: Stream requests are read from.
            writer: Stream responses are written to.
            max_frame_size: Largest payload accepted by the peer, in bytes.
        """
        self._reader = reader
        self._writer = writer
        self._max_frame_size = max_frame_size
        self._write_lock = threading.Lock()

    @classmethod
    def from_stdio(cls, max_frame_size: int = DEFAULT_MAX_FRAME_SIZE) -> FrameChannel:
        """Channel over the process's standard input and output."""
        if os.name == "nt":
            import msvcrt

            msvcrt.setmode(sys.stdin.fileno(), os.O_BINARY)
            msvcrt.setmode(sys.stdout.fileno(), os.O_BINARY)
        return cls(sys.stdin.buffer, sys.stdout.buffer, max_frame_size)

    def read_message(self) -> Any:
        """Block until one complete frame is read and decode it.

        Returns:
            The decoded JSON value.

        Raises:
            ChannelClosedError: If the stream ended between frames.
            FrameError: If the frame is truncated or not valid UTF-8 JSON.
        """
        prefix = self._read_exactly(_LENGTH.size)
        if not prefix:
            raise ChannelClosedError("input stream closed")
        if len(prefix) < _LENGTH.size:
            raise FrameError(f"truncated length prefix ({len(prefix)} of {_LENGTH.size} bytes)")

        (length,) = _LENGTH.unpack(prefix)
        payload = self._read_exactly(length)
        if len(payload) < length:
            raise FrameError(f"truncated payload ({len(payload)} of {length} bytes)")

        try:
            return json.loads(payload.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise FrameError(f"payload is not valid UTF-8: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise FrameError(f"payload is not valid JSON: {exc}") from exc

    def write_message(self, message: Any) -> None:
        """Encode ``message`` and write it as one frame.

        Raises:
            MessageTooLargeError: If the encoded message exceeds the frame cap.
            FrameError: If the message cannot be encoded or written.
        """
        payload = encode_payload(message)
        if len(payload) > self._max_frame_size:
            raise MessageTooLargeError(
                f"message of {len(payload)} bytes exceeds the {self._max_frame_size} byte limit"
            )

        with self._write_lock:
            try:
                self._writer.write(_LENGTH.pack(len(payload)))
                self._writer.write(payload)
                self._writer.flush()
            except (OSError, ValueError) as exc:
                raise FrameError(f"failed to write message: {exc}") from exc
        logger.debug("frame_written", size=len(payload))

    def _read_exactly(self, size: int) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = self._reader.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)


def encode_payload(message: Any) -> bytes:
    """Encode ``message`` exactly as it is written inside a frame.

    Raises:
        FrameError: If the message is not JSON serializable.
    """
    try:
        return json.dumps(message, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise FrameError(f"message cannot be encoded: {exc}") from exc
