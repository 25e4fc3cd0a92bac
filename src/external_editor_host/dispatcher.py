"""Split edit results into size-bounded response chunks.

A single native messaging frame from the host is capped by the browser, so
large bodies are cut into ordered slices. Every chunk repeats the non-body
fields; the caller only trusts them on the first chunk and concatenates the
body slices in sequence order. Slices are sized so that each chunk, with
its repeated fields, still fits in one frame.
"""

from __future__ import annotations

from collections.abc import Iterable

from external_editor_host.eml import ParsedEml
from external_editor_host.exceptions import MessageTooLargeError
from external_editor_host.models import (
    ComposeDetails,
    ComposeRequest,
    ComposeResponse,
    ResponseConfiguration,
    SessionId,
    dump_message,
)
from external_editor_host.transport import encode_payload

# JSON escapes these as two characters, e.g. \n
_SHORT_ESCAPES = frozenset('"\\\b\f\n\r\t')
# widest single character, \u00XX
_MIN_BODY_BUDGET = 6


def encoded_size(char: str) -> int:
    """Bytes ``char`` occupies inside a UTF-8 JSON string."""
    if char in _SHORT_ESCAPES:
        return 2
    code = ord(char)
    if code < 0x20:
        return 6  # \u00XX
    if code < 0x80:
        return 1
    if code < 0x800:
        return 2
    if code < 0x10000:
        return 3
    return 4


def split_body(body: str, limit: int) -> list[str]:
    """Cut ``body`` into slices of at most ``limit`` encoded bytes.

    Characters are never split. An empty body yields a single empty slice.

    Raises:
        ValueError: If ``limit`` is too small to hold any character.
    """
    if limit < _MIN_BODY_BUDGET:
        raise ValueError(f"body limit {limit} is too small")
    segments: list[str] = []
    start = 0
    size = 0
    for index, char in enumerate(body):
        cost = encoded_size(char)
        if size + cost > limit:
            segments.append(body[start:index])
            start = index
            size = 0
        size += cost
    segments.append(body[start:])
    return segments


def body_budget(request: ComposeRequest, parsed: ParsedEml, max_frame_size: int) -> int:
    """Encoded body bytes that fit in one chunk next to its other fields.

    Measured on the largest chunk the result can produce: warnings attached
    and sequence numbers as wide as the body is long.

    Raises:
        MessageTooLargeError: If the fields other than the body leave no
            room for even one character.
    """
    details = parsed.details.model_copy(update={"attachments": []})
    widest = max(len(details.get_body()), 1)
    envelope = _chunk(request, parsed, details.with_body("x"), widest, widest, is_last=True)
    budget = max_frame_size - (len(encode_payload(dump_message(envelope))) - 1)
    if budget < _MIN_BODY_BUDGET:
        raise MessageTooLargeError(
            f"The edited message leaves no room for its body in a {max_frame_size} byte reply. "
            "Reduce the number of recipients or the size of the headers."
        )
    return budget


def build_responses(
    request: ComposeRequest,
    parsed: ParsedEml,
    max_body_length: int,
    max_frame_size: int | None = None,
) -> list[ComposeResponse]:
    """Turn a parsed edit result into response chunks.

    Args:
        request: The original edit request.
        parsed: The merged document and its warnings.
        max_body_length: Largest encoded body slice per chunk.
        max_frame_size: Frame cap of the channel. If set, slices shrink
            further so that every complete chunk fits in one frame.

    Returns:
        Chunks with sequence numbers 1..total. Attachments are always
        empty and warnings are attached to the last chunk only.

    Raises:
        MessageTooLargeError: If the non-body fields alone overflow a frame.
    """
    limit = max_body_length
    if max_frame_size is not None:
        limit = min(limit, body_budget(request, parsed, max_frame_size))
    details = parsed.details.model_copy(update={"attachments": []})
    segments = split_body(details.get_body(), limit)
    total = len(segments)
    return [
        _chunk(request, parsed, details.with_body(segment), sequence, total, is_last=sequence == total)
        for sequence, segment in enumerate(segments, start=1)
    ]


def _chunk(
    request: ComposeRequest,
    parsed: ParsedEml,
    details: ComposeDetails,
    sequence: int,
    total: int,
    is_last: bool,
) -> ComposeResponse:
    return ComposeResponse(
        configuration=ResponseConfiguration(
            version=request.configuration.version,
            sequence=sequence,
            total=total,
            send_on_exit=parsed.send_on_exit,
        ),
        session_id=request.session_id,
        tab=request.tab,
        compose_details=details,
        warnings=list(parsed.warnings) if is_last and parsed.warnings else None,
    )


class ChunkAccumulator:
    """Reassembles the chunks of one response.

    Chunks may arrive in any order. Slots are filled by sequence number
    and the document is assembled once every slot up to the expected
    total is filled.
    """

    def __init__(self, session_id: SessionId | None = None) -> None:
        self.session_id = session_id
        self._total: int | None = None
        self._slots: list[ComposeResponse | None] = []
        self._received = 0

    @property
    def total(self) -> int | None:
        return self._total

    @property
    def is_complete(self) -> bool:
        return self._total is not None and self._received == self._total

    def add(self, chunk: ComposeResponse) -> bool:
        """Store a chunk.

        Returns:
            True once all chunks have been received.

        Raises:
            ValueError: On a foreign session, conflicting total, sequence
                out of range or duplicate sequence.
        """
        if self.session_id is None:
            self.session_id = chunk.session_id
        elif chunk.session_id != self.session_id:
            raise ValueError(f"chunk for session {chunk.session_id} fed to {self.session_id}")

        total = chunk.configuration.total
        if self._total is None:
            self._total = total
            self._slots = [None] * total
        elif total != self._total:
            raise ValueError(f"chunk claims {total} chunks, expected {self._total}")

        sequence = chunk.configuration.sequence
        if not 1 <= sequence <= total:
            raise ValueError(f"chunk sequence {sequence} outside 1..{total}")
        if self._slots[sequence - 1] is not None:
            raise ValueError(f"duplicate chunk sequence {sequence}")
        self._slots[sequence - 1] = chunk
        self._received += 1
        return self.is_complete

    def extend(self, chunks: Iterable[ComposeResponse]) -> bool:
        for chunk in chunks:
            self.add(chunk)
        return self.is_complete

    def last(self) -> ComposeResponse:
        """The final chunk, which carries warnings and the send decision."""
        self._require_complete()
        return self._slots[-1]  # type: ignore[return-value]

    def assemble(self) -> ComposeDetails:
        """Join body slices in sequence order onto the first chunk's fields.

        Raises:
            ValueError: If chunks are still missing.
        """
        self._require_complete()
        chunks = [chunk for chunk in self._slots if chunk is not None]
        first = chunks[0].compose_details
        body = "".join(chunk.compose_details.get_body() for chunk in chunks)
        return first.with_body(body)

    def _require_complete(self) -> None:
        if not self.is_complete:
            raise ValueError(f"received {self._received} of {self._total or '?'} chunks")
