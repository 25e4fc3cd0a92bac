"""Compact ``key=value, key=value`` meta header.

Several option headers can be folded into one line to reduce clutter.
Entries whose key or value would make the line ambiguous stay as
individual headers.
"""

from __future__ import annotations

ENTRY_DELIMITER = ", "
KEY_VALUE_DELIMITER = "="
_AMBIGUOUS = (",", ":")


def can_fold(key: str, value: str) -> bool:
    """Whether an entry can be written into the meta header unambiguously."""
    if not key or KEY_VALUE_DELIMITER in key:
        return False
    return not any(char in key or char in value for char in _AMBIGUOUS)


def fold(entries: list[tuple[str, str]]) -> tuple[str | None, list[tuple[str, str]]]:
    """Fold entries into a meta header value.

    Args:
        entries: Ordered ``(key, value)`` pairs.

    Returns:
        The meta header value (None if nothing could be folded) and the
        entries that must be written as individual headers, in order.
    """
    folded: list[str] = []
    remaining: list[tuple[str, str]] = []
    for key, value in entries:
        if can_fold(key, value):
            folded.append(f"{key}{KEY_VALUE_DELIMITER}{value}")
        else:
            remaining.append((key, value))
    return (ENTRY_DELIMITER.join(folded) or None), remaining


def unfold(value: str) -> list[tuple[str, str]]:
    """Split a meta header value back into ``(key, value)`` pairs.

    Raises:
        ValueError: If an entry has no ``=``.
    """
    entries: list[tuple[str, str]] = []
    for item in value.split(ENTRY_DELIMITER.strip()):
        item = item.strip()
        if not item:
            continue
        key, separator, entry_value = item.partition(KEY_VALUE_DELIMITER)
        if not separator or not key.strip():
            raise ValueError(f"meta header entry is not key=value: {item}")
        entries.append((key.strip(), entry_value.strip()))
    return entries
