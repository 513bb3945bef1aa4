"""Output buffer for PTY sessions."""

from __future__ import annotations

import threading


def _as_bytes(value: bytes | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def index_of_pattern(data: bytes | str, pattern: bytes | str) -> int:
    """Return the offset of the first occurrence of ``pattern`` in ``data``.

    Matching is literal and contiguous. The empty pattern matches at 0;
    a miss returns -1.
    """
    return _as_bytes(data).find(_as_bytes(pattern))


def contains_pattern(data: bytes | str, pattern: bytes | str) -> bool:
    """True iff ``pattern`` occurs as a contiguous substring of ``data``."""
    return index_of_pattern(data, pattern) >= 0


def first_match(
    data: bytes | str, patterns: list[str] | tuple[str, ...]
) -> tuple[int, str] | None:
    """Find the earliest occurrence of any pattern.

    Returns ``(offset, pattern)`` or None. Ties go to the pattern listed
    first.
    """
    raw = _as_bytes(data)
    best: tuple[int, str] | None = None
    for pattern in patterns:
        idx = raw.find(_as_bytes(pattern))
        if idx >= 0 and (best is None or idx < best[0]):
            best = (idx, pattern)
    return best


class OutputBuffer:
    """Thread-safe, append-only byte buffer for PTY output.

    The session's reader thread is the only writer; callers only ever see
    copies via ``snapshot()``. Bytes are kept in exactly the order they were
    appended.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._total_bytes: int = 0  # Total bytes ever appended
        self._lock = threading.Lock()

    def append(self, chunk: bytes) -> None:
        if not chunk:
            return
        with self._lock:
            self._data.extend(chunk)
            self._total_bytes += len(chunk)

    def snapshot(self) -> bytes:
        """Return a copy of the buffered bytes."""
        with self._lock:
            return bytes(self._data)

    def text(self) -> str:
        """Return the buffered bytes decoded as UTF-8 (lossy)."""
        return self.snapshot().decode("utf-8", errors="replace")

    def tail(self, n: int = 2048) -> bytes:
        """Return the last ``n`` bytes."""
        with self._lock:
            return bytes(self._data[-n:]) if n > 0 else b""

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    @property
    def total_bytes(self) -> int:
        """Bytes appended since creation, including cleared ones."""
        with self._lock:
            return self._total_bytes

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
