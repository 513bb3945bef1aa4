"""Tests for opun.pty.buffer."""

from __future__ import annotations

import threading

from opun.pty.buffer import OutputBuffer, contains_pattern, first_match, index_of_pattern


# ---------------------------------------------------------------------------
# Pattern helpers
# ---------------------------------------------------------------------------


class TestContainsPattern:
    def test_substring(self) -> None:
        assert contains_pattern(b"Welcome\n\xe2\x94\x82 > ", "│ > ")

    def test_str_data(self) -> None:
        assert contains_pattern("Type your message", "your")

    def test_miss(self) -> None:
        assert not contains_pattern(b"loading...", "│ >")

    def test_must_be_contiguous(self) -> None:
        assert not contains_pattern(b"\xe2\x94\x82 x >", "│ >")

    def test_prompt_box_boundary(self) -> None:
        assert contains_pattern("Some text before │ > Type your message", "│ > ")
        assert contains_pattern("Some text before │ > Type your message".encode(), "│ > ")
        # Trailing space is part of the pattern
        assert not contains_pattern("some text │ >", "│ > ")
        assert not contains_pattern("some text │ >".encode(), "│ > ")

    def test_empty_pattern_matches(self) -> None:
        assert contains_pattern(b"", "")
        assert index_of_pattern(b"abc", "") == 0

    def test_case_sensitive(self) -> None:
        assert not contains_pattern(b"claude>", "Claude>")


class TestFirstMatch:
    def test_earliest_offset_wins(self) -> None:
        assert first_match(b"xx B yy A", ["A", "B"]) == (3, "B")

    def test_tie_goes_to_first_listed(self) -> None:
        assert first_match(b"> Try it", ["> Try", ">"]) == (0, "> Try")

    def test_no_match(self) -> None:
        assert first_match(b"nothing here", ["DONE"]) is None


# ---------------------------------------------------------------------------
# OutputBuffer
# ---------------------------------------------------------------------------


class TestOutputBuffer:
    def test_empty(self) -> None:
        buf = OutputBuffer()
        assert len(buf) == 0
        assert buf.snapshot() == b""
        assert buf.total_bytes == 0

    def test_append_keeps_order(self) -> None:
        buf = OutputBuffer()
        buf.append(b"one ")
        buf.append(b"two ")
        buf.append(b"three")
        assert buf.snapshot() == b"one two three"
        assert buf.text() == "one two three"

    def test_empty_chunk_ignored(self) -> None:
        buf = OutputBuffer()
        buf.append(b"")
        assert buf.total_bytes == 0

    def test_snapshot_is_a_copy(self) -> None:
        buf = OutputBuffer()
        buf.append(b"abc")
        snap = buf.snapshot()
        buf.append(b"def")
        assert snap == b"abc"

    def test_clear_keeps_total(self) -> None:
        buf = OutputBuffer()
        buf.append(b"abc")
        buf.clear()
        assert len(buf) == 0
        assert buf.total_bytes == 3

    def test_tail(self) -> None:
        buf = OutputBuffer()
        buf.append(b"0123456789")
        assert buf.tail(3) == b"789"
        assert buf.tail(0) == b""
        assert buf.tail(100) == b"0123456789"

    def test_lossy_decode(self) -> None:
        buf = OutputBuffer()
        buf.append(b"ok \xff")
        assert buf.text().startswith("ok ")

    def test_concurrent_appends(self) -> None:
        buf = OutputBuffer()

        def _writer() -> None:
            for _ in range(500):
                buf.append(b"x")

        threads = [threading.Thread(target=_writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(buf) == 2000
        assert buf.total_bytes == 2000
