"""Tests for opun.pty.session against real processes on a PTY."""

from __future__ import annotations

import sys
import threading
import time

import pytest

from opun.errors import Cancelled, PTYCreationFailed, PTYDisconnected, PTYTimeout
from opun.pty.session import PTYSession, PTYStatus, poll_until

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX pty")


# ---------------------------------------------------------------------------
# poll_until
# ---------------------------------------------------------------------------


class TestPollUntil:
    def test_returns_first_value(self) -> None:
        calls = iter([None, None, "hit"])
        assert poll_until(lambda: next(calls), timeout=1.0, interval=0.01) == "hit"

    def test_timeout(self) -> None:
        start = time.monotonic()
        with pytest.raises(PTYTimeout):
            poll_until(lambda: None, timeout=0.1, interval=0.02)
        # Overrun stays within one interval (plus scheduling slack)
        assert time.monotonic() - start < 0.5

    def test_custom_timeout_error(self) -> None:
        with pytest.raises(PTYTimeout) as exc:
            poll_until(
                lambda: None,
                timeout=0.05,
                interval=0.01,
                on_timeout=lambda: PTYTimeout("boom", output="seen"),
            )
        assert exc.value.output == "seen"

    def test_cancel(self) -> None:
        cancel = threading.Event()
        threading.Timer(0.05, cancel.set).start()
        start = time.monotonic()
        with pytest.raises(Cancelled):
            poll_until(lambda: None, timeout=5.0, interval=0.02, cancel=cancel)
        assert time.monotonic() - start < 1.0


# ---------------------------------------------------------------------------
# PTYSession
# ---------------------------------------------------------------------------


@posix_only
class TestPTYSession:
    def test_captures_output(self) -> None:
        session = PTYSession(command="sh", args=["-c", "echo hello-opun"], poll_interval=0.02)
        session.start()
        try:
            session.wait_for_pattern("hello-opun", timeout=5.0)
            assert session.pid is not None
        finally:
            session.close()
        assert session.status is PTYStatus.CLOSED
        assert b"hello-opun" in session.get_output()

    def test_clear_then_get_is_empty(self) -> None:
        with PTYSession(command="sh", args=["-c", "echo gone"], poll_interval=0.02) as session:
            session.wait_for_pattern("gone", timeout=5.0)
        session.clear_output()
        assert session.get_output() == b""

    def test_interactive_echo(self) -> None:
        with PTYSession(command="cat", poll_interval=0.02) as session:
            session.send_prompt("ping-opun")
            session.wait_for_pattern("ping-opun", timeout=5.0)
            assert session.alive

    def test_wait_timeout_carries_output(self) -> None:
        with PTYSession(command="cat", poll_interval=0.02) as session:
            session.send_prompt("visible")
            session.wait_for_pattern("visible", timeout=5.0)
            with pytest.raises(PTYTimeout) as exc:
                session.wait_for_pattern("never-printed", timeout=0.2)
            assert "visible" in exc.value.output

    def test_on_output_callback(self) -> None:
        chunks: list[bytes] = []
        session = PTYSession(command="sh", args=["-c", "echo cb-opun"], poll_interval=0.02)
        session.set_on_output(chunks.append)
        with session:
            session.wait_for_pattern("cb-opun", timeout=5.0)
        assert b"cb-opun" in b"".join(chunks)

    def test_close_is_idempotent(self) -> None:
        session = PTYSession(command="cat", poll_interval=0.02).start()
        session.close()
        session.close()
        assert session.closed
        assert session.exit_code is not None

    def test_write_after_close(self) -> None:
        session = PTYSession(command="cat", poll_interval=0.02).start()
        session.close()
        with pytest.raises(PTYDisconnected):
            session.write("late")

    def test_start_twice(self) -> None:
        with PTYSession(command="cat", poll_interval=0.02) as session:
            with pytest.raises(PTYCreationFailed):
                session.start()

    def test_missing_command(self) -> None:
        session = PTYSession(command="/nonexistent/opun-test-binary")
        with pytest.raises(PTYCreationFailed):
            session.start()
