"""Shared fakes: a scripted PTY session, clipboard, and provider."""

from __future__ import annotations

import threading
from typing import Any, Iterable

import pytest

from opun.config import PTYConfig
from opun.errors import Cancelled, PTYDisconnected


def _b(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class FakeSession:
    """Stands in for PTYSession.

    Output arrives one scripted chunk per ``get_output`` call, like a
    reader thread draining the PTY between polls. ``reactions`` queue more
    chunks whenever an exact byte string is written.
    """

    def __init__(
        self,
        chunks: Iterable[bytes | str] = (),
        reactions: dict[bytes, list[bytes | str]] | None = None,
        **kwargs: Any,
    ) -> None:
        self.kwargs = kwargs
        self.poll_interval = kwargs.get("poll_interval", 0.01)
        self.id = "fake01"
        self.pid = 4242
        self.reactions = {k: [_b(c) for c in v] for k, v in (reactions or {}).items()}
        self.writes: list[bytes] = []
        self.started = False
        self.closed = False
        self.alive = True
        self.exit_code: int | None = None
        self._pending = [_b(c) for c in chunks]
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def feed(self, *chunks: bytes | str) -> None:
        with self._lock:
            self._pending.extend(_b(c) for c in chunks)

    def start(self) -> FakeSession:
        self.started = True
        return self

    def write(self, data: bytes | str) -> None:
        data = _b(data)
        if self.closed:
            raise PTYDisconnected("closed")
        with self._lock:
            self.writes.append(data)
            self._pending.extend(self.reactions.get(data, ()))

    def send_keys(self, keys: str) -> None:
        self.write(keys)

    def send_enter(self) -> None:
        self.write(b"\r")

    def get_output(self) -> bytes:
        with self._lock:
            if self._pending:
                self._buffer.extend(self._pending.pop(0))
            return bytes(self._buffer)

    def clear_output(self) -> None:
        with self._lock:
            self._buffer.clear()

    def close(self) -> None:
        self.closed = True
        self.alive = False


class FakeClipboard:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.copied: list[str] = []

    def copy(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("no display")
        self.copied.append(text)


class FakeProvider:
    """Provider returning scripted replies; exceptions in the script are raised.

    With ``gate`` set, each call blocks until the gate opens or the
    caller's cancel event fires.
    """

    def __init__(
        self,
        name: str = "fake",
        replies: Iterable[str | BaseException] = (),
        default: str = "ok",
        gate: threading.Event | None = None,
    ) -> None:
        self._name = name
        self.replies = list(replies)
        self.default = default
        self.gate = gate
        self.prompts: list[str] = []
        self.timeouts: list[float | None] = []
        self.sessions: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    def inject_prompt(
        self,
        prompt: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        with self._lock:
            self.prompts.append(prompt)
            self.timeouts.append(timeout)
            reply = self.replies.pop(0) if self.replies else self.default
        if self.gate is not None:
            while not self.gate.wait(0.01):
                if cancel is not None and cancel.is_set():
                    raise Cancelled("cancelled")
        if isinstance(reply, BaseException):
            raise reply
        return reply

    def prepare_session(self, session_id: str) -> None:
        self.sessions.append(session_id)

    def cleanup_session(self, session_id: str) -> None:
        self.sessions.remove(session_id)


@pytest.fixture
def fast_pty_config() -> PTYConfig:
    return PTYConfig(
        poll_interval=0.01,
        ready_timeout=1.0,
        response_timeout=1.0,
        health_check_window=0.2,
        clipboard_settle=0.0,
        paste_timeout=0.5,
        response_start_delay=0.0,
        exit_grace=0.0,
    )


@pytest.fixture
def fake_session_cls() -> type[FakeSession]:
    return FakeSession


@pytest.fixture
def fake_clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def fake_clipboard_cls() -> type[FakeClipboard]:
    return FakeClipboard


@pytest.fixture
def fake_provider_cls() -> type[FakeProvider]:
    return FakeProvider
