"""Automator — drive an interactive assistant through its PTY session."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Sequence

from tenacity import Retrying, retry_if_result, stop_after_delay, wait_exponential

from opun.errors import Cancelled, ClipboardFailed, PatternNotFound, PTYTimeout
from opun.pty.buffer import contains_pattern, first_match
from opun.pty.clipboard import Clipboard, SystemClipboard
from opun.pty.extract import extract_last_response
from opun.pty.session import POLL_INTERVAL, PTYSession, poll_until

logger = logging.getLogger(__name__)

PASTE = b"\x16"  # Ctrl+V; the assistants read it as "paste from clipboard"
INTERRUPT = b"\x03"
EOF = b"\x04"

DEFAULT_READY_TIMEOUT = 30.0
DEFAULT_CAPTURE_TIMEOUT = 300.0


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class Automator:
    """Clipboard injection and pattern-driven waiting on top of a session.

    The automator holds no state besides its session and clipboard; all
    waits are bounded poll loops over ``session.get_output()``.
    """

    def __init__(
        self,
        session: PTYSession,
        clipboard: Clipboard | None = None,
        poll_interval: float | None = None,
        clipboard_settle: float = 0.1,
        paste_timeout: float = 5.0,
    ) -> None:
        self._session = session
        self._clipboard = clipboard or SystemClipboard()
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else getattr(session, "poll_interval", POLL_INTERVAL)
        )
        self.clipboard_settle = clipboard_settle
        self.paste_timeout = paste_timeout

    @property
    def session(self) -> PTYSession:
        return self._session

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def send_prompt_with_copy(
        self, prompt: str, cancel: threading.Event | None = None
    ) -> None:
        """Paste ``prompt`` into the assistant and submit it.

        None of the supported assistants take an initial prompt on the
        command line, and typing long prompts key by key trips their
        multi-line handling, so the prompt goes through the clipboard.
        """
        logger.debug("send_prompt_with_copy: %d chars", len(prompt))
        try:
            self._clipboard.copy(prompt)
        except ClipboardFailed:
            raise
        except Exception as e:
            raise ClipboardFailed(f"failed to copy to clipboard: {e}") from e

        if self.clipboard_settle > 0:
            self._sleep(self.clipboard_settle, cancel)

        before = len(self._session.get_output())
        self._session.write(PASTE)
        if not self._wait_for_paste(before, cancel):
            logger.debug(
                "Paste not reflected in output after %.1fs, submitting anyway",
                self.paste_timeout,
            )
        self._session.send_enter()

    def _wait_for_paste(self, before: int, cancel: threading.Event | None) -> bool:
        """Back off until the buffer grows past ``before`` and stops growing."""
        last = [before]

        def _settled() -> bool:
            size = len(self._session.get_output())
            # Settled once the buffer has grown and held still for one poll
            settled = size > before and size == last[0]
            last[0] = size
            return settled

        retrying = Retrying(
            stop=stop_after_delay(self.paste_timeout),
            wait=wait_exponential(multiplier=0.01, max=0.5),
            retry=retry_if_result(lambda ok: not ok),
            retry_error_callback=lambda _state: False,
            sleep=self._sleeper(cancel),
        )
        return retrying(_settled)

    def send_interrupt(self) -> None:
        self._session.write(INTERRUPT)

    def send_eof(self) -> None:
        self._session.write(EOF)

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait_for_ready(
        self,
        patterns: Sequence[str],
        timeout: float = DEFAULT_READY_TIMEOUT,
        cancel: threading.Event | None = None,
    ) -> str:
        """Wait until any of ``patterns`` shows up; return the one found first.

        Patterns are checked in the given order on each poll.

        Raises:
            PTYTimeout: carries the last-seen buffer as ``output``.
        """
        if not patterns:
            raise PatternNotFound("no ready patterns given")

        last_len = [-1]

        def _probe() -> str | None:
            output = self._session.get_output()
            if len(output) != last_len[0]:
                last_len[0] = len(output)
                logger.debug("Buffer update (len=%d): %r", len(output), output[-200:])
            for pattern in patterns:
                if contains_pattern(output, pattern):
                    logger.debug("Found ready pattern: %r", pattern)
                    return pattern
            return None

        return poll_until(
            _probe,
            timeout,
            interval=self.poll_interval,
            cancel=cancel,
            on_timeout=lambda: PTYTimeout(
                f"timeout waiting for ready prompt after {timeout:.1f}s",
                output=_decode(self._session.get_output()),
            ),
        )

    def capture_output(
        self,
        until: str | Sequence[str],
        timeout: float = DEFAULT_CAPTURE_TIMEOUT,
        cancel: threading.Event | None = None,
    ) -> str:
        """Clear the buffer, then collect output until a pattern appears.

        ``until`` is a single pattern or a set of alternatives; the earliest
        match wins. Returns everything strictly before it.

        Raises:
            PTYTimeout: ``output`` holds everything captured so far.
        """
        patterns = (until,) if isinstance(until, str) else tuple(until)
        self._session.clear_output()
        captured = [b""]

        def _probe() -> str | None:
            output = self._session.get_output()
            if len(output) > len(captured[0]):
                captured[0] = output
            match = first_match(output, patterns)
            if match is not None:
                return _decode(output[: match[0]])
            return None

        return poll_until(
            _probe,
            timeout,
            interval=self.poll_interval,
            cancel=cancel,
            on_timeout=lambda: PTYTimeout(
                f"timeout waiting for pattern: {' | '.join(patterns)}",
                output=_decode(captured[0]),
            ),
        )

    # ------------------------------------------------------------------
    # Output parsing
    # ------------------------------------------------------------------

    def extract_last_response(self, output: str, assistant: str) -> str:
        return extract_last_response(output, assistant)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _sleeper(cancel: threading.Event | None) -> Callable[[float], None]:
        def _sleep(seconds: float) -> None:
            Automator._sleep(seconds, cancel)

        return _sleep

    @staticmethod
    def _sleep(seconds: float, cancel: threading.Event | None) -> None:
        if cancel is None:
            time.sleep(seconds)
        elif cancel.wait(seconds):
            raise Cancelled("cancelled while waiting")
