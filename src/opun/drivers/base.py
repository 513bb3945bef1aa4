"""Assistant PTY driver — one interactive conversation with one assistant.

A driver owns a single PTY session and walks it through

    UNSTARTED -> READY -> BUSY -> READY ... -> STOPPED

Subclasses only declare pattern sets; everything else is shared.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Any, Callable, ClassVar

from opun.config import PTYConfig
from opun.drivers.resolver import LaunchCommand, resolve_executable
from opun.errors import AutomationFailed, Cancelled, PTYDisconnected, PTYTimeout, SessionInvalid
from opun.pty.automator import Automator
from opun.pty.buffer import contains_pattern
from opun.pty.clipboard import Clipboard
from opun.pty.extract import extract_last_response
from opun.pty.session import PTYSession, poll_until

logger = logging.getLogger(__name__)


class DriverState(enum.Enum):
    UNSTARTED = "unstarted"
    READY = "ready"
    BUSY = "busy"
    STOPPED = "stopped"


class AssistantDriver:
    """Base driver. Register subclasses with ``@register_driver``."""

    assistant: ClassVar[str] = ""
    # At least one entry must only appear once the assistant accepts input
    ready_patterns: ClassVar[tuple[str, ...]] = ()
    response_complete_patterns: ClassVar[tuple[str, ...]] = ()
    auth_failure_patterns: ClassVar[tuple[str, ...]] = ()
    exit_command: ClassVar[str] = "/exit"

    def __init__(
        self,
        config: PTYConfig | None = None,
        clipboard: Clipboard | None = None,
        session_factory: Callable[..., PTYSession] = PTYSession,
        resolver: Callable[[str], LaunchCommand] = resolve_executable,
    ) -> None:
        self.config = config or PTYConfig()
        self._clipboard = clipboard
        self._session_factory = session_factory
        self._resolver = resolver
        self._state = DriverState.UNSTARTED
        self._lock = threading.Lock()
        self.session: PTYSession | None = None
        self.automator: Automator | None = None

    @property
    def state(self) -> DriverState:
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self, working_dir: str | None = None, cancel: threading.Event | None = None
    ) -> None:
        """Launch the assistant and wait until it accepts input.

        Raises:
            SessionInvalid: the driver was already started.
            ProviderNotFound: no executable and no npx fallback.
            AutomationFailed: an authentication failure showed up on startup.
            PTYTimeout: no ready pattern within ``ready_timeout``.
        """
        with self._lock:
            if self._state is not DriverState.UNSTARTED:
                raise SessionInvalid(
                    f"{self.assistant} driver cannot start from state {self._state.value}"
                )

        launch = self._resolver(self.assistant)
        cfg = self.config
        session = self._session_factory(
            command=launch.command,
            args=list(launch.args),
            cwd=working_dir,
            provider=self.assistant,
            rows=cfg.rows,
            cols=cfg.cols,
            poll_interval=cfg.poll_interval,
            command_timeout=cfg.command_timeout,
            exit_grace=cfg.exit_grace,
        )
        session.start()
        automator = Automator(
            session,
            clipboard=self._clipboard,
            poll_interval=cfg.poll_interval,
            clipboard_settle=cfg.clipboard_settle,
            paste_timeout=cfg.paste_timeout,
        )

        try:
            self._health_check(session, cancel)
            matched = automator.wait_for_ready(
                self.ready_patterns, timeout=cfg.ready_timeout, cancel=cancel
            )
        except PTYTimeout as e:
            session.close()
            raise PTYTimeout(
                f"{self.assistant} did not become ready: {e}", output=e.output
            ) from e
        except BaseException:
            session.close()
            raise

        with self._lock:
            self.session = session
            self.automator = automator
            self._state = DriverState.READY
        logger.info("%s ready (matched %r) in session %s", self.assistant, matched, session.id)

    def _health_check(self, session: PTYSession, cancel: threading.Event | None) -> None:
        """Scan early output for auth failures; stops early once ready."""
        window = self.config.health_check_window
        if not self.auth_failure_patterns or window <= 0:
            return

        def _probe() -> bool | None:
            output = session.get_output()
            for pattern in self.auth_failure_patterns:
                if contains_pattern(output, pattern):
                    raise AutomationFailed(
                        f"{self.assistant} authentication error ({pattern}): "
                        f"{output.decode('utf-8', errors='replace')}"
                    )
            if any(contains_pattern(output, p) for p in self.ready_patterns):
                return True
            return None

        try:
            poll_until(_probe, window, interval=self.config.poll_interval, cancel=cancel)
        except PTYTimeout:
            # Nothing alarming in the window; the ready wait takes over
            pass

    def stop_session(self) -> None:
        """Ask the assistant to exit, then close the PTY. Idempotent."""
        with self._lock:
            if self._state is DriverState.STOPPED:
                return
            session = self.session
            self._state = DriverState.STOPPED

        if session is None:
            return
        try:
            if not session.closed:
                session.send_keys(self.exit_command)
                session.send_enter()
                time.sleep(self.config.exit_grace)
        except PTYDisconnected:
            logger.debug("%s session %s already gone on stop", self.assistant, session.id)
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def send_prompt(
        self,
        prompt: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        """Send one prompt and return the extracted reply.

        If no completion pattern shows up in time, whatever was captured is
        used instead.
        """
        with self._lock:
            if self._state is not DriverState.READY:
                raise SessionInvalid(
                    f"{self.assistant} driver is {self._state.value}, not ready"
                )
            self._state = DriverState.BUSY
        session, automator = self.session, self.automator
        assert session is not None and automator is not None

        try:
            if not session.alive:
                raise self._disconnected(session)
            session.clear_output()
            automator.send_prompt_with_copy(prompt, cancel=cancel)

            delay = self.config.response_start_delay
            if delay > 0:
                if cancel is None:
                    time.sleep(delay)
                elif cancel.wait(delay):
                    raise Cancelled(f"{self.assistant} prompt cancelled")

            wait = self.config.response_timeout if timeout is None else timeout
            try:
                output = automator.capture_output(
                    self.response_complete_patterns, timeout=wait, cancel=cancel
                )
            except PTYTimeout as e:
                if not session.alive:
                    raise self._disconnected(session, e.output) from e
                logger.warning(
                    "%s reply not complete after %.1fs, using buffered output",
                    self.assistant,
                    wait,
                )
                output = e.output or session.get_output().decode("utf-8", errors="replace")
            return self.extract_response(output)
        finally:
            with self._lock:
                if self._state is DriverState.BUSY:
                    self._state = DriverState.READY

    def _disconnected(self, session: PTYSession, output: str = "") -> PTYDisconnected:
        """Mark the driver stopped after its process died mid-conversation."""
        with self._lock:
            self._state = DriverState.STOPPED
        if not output:
            output = session.get_output().decode("utf-8", errors="replace")
        logger.warning(
            "%s process exited (code=%s) during a prompt", self.assistant, session.exit_code
        )
        session.close()
        return PTYDisconnected(f"{self.assistant} process is no longer running", output=output)

    @property
    def alive(self) -> bool:
        session = self.session
        return (
            session is not None
            and self._state is not DriverState.STOPPED
            and session.alive
        )

    def extract_response(self, output: str) -> str:
        return extract_last_response(output, self.assistant)

    def is_ready(self) -> bool:
        session = self.session
        if session is None or self._state is DriverState.STOPPED:
            return False
        output = session.get_output()
        return any(contains_pattern(output, p) for p in self.ready_patterns)

    def describe(self) -> dict[str, Any]:
        session = self.session
        return {
            "assistant": self.assistant,
            "state": self._state.value,
            "session_id": session.id if session is not None else None,
            "pid": session.pid if session is not None else None,
        }
