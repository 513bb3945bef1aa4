"""PTY session — one interactive assistant process on a pseudo-terminal."""

from __future__ import annotations

import enum
import fcntl
import logging
import os
import pty
import select
import signal
import struct
import subprocess
import termios
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from opun.errors import Cancelled, PTYCreationFailed, PTYDisconnected, PTYTimeout
from opun.pty.buffer import OutputBuffer, index_of_pattern

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLL_INTERVAL = 0.1
READ_CHUNK = 4096


class PTYStatus(enum.Enum):
    """Lifecycle states for a PTY session."""

    CREATED = "created"
    RUNNING = "running"
    EXITED = "exited"  # Process exited on its own
    CLOSING = "closing"  # close() in progress
    CLOSED = "closed"


def poll_until(
    probe: Callable[[], T | None],
    timeout: float,
    interval: float = POLL_INTERVAL,
    cancel: threading.Event | None = None,
    on_timeout: Callable[[], Exception] | None = None,
) -> T:
    """Call ``probe`` every ``interval`` seconds until it returns non-None.

    Raises ``Cancelled`` within one interval of ``cancel`` being set, and
    the exception built by ``on_timeout`` (``PTYTimeout`` by default) once
    ``timeout`` has elapsed. The last probe happens at the deadline, so the
    wait never overruns by more than one interval.
    """
    deadline = time.monotonic() + timeout
    while True:
        result = probe()
        if result is not None:
            return result
        if cancel is not None and cancel.is_set():
            raise Cancelled("wait cancelled")
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            if on_timeout is not None:
                raise on_timeout()
            raise PTYTimeout(f"timed out after {timeout:.1f}s")
        delay = min(interval, remaining)
        if cancel is not None:
            if cancel.wait(delay):
                raise Cancelled("wait cancelled")
        else:
            time.sleep(delay)


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


@dataclass
class PTYSession:
    """A managed pseudo-terminal session.

    Wraps an interactive assistant process with:
    - A fixed terminal geometry (rows x cols)
    - Process group isolation (start_new_session) so close() can take
      down the whole tree
    - One reader thread draining the PTY into an append-only buffer
    - An optional observer called with every chunk read

    Uses subprocess.Popen (not os.fork) so it is safe to start from any
    thread.
    """

    command: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    provider: str = ""
    rows: int = 40
    cols: int = 120
    poll_interval: float = POLL_INTERVAL
    command_timeout: float = 30.0
    exit_grace: float = 0.5
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    # Internal state
    buffer: OutputBuffer = field(default_factory=OutputBuffer, init=False)
    _master_fd: int = field(default=-1, init=False)
    _proc: subprocess.Popen | None = field(default=None, init=False)
    _reader: threading.Thread | None = field(default=None, init=False)
    _status: PTYStatus = field(default=PTYStatus.CREATED, init=False)
    _closed: threading.Event = field(default_factory=threading.Event, init=False)
    _write_lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _on_output: Callable[[bytes], None] | None = field(default=None, init=False)

    def set_on_output(self, callback: Callable[[bytes], None] | None) -> None:
        """Set a callback invoked (from the reader thread) with each chunk."""
        self._on_output = callback

    def start(self) -> PTYSession:
        """Allocate the PTY, spawn the process, and start the reader."""
        if self._status is not PTYStatus.CREATED:
            raise PTYCreationFailed(f"PTY session {self.id} was already started")

        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise PTYCreationFailed(f"failed to allocate PTY: {e}") from e

        try:
            _set_winsize(slave_fd, self.rows, self.cols)
        except OSError as e:
            os.close(master_fd)
            os.close(slave_fd)
            raise PTYCreationFailed(f"failed to set PTY size: {e}") from e

        env = {**os.environ, **self.env}
        env.setdefault("TERM", "xterm-256color")

        try:
            self._proc = subprocess.Popen(
                [self.command, *self.args],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                env=env,
                cwd=self.cwd or None,
            )
        except OSError as e:
            os.close(master_fd)
            raise PTYCreationFailed(f"failed to start {self.command}: {e}") from e
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        self._master_fd = master_fd
        self._status = PTYStatus.RUNNING
        self._reader = threading.Thread(
            target=self._read_loop, name=f"pty-reader-{self.id}", daemon=True
        )
        self._reader.start()

        logger.info(
            "PTY session %s started: pid=%d cmd=%s",
            self.id,
            self._proc.pid,
            " ".join([self.command, *self.args]),
        )
        return self

    def _read_loop(self) -> None:
        """Continuously drain the PTY master into the buffer."""
        fd = self._master_fd
        try:
            while not self._closed.is_set():
                try:
                    ready, _, _ = select.select([fd], [], [], self.poll_interval)
                except (OSError, ValueError):
                    break
                if not ready:
                    continue
                try:
                    data = os.read(fd, READ_CHUNK)
                except OSError:
                    # EIO once the child side of the PTY is gone
                    break
                if not data:
                    break

                self.buffer.append(data)
                callback = self._on_output
                if callback is not None:
                    try:
                        callback(data)
                    except Exception:
                        logger.exception("Error in on_output callback for %s", self.id)
        finally:
            if self._status is PTYStatus.RUNNING:
                self._status = PTYStatus.EXITED
                logger.info(
                    "PTY session %s exited (code=%s)", self.id, self.exit_code
                )

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def write(self, data: bytes | str) -> None:
        """Write raw bytes to the PTY."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._write_lock:
            if self._closed.is_set() or self._master_fd < 0:
                raise PTYDisconnected(f"PTY session {self.id} is closed")
            view = memoryview(data)
            try:
                while view:
                    written = os.write(self._master_fd, view)
                    view = view[written:]
            except OSError as e:
                raise PTYDisconnected(f"write to PTY session {self.id} failed: {e}") from e

    def send_keys(self, keys: str) -> None:
        self.write(keys)

    def send_enter(self) -> None:
        self.write(b"\r")

    def send_prompt(self, prompt: str) -> None:
        """Type a prompt and press enter."""
        self.send_keys(prompt)
        self.send_enter()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def get_output(self) -> bytes:
        return self.buffer.snapshot()

    def clear_output(self) -> None:
        self.buffer.clear()

    def wait_for_pattern(
        self,
        pattern: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Block until ``pattern`` appears in the buffer.

        Raises:
            PTYTimeout: pattern not seen in time (``output`` holds the buffer).
            Cancelled: ``cancel`` was set.
        """
        wait = self.command_timeout if timeout is None else timeout

        def _probe() -> bool | None:
            return True if index_of_pattern(self.buffer.snapshot(), pattern) >= 0 else None

        poll_until(
            _probe,
            wait,
            interval=self.poll_interval,
            cancel=cancel,
            on_timeout=lambda: PTYTimeout(
                f"timeout waiting for pattern: {pattern!r}", output=self.buffer.text()
            ),
        )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the PTY and reap the process. Safe to call twice.

        A non-zero exit code here is expected (assistants often exit
        non-zero when told to quit) and is only logged.
        """
        if self._status in (PTYStatus.CLOSING, PTYStatus.CLOSED):
            return
        self._status = PTYStatus.CLOSING
        self._closed.set()

        if self._reader is not None:
            self._reader.join(timeout=self.poll_interval * 5 + 1.0)

        with self._write_lock:
            if self._master_fd >= 0:
                try:
                    os.close(self._master_fd)
                except OSError:
                    pass
                self._master_fd = -1

        self._reap()
        self._status = PTYStatus.CLOSED
        logger.info("PTY session %s closed (code=%s)", self.id, self.exit_code)

    def _reap(self) -> None:
        if self._proc is None:
            return
        try:
            self._proc.wait(timeout=self.exit_grace)
            return
        except subprocess.TimeoutExpired:
            pass

        for sig, wait in ((signal.SIGTERM, 2.0), (signal.SIGKILL, 2.0)):
            try:
                os.killpg(self._proc.pid, sig)
            except ProcessLookupError:
                logger.debug("Process group already gone: %d", self._proc.pid)
            except OSError as e:
                logger.warning("Error signalling PTY session %s: %s", self.id, e)
            try:
                self._proc.wait(timeout=wait)
                return
            except subprocess.TimeoutExpired:
                continue
        logger.warning("PTY session %s: process %d did not exit", self.id, self._proc.pid)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def exit_code(self) -> int | None:
        return self._proc.poll() if self._proc is not None else None

    @property
    def status(self) -> PTYStatus:
        return self._status

    @property
    def alive(self) -> bool:
        return self._status is PTYStatus.RUNNING and self.exit_code is None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def __enter__(self) -> PTYSession:
        if self._status is PTYStatus.CREATED:
            self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
