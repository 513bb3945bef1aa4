"""PTY-backed provider: one assistant driver per session id."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from opun.config import PTYConfig
from opun.drivers.base import AssistantDriver
from opun.drivers.registry import create_driver
from opun.errors import OpunError, PTYDisconnected, SessionExists, SessionNotFound

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


class PTYProvider:
    """Provider that talks to an assistant through PTY drivers.

    Sessions are tracked by id and can be prepared ahead of time; the
    first ``inject_prompt`` without a prepared session lazily starts the
    default one. Call ``close()`` on shutdown so no assistant process is
    left behind.
    """

    def __init__(
        self,
        assistant: str,
        working_dir: str | None = None,
        config: PTYConfig | None = None,
        driver_factory: Callable[[str], AssistantDriver] | None = None,
    ) -> None:
        self.assistant = assistant
        self.working_dir = working_dir
        self.config = config or PTYConfig()
        self._driver_factory = driver_factory or self._default_factory
        self._drivers: dict[str, AssistantDriver] = {}
        self._lock = threading.Lock()
        self._default_lock = threading.Lock()

    def _default_factory(self, assistant: str) -> AssistantDriver:
        return create_driver(assistant, config=self.config)

    @property
    def name(self) -> str:
        return self.assistant

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def prepare_session(self, session_id: str, cancel: threading.Event | None = None) -> None:
        """Start a driver under ``session_id``.

        Raises:
            SessionExists: the id is already in use.
        """
        with self._lock:
            if session_id in self._drivers:
                raise SessionExists(f"session already exists: {session_id}")

        driver = self._driver_factory(self.assistant)
        driver.start_session(self.working_dir, cancel=cancel)

        with self._lock:
            if session_id not in self._drivers:
                self._drivers[session_id] = driver
                logger.info("Prepared %s session %s", self.assistant, session_id)
                return
        # Lost a race for the same id
        driver.stop_session()
        raise SessionExists(f"session already exists: {session_id}")

    def cleanup_session(self, session_id: str) -> None:
        with self._lock:
            driver = self._drivers.pop(session_id, None)
        if driver is None:
            raise SessionNotFound(f"session not found: {session_id}")
        driver.stop_session()
        logger.info("Cleaned up %s session %s", self.assistant, session_id)

    def get_driver(self, session_id: str = DEFAULT_SESSION) -> AssistantDriver:
        with self._lock:
            driver = self._drivers.get(session_id)
        if driver is None:
            raise SessionNotFound(f"session not found: {session_id}")
        return driver

    def list_sessions(self) -> list[dict[str, Any]]:
        with self._lock:
            items = list(self._drivers.items())
        return [{"id": sid, **driver.describe()} for sid, driver in items]

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def inject_prompt(
        self,
        prompt: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        session_id: str = DEFAULT_SESSION,
    ) -> str:
        if session_id == DEFAULT_SESSION:
            with self._default_lock:
                with self._lock:
                    current = self._drivers.get(DEFAULT_SESSION)
                if current is not None and not current.alive:
                    self._drop(DEFAULT_SESSION, current)
                    current = None
                if current is None:
                    self.prepare_session(DEFAULT_SESSION, cancel=cancel)
        driver = self.get_driver(session_id)
        try:
            return driver.send_prompt(prompt, timeout=timeout, cancel=cancel)
        except PTYDisconnected:
            self._drop(session_id, driver)
            raise

    def _drop(self, session_id: str, driver: AssistantDriver) -> None:
        """Forget a driver whose process died; the next call starts fresh."""
        with self._lock:
            if self._drivers.get(session_id) is driver:
                del self._drivers[session_id]
        driver.stop_session()
        logger.info("Dropped dead %s session %s", self.assistant, session_id)

    def close(self) -> None:
        """Stop every session; failures are logged, not raised."""
        with self._lock:
            session_ids = list(self._drivers)
        for session_id in session_ids:
            try:
                self.cleanup_session(session_id)
            except OpunError as e:
                logger.warning("Error closing %s session %s: %s", self.assistant, session_id, e)
