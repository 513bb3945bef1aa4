"""Provider protocol — what adapters need from an assistant backend."""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class Provider(Protocol):
    """Narrow interface adapters talk to.

    ``inject_prompt`` blocks until the assistant's reply has been captured
    and extracted, and returns it.
    """

    @property
    def name(self) -> str: ...

    def inject_prompt(
        self,
        prompt: str,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> str: ...

    def prepare_session(self, session_id: str) -> None: ...

    def cleanup_session(self, session_id: str) -> None: ...
