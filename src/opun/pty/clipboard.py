"""Clipboard access used to paste prompts into assistants."""

from __future__ import annotations

import logging
import platform
import shutil
import subprocess
from typing import Protocol, runtime_checkable

from opun.errors import ClipboardFailed

logger = logging.getLogger(__name__)


@runtime_checkable
class Clipboard(Protocol):
    """Anything that can put text on the clipboard."""

    def copy(self, text: str) -> None: ...


def _copy_command() -> list[str]:
    system = platform.system()
    if system == "Darwin":
        return ["pbcopy"]
    if system == "Windows":
        return ["clip"]
    # Linux / BSD: prefer Wayland, then X11 tools
    if shutil.which("wl-copy"):
        return ["wl-copy"]
    if shutil.which("xclip"):
        return ["xclip", "-selection", "clipboard"]
    if shutil.which("xsel"):
        return ["xsel", "--clipboard", "--input"]
    raise ClipboardFailed("no clipboard utility found (wl-copy, xclip or xsel)")


class SystemClipboard:
    """Clipboard backed by the platform's command-line copy tool."""

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def copy(self, text: str) -> None:
        cmd = _copy_command()
        try:
            subprocess.run(
                cmd,
                input=text.encode("utf-8"),
                check=True,
                timeout=self._timeout,
                capture_output=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ClipboardFailed(f"{cmd[0]} failed: {e}") from e
        logger.debug("Copied %d chars to clipboard via %s", len(text), cmd[0])
