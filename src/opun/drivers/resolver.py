"""Launch command resolution for the supported assistants."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field

from opun.errors import ProviderNotFound, ProviderNotSupported

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchCommand:
    command: str
    args: list[str] = field(default_factory=list)

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


# assistant -> (primary executable, npx package used when it is missing)
EXECUTABLES: dict[str, tuple[str, str]] = {
    "claude": ("claude", "@anthropic-ai/claude-code"),
    "gemini": ("gemini", "@google/gemini-cli"),
    "qwen": ("qwen", "@qwen-code/qwen-code"),
}


def resolve_executable(assistant: str) -> LaunchCommand:
    """Find how to launch ``assistant``: its own binary, else ``npx <pkg>``.

    Raises:
        ProviderNotSupported: unknown assistant identifier.
        ProviderNotFound: neither the binary nor npx is on PATH.
    """
    try:
        primary, package = EXECUTABLES[assistant]
    except KeyError:
        raise ProviderNotSupported(f"unsupported assistant: {assistant}") from None

    path = shutil.which(primary)
    if path:
        return LaunchCommand(path)

    npx = shutil.which("npx")
    if npx:
        logger.info("%s not on PATH, falling back to npx %s", primary, package)
        return LaunchCommand(npx, [package])

    raise ProviderNotFound(f"{primary} not found in PATH (and npx is unavailable)")
