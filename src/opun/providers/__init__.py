"""Providers — the prompt-injection backends adapters delegate to."""

from opun.providers.base import Provider
from opun.providers.pty_provider import DEFAULT_SESSION, PTYProvider

__all__ = ["DEFAULT_SESSION", "PTYProvider", "Provider"]
