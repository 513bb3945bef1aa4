"""Gemini CLI PTY driver."""

from __future__ import annotations

from opun.drivers.base import AssistantDriver
from opun.drivers.registry import register_driver


@register_driver("gemini")
class GeminiDriver(AssistantDriver):
    ready_patterns = ("│ >", "Type your message", "Gemini>", "gemini>")
    response_complete_patterns = ("│ >", "Type your message", "Gemini>", "gemini>")
    auth_failure_patterns = ("GEMINI_API_KEY", "API key not valid")
    exit_command = "/quit"
