"""Claude Code PTY driver."""

from __future__ import annotations

from opun.drivers.base import AssistantDriver
from opun.drivers.registry import register_driver


@register_driver("claude")
class ClaudeDriver(AssistantDriver):
    ready_patterns = (
        "Type /help",  # welcome banner
        "shortcuts",  # "? for shortcuts"
        "> Try",  # input prompt placeholder
        "│ >",  # boxed input prompt
        "Claude>",
        "Human:",
    )
    response_complete_patterns = ("> Try", "│ >", "shortcuts", "Human:", "Claude>")
    auth_failure_patterns = (
        "Invalid API key",
        "Fix external API key",
        "Authentication",
        "unauthorized",
    )
    exit_command = "/exit"
