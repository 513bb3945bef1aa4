"""Qwen Code PTY driver.

Qwen Code is a fork of the Gemini CLI, so the prompt box looks the same;
the reply is closed by the ``## TASK_COMPLETE`` line the qwen adapter asks
for.
"""

from __future__ import annotations

from opun.drivers.base import AssistantDriver
from opun.drivers.registry import register_driver


@register_driver("qwen")
class QwenDriver(AssistantDriver):
    ready_patterns = ("│ >", "Type your message", "Qwen>", "qwen>")
    response_complete_patterns = (
        "## TASK_COMPLETE",
        "│ >",
        "Type your message",
        "Qwen>",
        "qwen>",
    )
    auth_failure_patterns = ("OPENAI_API_KEY", "Invalid API key")
    exit_command = "/quit"
