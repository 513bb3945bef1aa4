"""Per-assistant PTY drivers, looked up by assistant identifier."""

from opun.drivers.base import AssistantDriver, DriverState
from opun.drivers.claude import ClaudeDriver
from opun.drivers.gemini import GeminiDriver
from opun.drivers.qwen import QwenDriver
from opun.drivers.registry import create_driver, register_driver, registered_drivers
from opun.drivers.resolver import LaunchCommand, resolve_executable

__all__ = [
    "AssistantDriver",
    "ClaudeDriver",
    "DriverState",
    "GeminiDriver",
    "LaunchCommand",
    "QwenDriver",
    "create_driver",
    "register_driver",
    "registered_drivers",
    "resolve_executable",
]
