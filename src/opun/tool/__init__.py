"""Tool system — base classes, registry, and output truncation."""

from opun.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from opun.tool.registry import ToolRegistry
from opun.tool.truncation import truncate_output

__all__ = [
    "BaseTool",
    "ToolError",
    "ToolOk",
    "ToolRegistry",
    "ToolResult",
    "truncate_output",
]
