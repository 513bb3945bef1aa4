"""Built-in delegation tools."""

from opun.tool.builtin.task import (
    ListAgentsTool,
    TaskBatchTool,
    TaskStatusTool,
    TaskTool,
)

__all__ = [
    "ListAgentsTool",
    "TaskBatchTool",
    "TaskStatusTool",
    "TaskTool",
]
