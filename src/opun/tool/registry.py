"""Tool registry — register and dispatch tools by name."""

from __future__ import annotations

import logging
from typing import Any

from opun.tool.base import BaseTool, ToolError, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning("Tool %s already registered, overwriting", tool.name)
        self._tools[tool.name] = tool

    def register_many(self, tools: list[BaseTool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def get_specs(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        tools = list(self._tools.values())
        if names is not None:
            tools = [t for t in tools if t.name in names]
        return [t.to_spec() for t in tools]

    def names(self) -> list[str]:
        return list(self._tools.keys())

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            return ToolError(
                output=f"Unknown tool: {name}. Available tools: {', '.join(self.names())}"
            )
        return await tool(arguments or {})

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
