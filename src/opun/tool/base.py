"""Base tool classes with Pydantic parameter validation."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from opun.errors import OpunError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class ToolResult:
    """Base result from a tool call.

    ``data`` is the structured map returned to the caller; ``output`` is its
    text rendering.
    """

    data: dict[str, Any] = field(default_factory=dict)
    output: str = ""
    brief: str = ""  # One-line summary for logs
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        if self.is_error:
            return {"error": self.output, **self.data}
        return dict(self.data)


@dataclass
class ToolOk(ToolResult):
    is_error: bool = False


@dataclass
class ToolError(ToolResult):
    is_error: bool = True


class BaseTool(ABC, Generic[T]):
    """Base class for the delegation tools.

    Each tool declares its parameters as a Pydantic model:

        class MyParams(BaseModel):
            task_id: str

        class MyTool(BaseTool[MyParams]):
            name = "my_tool"
            description = "Does something useful"
            param_model = MyParams

            async def execute(self, params: MyParams) -> ToolResult:
                return ToolOk(data={"ok": True})
    """

    name: ClassVar[str]
    description: ClassVar[str]
    param_model: ClassVar[type[BaseModel]]

    async def __call__(self, arguments: dict[str, Any]) -> ToolResult:
        """Validate arguments and execute; failures come back as ToolError."""
        try:
            params = self.param_model.model_validate(arguments)
        except ValidationError as e:
            return ToolError(output=f"Invalid parameters: {e}")

        try:
            result = await self.execute(params)  # type: ignore[arg-type]
        except OpunError as e:
            logger.info("Tool %s failed: %s", self.name, e)
            return ToolError(output=str(e))
        except Exception as e:
            logger.error("Tool %s execution error: %s", self.name, e, exc_info=True)
            return ToolError(output=f"Error executing {self.name}: {e}")

        if not result.output:
            result.output = json.dumps(result.data, default=str)
        return result

    @abstractmethod
    async def execute(self, params: T) -> ToolResult:
        """Execute the tool with validated parameters."""
        ...

    def to_spec(self) -> dict[str, Any]:
        """Tool description with a JSON schema for its input."""
        schema = self.param_model.model_json_schema()
        schema.pop("title", None)
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": schema,
        }
