"""Delegation tools — task, task_batch, task_status, list_agents."""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, Field

from opun.subagent.models import Task
from opun.tool.base import BaseTool, T, ToolOk, ToolResult

if TYPE_CHECKING:
    from opun.server.task import TaskServer


class TaskParams(BaseModel):
    task: str = Field(description="What the subagent should do.")
    name: str = Field(default="", description="Short task title (3-5 words).")
    input: str = Field(default="", description="Material the task operates on.")
    agent: str | None = Field(
        default=None,
        description="Subagent to run the task. Omit to let the router choose.",
    )
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Routing hints, e.g. capabilities, type, provider.",
    )
    constraints: list[str] = Field(default_factory=list)
    priority: int = Field(default=0)
    parallel: bool = Field(
        default=False,
        description="Return immediately and run in the background; poll with task_status.",
    )

    def to_task(self, task_id: str | None = None) -> Task:
        return Task(
            id=task_id or uuid.uuid4().hex,
            name=self.name or self.task[:40],
            description=self.task,
            input=self.input,
            context=dict(self.context),
            constraints=list(self.constraints),
            priority=self.priority,
        )


class TaskBatchParams(BaseModel):
    tasks: list[TaskParams] = Field(description="Tasks to run in parallel.", min_length=1)


class TaskStatusParams(BaseModel):
    task_id: str = Field(description="ID returned by task or task_batch.")


class ListAgentsParams(BaseModel):
    pass


class _ServerTool(BaseTool[T]):
    def __init__(self, server: TaskServer) -> None:
        self._server = server


class TaskTool(_ServerTool[TaskParams]):
    """Run one task on a subagent, in the foreground or background."""

    name: ClassVar[str] = "task"
    description: ClassVar[str] = (
        "Delegate a task to a subagent running on claude, gemini or qwen. "
        "Name an agent or let opun pick one from the task's context. "
        "Set parallel=true to get an ID back immediately."
    )
    param_model: ClassVar[type[BaseModel]] = TaskParams

    async def execute(self, params: TaskParams) -> ToolResult:
        task = params.to_task()
        record = await asyncio.to_thread(
            self._server.submit, task, params.agent, params.parallel
        )
        return ToolOk(data=record, brief=f"task {task.id}: {record['status']}")


class TaskBatchTool(_ServerTool[TaskBatchParams]):
    name: ClassVar[str] = "task_batch"
    description: ClassVar[str] = (
        "Delegate several tasks at once. They run in parallel and the call "
        "returns when all have finished."
    )
    param_model: ClassVar[type[BaseModel]] = TaskBatchParams

    async def execute(self, params: TaskBatchParams) -> ToolResult:
        batch = await asyncio.to_thread(
            self._server.submit_batch,
            [p.to_task() for p in params.tasks],
            [p.agent for p in params.tasks],
        )
        return ToolOk(data=batch, brief=f"batch {batch['batch_id']}: {len(batch['tasks'])} tasks")


class TaskStatusTool(_ServerTool[TaskStatusParams]):
    name: ClassVar[str] = "task_status"
    description: ClassVar[str] = "Check the status (and result, once finished) of a delegated task."
    param_model: ClassVar[type[BaseModel]] = TaskStatusParams

    async def execute(self, params: TaskStatusParams) -> ToolResult:
        return ToolOk(data=self._server.status(params.task_id))


class ListAgentsTool(_ServerTool[ListAgentsParams]):
    name: ClassVar[str] = "list_agents"
    description: ClassVar[str] = "List the registered subagents and what they can do."
    param_model: ClassVar[type[BaseModel]] = ListAgentsParams

    async def execute(self, params: ListAgentsParams) -> ToolResult:
        agents = self._server.list_agents()
        return ToolOk(data={"agents": agents, "count": len(agents)})
