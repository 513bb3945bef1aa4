"""Task, result, and subagent configuration types."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ExecutionStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self not in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING)


class SubAgentType(str, enum.Enum):
    DECLARATIVE = "declarative"  # agent definition files (claude)
    PROGRAMMATIC = "programmatic"  # in-memory scope (gemini)
    WORKFLOW = "workflow"  # tool executor prompt (qwen)
    MCP = "mcp"  # delegated over the task tool protocol


class DelegationStrategy(str, enum.Enum):
    AUTOMATIC = "automatic"
    EXPLICIT = "explicit"
    PROACTIVE = "proactive"


@dataclass
class Task:
    """A unit of work handed to a subagent.

    ``id`` is chosen by the caller and must not change once submitted.
    """

    id: str
    name: str = ""
    description: str = ""
    input: str = ""
    context: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    constraints: list[str] = field(default_factory=list)
    priority: int = 0
    deadline: datetime | None = None

    def __post_init__(self) -> None:
        # Naive deadlines are taken as UTC, same as from_dict
        self.deadline = _parse_time(self.deadline)

    @property
    def text(self) -> str:
        """Free text used for keyword matching."""
        return f"{self.name} {self.description}"

    def tags(self) -> list[str]:
        """Capability/type tags declared in the task context."""
        tags: list[str] = []
        caps = self.context.get("capabilities")
        if isinstance(caps, str):
            tags.append(caps)
        elif isinstance(caps, (list, tuple, set)):
            tags.extend(str(c) for c in caps)
        task_type = self.context.get("type")
        if isinstance(task_type, str) and task_type:
            tags.append(task_type)
        return tags

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "input": self.input,
            "context": dict(self.context),
            "variables": dict(self.variables),
            "constraints": list(self.constraints),
            "priority": self.priority,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            input=data.get("input") or "",
            context=dict(data.get("context") or {}),
            variables=dict(data.get("variables") or {}),
            constraints=list(data.get("constraints") or []),
            priority=int(data.get("priority") or 0),
            deadline=_parse_time(data.get("deadline")),
        )


class SubAgentConfig(BaseModel):
    """Declared configuration of one subagent.

    ``timeout`` is in seconds. ``settings`` holds assistant-specific knobs
    (temperature, max_tokens, max_iterations, ...).
    """

    name: str = ""
    type: SubAgentType = SubAgentType.DECLARATIVE
    description: str = ""
    provider: str = ""
    model: str = ""

    strategy: DelegationStrategy = DelegationStrategy.AUTOMATIC
    context: list[str] = Field(default_factory=list, description="Context match patterns")
    capabilities: list[str] = Field(default_factory=list)
    priority: int = 0

    max_retries: int = Field(default=0, ge=0)
    timeout: float = Field(default=300.0, gt=0)
    parallel: bool = False
    interactive: bool = False

    settings: dict[str, Any] = Field(default_factory=dict)
    system_prompt: str = ""
    tools: list[str] = Field(default_factory=list)
    mcp_servers: list[str] = Field(default_factory=list)
    output_format: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


@dataclass
class Artifact:
    """A file, url or blob produced by a subagent."""

    name: str
    content: bytes = b""
    content_type: str = "text/plain"
    type: str = "data"  # "file", "url", "data"
    path: str = ""
    size: int | None = None
    created: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.size is None:
            self.size = len(self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "path": self.path,
            "content_type": self.content_type,
            "size": self.size,
            "created": self.created.isoformat(),
        }


@dataclass
class SubAgentResult:
    """Outcome of one task on one subagent; ``task_id`` matches the task."""

    task_id: str
    agent_name: str = ""
    status: ExecutionStatus = ExecutionStatus.PENDING
    output: str = ""
    error: str | None = None
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    duration: float = 0.0  # seconds
    metadata: dict[str, Any] = field(default_factory=dict)
    artifacts: list[Artifact] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is ExecutionStatus.COMPLETED

    def finish(self, status: ExecutionStatus, error: str | None = None) -> SubAgentResult:
        """Stamp the end time and terminal status."""
        self.status = status
        if error is not None:
            self.error = error
        self.end_time = utcnow()
        self.duration = (self.end_time - self.start_time).total_seconds()
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "agent_name": self.agent_name,
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "metadata": self.metadata,
            "artifacts": [a.to_dict() for a in self.artifacts],
        }
