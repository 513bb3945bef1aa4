"""Subagents — task model, per-assistant adapters, routing, and the manager."""

from opun.subagent.models import (
    Artifact,
    DelegationStrategy,
    ExecutionStatus,
    SubAgentConfig,
    SubAgentResult,
    SubAgentType,
    Task,
)
from opun.subagent.base import SubAgentAdapter
from opun.subagent.factory import (
    create_adapter,
    default_configs,
    register_adapter,
    subagent_type_for,
    supported_assistants,
)
from opun.subagent.claude import ClaudeAdapter, ClaudeAgentDefinition, discover_definitions
from opun.subagent.gemini import GeminiAdapter, SubAgentScope
from opun.subagent.qwen import QwenAdapter, ToolExecutor
from opun.subagent.router import SimpleRouter, TaskRouter
from opun.subagent.manager import SubAgentManager

__all__ = [
    "Artifact",
    "ClaudeAdapter",
    "ClaudeAgentDefinition",
    "DelegationStrategy",
    "ExecutionStatus",
    "GeminiAdapter",
    "QwenAdapter",
    "SimpleRouter",
    "SubAgentAdapter",
    "SubAgentConfig",
    "SubAgentManager",
    "SubAgentResult",
    "SubAgentScope",
    "SubAgentType",
    "Task",
    "TaskRouter",
    "ToolExecutor",
    "create_adapter",
    "default_configs",
    "discover_definitions",
    "register_adapter",
    "subagent_type_for",
    "supported_assistants",
]
