"""Gemini adapter — programmatic subagents described by a SubAgentScope."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

from opun.subagent.base import SubAgentAdapter
from opun.subagent.factory import register_adapter
from opun.subagent.models import SubAgentConfig, SubAgentType, Task

DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass
class PromptConfig:
    system_prompt: str = ""
    variables: dict[str, str] = field(default_factory=dict)
    temperature: float = 0.7
    max_tokens: int = 4096


@dataclass
class ModelConfig:
    model: str = DEFAULT_MODEL
    provider: str = "gemini"
    response_format: str = ""
    tools: list[str] = field(default_factory=list)


@dataclass
class RunConfig:
    interactive: bool = False
    terminate_on_complete: bool = True
    output_collector: str = "emitvalue"
    max_iterations: int = 3
    timeout: int = 0


@dataclass
class SubAgentScope:
    name: str
    description: str = ""
    prompt_config: PromptConfig = field(default_factory=PromptConfig)
    model_config: ModelConfig = field(default_factory=ModelConfig)
    run_config: RunConfig = field(default_factory=RunConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@register_adapter("gemini", SubAgentType.PROGRAMMATIC)
class GeminiAdapter(SubAgentAdapter):
    assistant = "gemini"
    method = "subagent_scope"

    scope: SubAgentScope

    def initialize(self, config: SubAgentConfig) -> None:
        self.config = config
        settings = config.settings
        self.scope = SubAgentScope(
            name=config.name,
            description=config.description,
            prompt_config=PromptConfig(
                system_prompt=config.system_prompt or self._build_system_prompt(config),
                temperature=float(settings.get("temperature", 0.7)),
                max_tokens=int(settings.get("max_tokens", 4096)),
            ),
            model_config=ModelConfig(
                model=config.model or DEFAULT_MODEL,
                response_format=config.output_format,
                tools=list(config.tools),
            ),
            run_config=RunConfig(
                interactive=config.interactive,
                max_iterations=int(settings.get("max_iterations", 3)),
                timeout=int(config.timeout),
            ),
        )

    @staticmethod
    def _build_system_prompt(config: SubAgentConfig) -> str:
        lines = [f"You are {config.name}, a specialized AI agent.", ""]
        if config.description:
            lines += [f"Description: {config.description}", ""]
        if config.capabilities:
            lines.append("Your capabilities include:")
            lines.extend(f"- {cap}" for cap in config.capabilities)
            lines.append("")
        lines += [
            "Instructions:",
            "1. Process the given task carefully",
            "2. Emit structured data when possible",
            "3. Complete the task and stop",
        ]
        return "\n".join(lines)

    def can_handle(self, task: Task) -> bool:
        # No declared capabilities means a generalist
        if not self.config.capabilities:
            return True
        return super().can_handle(task)

    def build_prompt(self, task: Task) -> str:
        variables = {
            **self.scope.prompt_config.variables,
            **{k: str(v) for k, v in task.variables.items()},
        }
        parts = [self.scope.prompt_config.system_prompt, "", f"## Task: {task.name}", task.description]
        if variables:
            parts += ["", "## Variables", json.dumps(variables, indent=2, sort_keys=True)]
        if task.input:
            parts += ["", "## Input", task.input]
        if task.constraints:
            parts += ["", "## Constraints"]
            parts.extend(f"- {c}" for c in task.constraints)
        return "\n".join(parts) + "\n"

    def adapt_task(self, task: Task) -> dict[str, Any]:
        # Per-task values stay in the payload; the scope is shared across tasks
        variables = {
            **self.scope.prompt_config.variables,
            **task.variables,
            "task": task.description,
            "input": task.input,
        }
        return {
            "task_id": task.id,
            "name": task.name,
            "description": task.description,
            "input": task.input,
            "variables": variables,
            "context": dict(task.context),
        }

    def _native_output(self, native: dict[str, Any]) -> str:
        emitted = native.get("emitted_values")
        if emitted is not None:
            return json.dumps(emitted)
        output = native.get("output")
        if isinstance(output, str):
            return output
        rest = {k: v for k, v in native.items() if k != "task_id"}
        return json.dumps(rest, default=str)
