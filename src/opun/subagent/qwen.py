"""Qwen adapter — code-focused subagents run as a tool-executor prompt."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from opun.subagent.base import SubAgentAdapter
from opun.subagent.factory import register_adapter
from opun.subagent.models import SubAgentConfig, SubAgentResult, SubAgentType, Task

DEFAULT_MODEL = "qwen3-coder-plus"
TASK_COMPLETE = "## TASK_COMPLETE"

CODE_KEYWORDS = ("code", "coding", "programming", "debug", "refactor", "test", "implement")

BUILTIN_CAPABILITIES = (
    "code_generation",
    "code_review",
    "debugging",
    "refactoring",
    "test_generation",
    "documentation",
)

# Checked in order; the first language with a hit wins
_LANGUAGE_HINTS: list[tuple[str, re.Pattern[str]]] = [
    ("python", re.compile(r"\bpython\b|\bdef \w+\(|^\s*import \w+$", re.MULTILINE)),
    ("typescript", re.compile(r"\btypescript\b|\binterface \w+ \{|: (string|number)\b")),
    ("javascript", re.compile(r"\bjavascript\b|\bnode\.?js\b|\bfunction \w+\(|\bconst \w+ =")),
    ("go", re.compile(r"\bgolang\b|\bfunc \w+\(|^package \w+$", re.MULTILINE)),
    ("rust", re.compile(r"\brust\b|\bfn \w+\(|\blet mut\b|\bimpl \w+")),
    ("java", re.compile(r"\bjava\b|\bpublic class\b")),
    ("c++", re.compile(r"c\+\+|\bcpp\b|std::")),
    ("c", re.compile(r"#include\s*<\w+\.h>|\bint main\(")),
]


def extract_language(task: Task) -> str:
    for source in (task.context, task.variables):
        lang = source.get("language")
        if isinstance(lang, str) and lang:
            return lang
    text = f"{task.description}\n{task.input}".lower()
    for language, pattern in _LANGUAGE_HINTS:
        if pattern.search(text):
            return language
    return "unknown"


def extract_task_type(task: Task) -> str:
    task_type = task.context.get("type")
    if isinstance(task_type, str) and task_type:
        return task_type
    desc = task.description.lower()
    if "code" in desc or "implement" in desc:
        return "code"
    for kind in ("test", "debug", "refactor"):
        if kind in desc:
            return kind
    return "general"


@dataclass
class ToolExecutor:
    name: str
    description: str = ""
    tools: list[str] = field(default_factory=list)
    model: str = DEFAULT_MODEL
    config: dict[str, Any] = field(default_factory=dict)


@register_adapter("qwen", SubAgentType.WORKFLOW)
class QwenAdapter(SubAgentAdapter):
    assistant = "qwen"
    method = "tool_executor"
    requires_description = True

    executor: ToolExecutor

    def initialize(self, config: SubAgentConfig) -> None:
        self.config = config
        self.executor = ToolExecutor(
            name=config.name,
            description=config.description,
            tools=list(config.tools),
            model=config.model or DEFAULT_MODEL,
            config=dict(config.settings),
        )

    def get_capabilities(self) -> list[str]:
        caps = list(self.config.capabilities)
        caps.extend(c for c in BUILTIN_CAPABILITIES if c not in caps)
        return caps

    def can_handle(self, task: Task) -> bool:
        if super().can_handle(task):
            return True
        task_type = extract_task_type(task).lower()
        desc = task.description.lower()
        if any(k in task_type or k in desc for k in CODE_KEYWORDS):
            return True
        constraints = [c.lower() for c in task.constraints]
        for cap in self.config.capabilities:
            cap = cap.lower()
            if cap in desc or any(cap in c for c in constraints):
                return True
        return False

    def build_prompt(self, task: Task) -> str:
        parts = [
            f"You are {self.config.name}, a specialized code assistant.",
            f"Description: {self.config.description}",
            "",
            "## Task",
            f"Name: {task.name}",
            f"Description: {task.description}",
            "",
        ]
        if task.input:
            parts += ["## Input", "```", task.input, "```", ""]
        if task.constraints:
            parts.append("## Requirements")
            parts.extend(f"- {c}" for c in task.constraints)
            parts.append("")
        parts += [
            "## Instructions",
            "1. Analyze the task carefully",
            "2. Provide a complete solution",
            "3. Include code in markdown code blocks",
            "4. Explain your approach",
            f"5. End with '{TASK_COMPLETE}' when done",
            "",
        ]
        if self.executor.tools:
            parts.append("## Available Tools")
            parts.extend(f"- {t}" for t in self.executor.tools)
            parts.append("")
        parts.append("Please complete the task now:")
        return "\n".join(parts) + "\n"

    def adapt_task(self, task: Task) -> dict[str, Any]:
        return {
            "task_id": task.id,
            "name": task.name,
            "description": task.description,
            "input": task.input,
            "type": "code_task",
            "language": extract_language(task),
            "context": dict(task.context),
            "variables": dict(task.variables),
        }

    def adapt_result(self, native: Any) -> SubAgentResult:
        result = super().adapt_result(native)
        result.metadata["model"] = self.executor.model
        return result

    def _native_output(self, native: dict[str, Any]) -> str:
        for key in ("code", "result", "output"):
            value = native.get(key)
            if isinstance(value, str):
                return value
        rest = {k: v for k, v in native.items() if k != "task_id"}
        return json.dumps(rest, default=str)
