"""Claude adapter — declarative agents driven through Claude's Task tool.

Claude Code picks up agent definitions from markdown files with YAML
front matter under ``~/.claude/agents``:

    ---
    name: researcher
    description: Research and documentation agent
    capabilities: [research, writing]
    context: [research, documentation]
    instructions: |
      You are researcher, ...
    ---

    # researcher
    ...

The adapter builds that definition in memory; writing it out is the
separate ``persist_descriptor`` step.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from opun.errors import InvalidConfig
from opun.subagent.base import SubAgentAdapter
from opun.subagent.factory import register_adapter
from opun.subagent.models import SubAgentConfig, SubAgentType, Task

logger = logging.getLogger(__name__)

DEFAULT_AGENTS_DIR = "~/.claude/agents"

_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)", re.DOTALL)


def _parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split markdown into (front matter dict, body)."""
    match = _FRONTMATTER.match(content)
    if not match:
        return {}, content
    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise InvalidConfig(f"invalid agent front matter: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfig("agent front matter must be a mapping")
    return data, match.group(2)


@dataclass
class ClaudeAgentDefinition:
    name: str
    description: str = ""
    capabilities: list[str] = field(default_factory=list)
    context: list[str] = field(default_factory=list)
    instructions: str = ""
    tools: list[str] = field(default_factory=list)
    mcp_servers: list[str] = field(default_factory=list)

    def to_markdown(self) -> str:
        front: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "capabilities": self.capabilities,
            "context": self.context,
            "instructions": self.instructions,
        }
        if self.tools:
            front["tools"] = self.tools
        if self.mcp_servers:
            front["mcp_servers"] = self.mcp_servers
        header = yaml.safe_dump(front, sort_keys=False, allow_unicode=True)
        return (
            f"---\n{header}---\n\n# {self.name}\n\n{self.description}\n\n"
            f"## Instructions\n\n{self.instructions}\n"
        )

    @classmethod
    def from_markdown(cls, content: str) -> ClaudeAgentDefinition:
        data, body = _parse_frontmatter(content)
        name = data.get("name")
        if not name:
            raise InvalidConfig("agent definition has no name")
        instructions = data.get("instructions") or body.strip()
        return cls(
            name=str(name),
            description=str(data.get("description") or ""),
            capabilities=list(data.get("capabilities") or []),
            context=list(data.get("context") or []),
            instructions=instructions,
            tools=list(data.get("tools") or []),
            mcp_servers=list(data.get("mcp_servers") or []),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> ClaudeAgentDefinition:
        return cls.from_markdown(Path(path).read_text(encoding="utf-8"))

    def to_config(self) -> SubAgentConfig:
        return SubAgentConfig(
            name=self.name,
            type=SubAgentType.DECLARATIVE,
            provider="claude",
            description=self.description,
            capabilities=self.capabilities,
            context=self.context,
            system_prompt=self.instructions,
            tools=self.tools,
            mcp_servers=self.mcp_servers,
        )


def discover_definitions(directory: str | Path = DEFAULT_AGENTS_DIR) -> list[ClaudeAgentDefinition]:
    """Load every ``*.md`` agent definition in ``directory``; bad files are skipped."""
    root = Path(directory).expanduser()
    if not root.is_dir():
        return []
    found = []
    for path in sorted(root.glob("*.md")):
        try:
            found.append(ClaudeAgentDefinition.from_file(path))
        except (OSError, InvalidConfig) as e:
            logger.warning("Skipping agent definition %s: %s", path, e)
    return found


@register_adapter("claude", SubAgentType.DECLARATIVE)
class ClaudeAdapter(SubAgentAdapter):
    assistant = "claude"
    method = "task_tool"
    requires_description = True

    definition: ClaudeAgentDefinition
    _persisted: Path | None = None

    def initialize(self, config: SubAgentConfig) -> None:
        self.config = config
        self.definition = ClaudeAgentDefinition(
            name=config.name,
            description=config.description,
            capabilities=list(config.capabilities),
            context=list(config.context),
            instructions=config.system_prompt or self._build_instructions(config),
            tools=list(config.tools),
            mcp_servers=list(config.mcp_servers),
        )

    @staticmethod
    def _build_instructions(config: SubAgentConfig) -> str:
        lines = [
            f"You are {config.name}, a specialized agent with the following capabilities:",
            "",
        ]
        lines.extend(f"- {cap}" for cap in config.capabilities)
        if config.context:
            lines += ["", "## Context Patterns", ""]
            lines.extend(f"- {pattern}" for pattern in config.context)
        if config.tools:
            lines += ["", "## Available Tools", ""]
            lines.extend(f"- {tool}" for tool in config.tools)
        return "\n".join(lines)

    def persist_descriptor(self, directory: str | None = None) -> str:
        root = Path(directory or DEFAULT_AGENTS_DIR).expanduser()
        root.mkdir(parents=True, exist_ok=True)
        path = root / f"{self.config.name}.md"
        path.write_text(self.definition.to_markdown(), encoding="utf-8")
        self._persisted = path
        logger.info("Wrote Claude agent definition %s", path)
        return str(path)

    def cleanup(self) -> None:
        path = self._persisted
        if path is None:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        self._persisted = None

    def can_handle(self, task: Task) -> bool:
        if super().can_handle(task):
            return True
        haystack = [task.name.lower(), task.description.lower()]
        haystack += [v.lower() for v in task.context.values() if isinstance(v, str)]
        return any(
            pattern.lower() in text
            for pattern in self.config.context
            if pattern
            for text in haystack
        )

    def supports_parallel(self) -> bool:
        return self.config.parallel

    def build_prompt(self, task: Task) -> str:
        parts = [
            f"Using the Task tool, delegate the following to agent '{self.config.name}':",
            "",
            f"Task: {task.name}",
            f"Description: {task.description}",
        ]
        if task.input:
            parts += ["", "Input:", task.input]
        if task.constraints:
            parts += ["", "Constraints:"]
            parts.extend(f"- {c}" for c in task.constraints)
        return "\n".join(parts) + "\n"

    def adapt_task(self, task: Task) -> dict[str, Any]:
        return {
            "task_id": task.id,
            "task": task.description,
            "agent": self.config.name,
            "context": dict(task.context),
            "constraints": list(task.constraints),
        }
