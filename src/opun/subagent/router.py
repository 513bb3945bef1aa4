"""Task routing — pick the best subagent for a task."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from opun.errors import AgentNotFound
from opun.subagent.models import ExecutionStatus, SubAgentResult, Task

if TYPE_CHECKING:
    from opun.subagent.base import SubAgentAdapter

# Score weights
PRIORITY_WEIGHT = 10.0
CONTEXT_WEIGHT = 20.0
CAPABILITY_WEIGHT = 30.0
SUCCESS_WEIGHT = 25.0
SPEED_CAP = 15.0
PREFERRED_PROVIDER_BONUS = 10.0
PARALLEL_BONUS = 5.0


class TaskRouter(Protocol):
    def route(self, task: Task, agents: Sequence[SubAgentAdapter]) -> SubAgentAdapter: ...

    def score(self, task: Task, agent: SubAgentAdapter) -> float: ...

    def learn(self, task: Task, agent: SubAgentAdapter, result: SubAgentResult) -> None: ...

    def get_stats(self) -> dict[str, Any]: ...


@dataclass
class _AgentStats:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    total_time: float = 0.0

    @property
    def success_rate(self) -> float:
        return self.succeeded / self.total if self.total else 0.0

    @property
    def avg_time(self) -> float:
        return self.total_time / self.total if self.total else 0.0


def _task_text(task: Task) -> str:
    parts = [task.description, task.name]
    parts += [v for v in task.context.values() if isinstance(v, str)]
    return " ".join(parts).lower()


class SimpleRouter:
    """Weighted scoring over static config and learned outcomes.

    Ties go to the agent listed first.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stats: dict[str, _AgentStats] = {}

    def route(self, task: Task, agents: Sequence[SubAgentAdapter]) -> SubAgentAdapter:
        if not agents:
            raise AgentNotFound("no agents available")
        best: SubAgentAdapter | None = None
        best_score = float("-inf")
        for agent in agents:
            if not agent.can_handle(task):
                continue
            score = self.score(task, agent)
            if score > best_score:
                best, best_score = agent, score
        if best is None:
            raise AgentNotFound(f"no capable agents found for task {task.name or task.id}")
        return best

    def score(self, task: Task, agent: SubAgentAdapter) -> float:
        if not agent.can_handle(task):
            return 0.0
        config = agent.config
        score = config.priority * PRIORITY_WEIGHT
        score += self._context_score(task, config.context) * CONTEXT_WEIGHT
        score += self._capability_score(task, agent.get_capabilities()) * CAPABILITY_WEIGHT

        with self._lock:
            stats = self._stats.get(agent.name)
            if stats is not None and stats.total:
                score += stats.success_rate * SUCCESS_WEIGHT
                if stats.avg_time > 0:
                    score += min(100.0 / stats.avg_time, SPEED_CAP)

        preferred = task.context.get("preferred_provider")
        if isinstance(preferred, str) and preferred == agent.provider:
            score += PREFERRED_PROVIDER_BONUS
        if agent.supports_parallel() and task.priority > 5:
            score += PARALLEL_BONUS
        return score

    @staticmethod
    def _context_score(task: Task, patterns: Sequence[str]) -> float:
        """Fraction of the agent's context patterns found in the task text."""
        if not patterns:
            return 0.5
        text = _task_text(task)
        hits = sum(1 for p in patterns if p.lower() in text)
        return hits / len(patterns)

    @staticmethod
    def _capability_score(task: Task, capabilities: Sequence[str]) -> float:
        """Share of the task's required capabilities the agent covers.

        Required capabilities are the task's declared tags plus any agent
        capability named in its text or constraints; 0.5 when none apply.
        """
        if not capabilities:
            return 0.5
        agent_caps = {c.lower() for c in capabilities}
        required = {t.lower() for t in task.tags()}
        text = f"{task.description} {task.name}".lower()
        constraints = [c.lower() for c in task.constraints]
        for cap in agent_caps:
            if cap in text or any(cap in c for c in constraints):
                required.add(cap)
        if not required:
            return 0.5
        return len(required & agent_caps) / len(required)

    def learn(self, task: Task, agent: SubAgentAdapter, result: SubAgentResult) -> None:
        with self._lock:
            stats = self._stats.setdefault(agent.name, _AgentStats())
            stats.total += 1
            if result.status is ExecutionStatus.COMPLETED:
                stats.succeeded += 1
            elif result.status is ExecutionStatus.FAILED:
                stats.failed += 1
            stats.total_time += result.duration

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            agents = {
                name: {
                    "total_tasks": s.total,
                    "success_tasks": s.succeeded,
                    "failed_tasks": s.failed,
                    "avg_time": s.avg_time,
                    "success_rate": s.success_rate,
                }
                for name, s in self._stats.items()
            }
        return {
            "agents": agents,
            "weights": {name: a["success_rate"] for name, a in agents.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
