"""SubAgent manager — registry, delegation, and the task-state table."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Sequence

from opun.errors import AgentNotFound, InvalidConfig, SessionInvalid, TaskNotFound
from opun.subagent.base import SubAgentAdapter
from opun.subagent.factory import create_adapter
from opun.subagent.models import (
    DelegationStrategy,
    ExecutionStatus,
    SubAgentConfig,
    SubAgentResult,
    Task,
    utcnow,
)
from opun.subagent.router import SimpleRouter, TaskRouter

if TYPE_CHECKING:
    from opun.providers.base import Provider

logger = logging.getLogger(__name__)


def failed_result(task: Task, error: str, agent_name: str = "") -> SubAgentResult:
    """Terminal failed result for a task that never reached an adapter."""
    return SubAgentResult(task_id=task.id, agent_name=agent_name).finish(
        ExecutionStatus.FAILED, error
    )


@dataclass
class _TaskEntry:
    task: Task
    agent: SubAgentAdapter
    status: ExecutionStatus = ExecutionStatus.PENDING
    result: SubAgentResult | None = None
    started: datetime = field(default_factory=utcnow)
    cancel: threading.Event = field(default_factory=threading.Event)


class SubAgentManager:
    """Registers adapters, routes tasks to them and tracks every execution.

    The agent registry and the task table share one lock. Entries are only
    created once an agent has been chosen, so a failed lookup leaves no
    trace. A task's status never moves back out of a terminal state.
    """

    def __init__(
        self,
        router: TaskRouter | None = None,
        max_workers: int = 8,
        agents_dir: str | None = None,
        persist_descriptors: bool = False,
        retention: float | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._agents: dict[str, SubAgentAdapter] = {}
        self._tasks: dict[str, _TaskEntry] = {}
        self._router: TaskRouter = router or SimpleRouter()
        self.max_workers = max_workers
        self.agents_dir = agents_dir
        self.persist_descriptors = persist_descriptors
        # Seconds a finished entry is kept; None keeps entries until cleaned up
        self.retention = retention

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def router(self) -> TaskRouter:
        return self._router

    def set_router(self, router: TaskRouter) -> None:
        with self._lock:
            self._router = router

    def register(self, agent: SubAgentAdapter) -> None:
        """Validate and add ``agent``, replacing any agent with the same name."""
        agent.validate()
        if self.persist_descriptors:
            agent.persist_descriptor(self.agents_dir)
        with self._lock:
            replaced = agent.name in self._agents
            self._agents[agent.name] = agent
        logger.info("%s agent %s (%s)", "Replaced" if replaced else "Registered", agent.name, agent.provider)

    def register_config(
        self, config: SubAgentConfig, provider: Provider | None = None
    ) -> SubAgentAdapter:
        adapter = create_adapter(config, provider=provider)
        self.register(adapter)
        return adapter

    def unregister(self, name: str) -> None:
        with self._lock:
            agent = self._agents.pop(name, None)
        if agent is None:
            raise AgentNotFound(f"agent {name} not found")
        agent.cleanup()
        logger.info("Unregistered agent %s", name)

    def list(self) -> list[SubAgentAdapter]:
        with self._lock:
            return list(self._agents.values())

    def get(self, name: str) -> SubAgentAdapter:
        with self._lock:
            agent = self._agents.get(name)
        if agent is None:
            raise AgentNotFound(f"agent {name} not found")
        return agent

    def find(self, capabilities: Sequence[str]) -> list[SubAgentAdapter]:
        """Agents that have every capability in ``capabilities``."""
        wanted = set(capabilities)
        return [a for a in self.list() if wanted.issubset(a.get_capabilities())]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, task: Task, agent_name: str) -> SubAgentResult:
        """Run ``task`` on the named agent, skipping ``can_handle``."""
        agent = self.get(agent_name)
        return self._run(self._begin(task, agent))

    def execute_async(self, task: Task, agent_name: str) -> Future[SubAgentResult]:
        """Like ``execute`` but returns at once; lookup errors still raise here."""
        agent = self.get(agent_name)
        entry = self._begin(task, agent)
        future: Future[SubAgentResult] = Future()

        def _worker() -> None:
            future.set_running_or_notify_cancel()
            try:
                future.set_result(self._run(entry))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(target=_worker, name=f"opun-task-{task.id}", daemon=True).start()
        return future

    def delegate(self, task: Task) -> SubAgentResult:
        return self.delegate_with_strategy(task, DelegationStrategy.AUTOMATIC)

    def delegate_with_strategy(
        self,
        task: Task,
        strategy: DelegationStrategy | str,
        agents: Sequence[SubAgentAdapter] | None = None,
    ) -> SubAgentResult:
        agent = self.select(task, strategy, agents)
        return self._run(self._begin(task, agent))

    def select(
        self,
        task: Task,
        strategy: DelegationStrategy | str = DelegationStrategy.AUTOMATIC,
        agents: Sequence[SubAgentAdapter] | None = None,
    ) -> SubAgentAdapter:
        """Choose an agent for ``task`` without running it."""
        candidates = list(agents) if agents is not None else self.list()
        if not candidates:
            raise AgentNotFound("no agents available")

        strategy = DelegationStrategy(strategy)
        if strategy is DelegationStrategy.EXPLICIT:
            raise InvalidConfig("explicit delegation requires an agent name")
        if strategy is DelegationStrategy.AUTOMATIC:
            return self._router.route(task, candidates)
        for agent in candidates:
            if agent.config.strategy is DelegationStrategy.PROACTIVE and agent.can_handle(task):
                return agent
        raise AgentNotFound(f"no suitable agent found for task {task.name or task.id}")

    def execute_parallel(self, tasks: Sequence[Task]) -> list[SubAgentResult]:
        """Delegate every task concurrently; one result per task, in order."""
        if not tasks:
            return []
        workers = max(1, min(len(tasks), self.max_workers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="opun-parallel") as pool:
            futures = [pool.submit(self._delegate_safely, task) for task in tasks]
            return [f.result() for f in futures]

    def coordinate_across_providers(self, tasks: Sequence[Task]) -> list[SubAgentResult]:
        """Run each provider's tasks on their own worker, sequentially within it.

        Tasks are grouped by ``context["provider"]`` (or
        ``context["preferred_provider"]``); untagged tasks may use any agent.
        """
        if not tasks:
            return []

        groups: dict[str | None, list[int]] = {}
        for i, task in enumerate(tasks):
            tag = task.context.get("provider") or task.context.get("preferred_provider")
            groups.setdefault(tag if isinstance(tag, str) else None, []).append(i)

        results: list[SubAgentResult | None] = [None] * len(tasks)

        def _run_group(tag: str | None, indices: list[int]) -> None:
            agents = self.list()
            if tag is not None:
                agents = [a for a in agents if a.provider == tag]
            for i in indices:
                if not agents:
                    results[i] = failed_result(tasks[i], f"no agents registered for provider {tag}")
                else:
                    results[i] = self._delegate_safely(tasks[i], agents)

        workers = max(1, min(len(groups), self.max_workers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="opun-provider") as pool:
            futures = [pool.submit(_run_group, tag, idx) for tag, idx in groups.items()]
            for f in futures:
                f.result()

        return [r for r in results if r is not None]

    def _delegate_safely(
        self, task: Task, agents: Sequence[SubAgentAdapter] | None = None
    ) -> SubAgentResult:
        try:
            return self.delegate_with_strategy(task, DelegationStrategy.AUTOMATIC, agents)
        except Exception as e:
            logger.warning("Task %s failed before execution: %s", task.id, e)
            return failed_result(task, str(e))

    def _begin(self, task: Task, agent: SubAgentAdapter) -> _TaskEntry:
        with self._lock:
            if self.retention is not None:
                self._prune(utcnow() - timedelta(seconds=self.retention))
            if task.id in self._tasks:
                raise InvalidConfig(f"duplicate task id: {task.id}")
            entry = _TaskEntry(task=task, agent=agent)
            self._tasks[task.id] = entry
        return entry

    def _run(self, entry: _TaskEntry) -> SubAgentResult:
        task, agent = entry.task, entry.agent
        with self._lock:
            if entry.status.is_terminal:
                cancelled = True
            else:
                cancelled = False
                entry.status = ExecutionStatus.RUNNING

        if cancelled:
            result = SubAgentResult(task_id=task.id, agent_name=agent.name).finish(
                ExecutionStatus.CANCELLED, "cancelled before start"
            )
        else:
            try:
                result = agent.execute(task, cancel=entry.cancel)
            except Exception as e:
                logger.exception("Agent %s raised on task %s", agent.name, task.id)
                result = failed_result(task, str(e), agent.name)

        with self._lock:
            entry.result = result
            if not entry.status.is_terminal:
                entry.status = result.status
            router = self._router
        router.learn(task, agent, result)
        return result

    # ------------------------------------------------------------------
    # Monitoring
    # ------------------------------------------------------------------

    def _entry(self, task_id: str) -> _TaskEntry:
        entry = self._tasks.get(task_id)
        if entry is None:
            raise TaskNotFound(f"task {task_id} not found")
        return entry

    def get_status(self, task_id: str) -> ExecutionStatus:
        with self._lock:
            return self._entry(task_id).status

    def get_results(self, task_id: str) -> SubAgentResult | None:
        with self._lock:
            return self._entry(task_id).result

    def list_active_tasks(self) -> list[str]:
        with self._lock:
            return [tid for tid, e in self._tasks.items() if not e.status.is_terminal]

    def cancel_task(self, task_id: str) -> bool:
        """Signal cancellation. Returns False if the task already finished."""
        with self._lock:
            entry = self._entry(task_id)
            if entry.status.is_terminal:
                return False
            entry.status = ExecutionStatus.CANCELLED
            entry.cancel.set()
        logger.info("Cancelled task %s", task_id)
        return True

    def cleanup_task(self, task_id: str) -> None:
        """Forget a finished task."""
        with self._lock:
            entry = self._entry(task_id)
            if not entry.status.is_terminal:
                raise SessionInvalid(f"cannot clean up running task {task_id}")
            del self._tasks[task_id]

    def cleanup(self, max_age: float | None = None, now: datetime | None = None) -> int:
        """Forget tasks that finished more than ``max_age`` seconds ago.

        Defaults to ``retention``; with neither set nothing is removed.
        Returns the number of entries dropped.
        """
        age = self.retention if max_age is None else max_age
        if age is None:
            return 0
        with self._lock:
            removed = self._prune((now or utcnow()) - timedelta(seconds=age))
        if removed:
            logger.info("Swept %d finished tasks", removed)
        return removed

    def _prune(self, cutoff: datetime) -> int:
        # Caller holds self._lock
        expired = [
            tid
            for tid, e in self._tasks.items()
            if e.status.is_terminal
            and e.result is not None
            and e.result.end_time is not None
            and e.result.end_time < cutoff
        ]
        for tid in expired:
            del self._tasks[tid]
        return len(expired)
