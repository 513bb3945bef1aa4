"""Task delegation server — exposes the subagent manager as named tools.

Execution records are kept in memory, keyed by task id, and swept by a
background thread once they have been finished for longer than the
retention window.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Sequence

from opun.config import DelegationConfig
from opun.errors import InvalidConfig, OpunError, TaskNotFound
from opun.subagent.manager import SubAgentManager
from opun.subagent.models import ExecutionStatus, SubAgentResult, Task, utcnow
from opun.tool.builtin.task import ListAgentsTool, TaskBatchTool, TaskStatusTool, TaskTool
from opun.tool.registry import ToolRegistry
from opun.tool.truncation import truncate_output

logger = logging.getLogger(__name__)

SERVER_NAME = "opun-task"


@dataclass
class ExecutionRecord:
    id: str
    task: Task
    agent_name: str = ""
    status: ExecutionStatus = ExecutionStatus.PENDING
    result: SubAgentResult | None = None
    start_time: datetime = field(default_factory=utcnow)
    end_time: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "task_id": self.id,
            "agent": self.agent_name,
            "status": self.status.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }
        if self.result is not None:
            data["output"] = truncate_output(self.result.output, save_full=False)
            data["duration"] = self.result.duration
        if self.error:
            data["error"] = self.error
        return data


class TaskServer:
    """Front door for delegation: ``task``, ``task_batch``, ``task_status``
    and ``list_agents``.

    Tools are async; the blocking manager calls run on worker threads.
    """

    def __init__(self, manager: SubAgentManager, config: DelegationConfig | None = None) -> None:
        self.manager = manager
        self.config = config or DelegationConfig()
        self._records: dict[str, ExecutionRecord] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

        self.tools = ToolRegistry()
        self.tools.register_many(
            [TaskTool(self), TaskBatchTool(self), TaskStatusTool(self), ListAgentsTool(self)]
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self, task: Task, agent: str | None = None, asynchronous: bool = False
    ) -> dict[str, Any]:
        """Run ``task`` and return its record.

        With ``asynchronous`` the record comes back at once with status
        "running"; poll ``status`` for the result.
        """
        record = self._open(task, agent)
        if asynchronous:
            snapshot = self._snapshot(record)
            threading.Thread(
                target=self._run, args=(record,), name=f"opun-task-{record.id}", daemon=True
            ).start()
            return snapshot
        self._run(record)
        return self._snapshot(record)

    def submit_batch(
        self, tasks: Sequence[Task], agents: Sequence[str | None] | None = None
    ) -> dict[str, Any]:
        """Run all ``tasks`` in parallel; ids become ``<batch>_<index>``."""
        batch_id = uuid.uuid4().hex
        agents = list(agents) if agents is not None else [None] * len(tasks)

        records: list[ExecutionRecord] = []
        for i, (task, agent) in enumerate(zip(tasks, agents)):
            task = dataclasses.replace(task, id=f"{batch_id}_{i}")
            try:
                records.append(self._open(task, agent))
            except OpunError as e:
                records.append(self._failed(task, str(e)))

        runnable = [r for r in records if r.status is ExecutionStatus.RUNNING]
        if runnable:
            workers = max(1, min(len(runnable), self.config.max_workers))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="opun-batch") as pool:
                list(pool.map(self._run, runnable))

        return {"batch_id": batch_id, "tasks": [self._snapshot(r) for r in records]}

    def _open(self, task: Task, agent: str | None) -> ExecutionRecord:
        """Resolve the agent and file a running record."""
        adapter = self.manager.get(agent) if agent else self.manager.select(task)
        record = ExecutionRecord(
            id=task.id,
            task=task,
            agent_name=adapter.name,
            status=ExecutionStatus.RUNNING,
        )
        with self._lock:
            if task.id in self._records:
                raise InvalidConfig(f"duplicate task id: {task.id}")
            self._records[task.id] = record
        logger.info("Task %s -> agent %s", task.id, adapter.name)
        return record

    def _failed(self, task: Task, error: str) -> ExecutionRecord:
        now = utcnow()
        record = ExecutionRecord(
            id=task.id,
            task=task,
            status=ExecutionStatus.FAILED,
            start_time=now,
            end_time=now,
            error=error,
        )
        with self._lock:
            self._records.setdefault(task.id, record)
        return record

    def _run(self, record: ExecutionRecord) -> None:
        try:
            result = self.manager.execute(record.task, record.agent_name)
        except Exception as e:
            logger.warning("Task %s failed: %s", record.id, e)
            with self._lock:
                record.status = ExecutionStatus.FAILED
                record.error = str(e)
                record.end_time = utcnow()
            return
        with self._lock:
            record.result = result
            record.status = result.status
            record.error = result.error
            record.end_time = result.end_time or utcnow()

    def _snapshot(self, record: ExecutionRecord) -> dict[str, Any]:
        with self._lock:
            return record.to_dict()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, task_id: str) -> dict[str, Any]:
        """Record for ``task_id``.

        Raises:
            TaskNotFound: the id was never submitted (or has been swept).
        """
        with self._lock:
            record = self._records.get(task_id)
            if record is not None:
                return record.to_dict()
        # Tasks run directly through the manager are visible too
        try:
            status = self.manager.get_status(task_id)
        except TaskNotFound:
            raise TaskNotFound(f"task {task_id} not found") from None
        data: dict[str, Any] = {"task_id": task_id, "status": status.value}
        result = self.manager.get_results(task_id)
        if result is not None:
            data["agent"] = result.agent_name
            data["output"] = truncate_output(result.output, save_full=False)
            if result.error:
                data["error"] = result.error
        return data

    def list_agents(self) -> list[dict[str, Any]]:
        return [agent.info() for agent in self.manager.list()]

    def records(self) -> list[ExecutionRecord]:
        with self._lock:
            return list(self._records.values())

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup(self, max_age: float | None = None, now: datetime | None = None) -> int:
        """Drop records that finished more than ``max_age`` seconds ago.

        Records without an end time are still running and always kept.
        Returns the number removed.
        """
        age = self.config.retention if max_age is None else max_age
        cutoff = (now or utcnow()) - timedelta(seconds=age)
        with self._lock:
            expired = [
                rid
                for rid, r in self._records.items()
                if r.end_time is not None and r.end_time < cutoff
            ]
            for rid in expired:
                del self._records[rid]

        for rid in expired:
            try:
                self.manager.cleanup_task(rid)
            except OpunError:
                pass  # never reached the manager
        # Entries from direct manager use have no record here
        self.manager.cleanup(age, now)
        if expired:
            logger.info("Swept %d execution records", len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the background sweep thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="opun-sweeper", daemon=True)
        self._sweeper.start()

    def stop(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.config.sweep_interval):
            try:
                self.cleanup()
            except Exception:
                logger.exception("Execution record sweep failed")

    def __enter__(self) -> TaskServer:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Tool surface
    # ------------------------------------------------------------------

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        result = await self.tools.dispatch(name, arguments)
        return result.to_dict()

    def get_tools(self) -> list[dict[str, Any]]:
        return self.tools.get_specs()

    def get_configuration(self) -> dict[str, Any]:
        return {
            "name": SERVER_NAME,
            "tools": self.tools.names(),
            "agents": [a.name for a in self.manager.list()],
            "sweep_interval": self.config.sweep_interval,
            "retention": self.config.retention,
        }
