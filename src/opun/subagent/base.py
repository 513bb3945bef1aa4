"""SubAgent adapter base — Task in, provider round trip, SubAgentResult out."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, ClassVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from opun.errors import Cancelled, InvalidConfig, PTYDisconnected, PTYTimeout
from opun.subagent.models import (
    ExecutionStatus,
    SubAgentConfig,
    SubAgentResult,
    Task,
    utcnow,
)

if TYPE_CHECKING:
    from opun.providers.base import Provider

logger = logging.getLogger(__name__)

_PROGRESS = {
    ExecutionStatus.PENDING: (0.0, "Pending"),
    ExecutionStatus.RUNNING: (50.0, "Running"),
    ExecutionStatus.COMPLETED: (100.0, "Completed"),
    ExecutionStatus.FAILED: (0.0, "Failed"),
}


class SubAgentAdapter(ABC):
    """Common behaviour for every assistant's subagent adapter.

    Subclasses build the assistant-native descriptor in ``initialize``,
    turn a task into a prompt in ``build_prompt``, and map both ways in
    ``adapt_task`` / ``adapt_result``. ``execute`` is shared: it runs the
    prompt through the bound provider, blocking until the reply has been
    captured and extracted.

    Calls to ``execute`` on one adapter are serialized, since the adapter
    owns a single PTY conversation.
    """

    assistant: ClassVar[str] = ""
    method: ClassVar[str] = ""
    requires_description: ClassVar[bool] = False

    # Between attempts; tests swap this for wait_none()
    retry_wait: Any = wait_exponential(multiplier=1, min=1, max=30)

    def __init__(self, config: SubAgentConfig, provider: Provider | None = None) -> None:
        self.config = config
        self._provider = provider
        self._status = ExecutionStatus.PENDING
        self._state_lock = threading.Lock()
        self._exec_lock = threading.Lock()
        self._active_cancel: threading.Event | None = None
        self.initialize(config)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def provider(self) -> str:
        return self.assistant

    @property
    def status(self) -> ExecutionStatus:
        return self._status

    def _set_status(self, status: ExecutionStatus) -> None:
        with self._state_lock:
            self._status = status

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def initialize(self, config: SubAgentConfig) -> None:
        """Build the in-memory descriptor. Must not touch the filesystem."""

    def validate(self) -> None:
        if not self.config.name:
            raise InvalidConfig("agent name is required")
        if self.requires_description and not self.config.description:
            raise InvalidConfig(f"agent {self.config.name}: description is required")

    def persist_descriptor(self, directory: str | None = None) -> str | None:
        """Write the descriptor to disk, for assistants that read one."""
        return None

    def cleanup(self) -> None:
        """Undo ``persist_descriptor``."""

    def bind_provider(self, provider: Provider) -> None:
        self._provider = provider

    def get_provider_config(self) -> dict[str, Any]:
        return dict(self.config.settings)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    def can_handle(self, task: Task) -> bool:
        caps = set(self.get_capabilities())
        return any(tag in caps for tag in task.tags())

    def get_capabilities(self) -> list[str]:
        return list(self.config.capabilities)

    def supports_parallel(self) -> bool:
        return not self.config.interactive

    def supports_interactive(self) -> bool:
        return self.config.interactive

    def info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.config.description,
            "provider": self.provider,
            "capabilities": self.get_capabilities(),
            "strategy": self.config.strategy.value,
            "interactive": self.supports_interactive(),
        }

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------

    @abstractmethod
    def build_prompt(self, task: Task) -> str:
        """The text actually pasted into the assistant."""

    @abstractmethod
    def adapt_task(self, task: Task) -> dict[str, Any]:
        ...

    def adapt_result(self, native: Any) -> SubAgentResult:
        """Map a native reply (text or dict carrying ``task_id``) to a result."""
        task_id = ""
        if isinstance(native, dict):
            task_id = str(native.get("task_id", ""))
            output = self._native_output(native)
        else:
            output = str(native)
        return SubAgentResult(
            task_id=task_id,
            agent_name=self.name,
            status=ExecutionStatus.COMPLETED,
            output=output,
            metadata={"provider": self.assistant, "method": self.method},
        )

    def _native_output(self, native: dict[str, Any]) -> str:
        value = native.get("output", "")
        return value if isinstance(value, str) else str(value)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, task: Task, cancel: threading.Event | None = None) -> SubAgentResult:
        """Run ``task`` to a terminal result. Never raises for task failures."""
        with self._exec_lock:
            cancel = cancel or threading.Event()
            self._active_cancel = cancel
            try:
                return self._execute(task, cancel)
            finally:
                self._active_cancel = None

    def _execute(self, task: Task, cancel: threading.Event) -> SubAgentResult:
        result = SubAgentResult(
            task_id=task.id,
            agent_name=self.name,
            status=ExecutionStatus.RUNNING,
            metadata={"provider": self.assistant, "method": self.method},
        )
        self._set_status(ExecutionStatus.RUNNING)
        logger.info("Agent %s executing task %s", self.name, task.id)

        provider = self._provider
        if provider is None:
            return self._finish(result, ExecutionStatus.FAILED, "no provider bound to agent")

        prompt = self.build_prompt(task)
        attempts = 0
        retrying = Retrying(
            retry=retry_if_not_exception_type((Cancelled, PTYTimeout, InvalidConfig)),
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=self.retry_wait,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    if cancel.is_set():
                        raise Cancelled(f"task {task.id} cancelled")
                    timeout = self._remaining_time(task)
                    reply = provider.inject_prompt(prompt, timeout=timeout, cancel=cancel)
        except Cancelled as e:
            result.metadata["attempts"] = attempts
            return self._finish(result, ExecutionStatus.CANCELLED, str(e))
        except PTYTimeout as e:
            result.output = e.output
            result.metadata["attempts"] = attempts
            return self._finish(result, ExecutionStatus.TIMEOUT, str(e))
        except PTYDisconnected as e:
            logger.warning("Agent %s lost its assistant on task %s: %s", self.name, task.id, e)
            result.output = e.output
            result.metadata["attempts"] = attempts
            return self._finish(result, ExecutionStatus.FAILED, str(e))
        except Exception as e:
            logger.warning("Agent %s failed task %s: %s", self.name, task.id, e)
            result.metadata["attempts"] = attempts
            return self._finish(result, ExecutionStatus.FAILED, str(e))

        adapted = self.adapt_result({"task_id": task.id, "output": reply})
        result.output = adapted.output
        result.artifacts = adapted.artifacts
        result.metadata.update(adapted.metadata)
        result.metadata["attempts"] = attempts
        return self._finish(result, ExecutionStatus.COMPLETED)

    def _remaining_time(self, task: Task) -> float:
        """Per-attempt timeout: the config timeout, cut short by the deadline."""
        timeout = self.config.timeout
        if task.deadline is not None:
            remaining = (task.deadline - utcnow()).total_seconds()
            if remaining <= 0:
                raise PTYTimeout(f"task {task.id} deadline passed")
            timeout = min(timeout, remaining)
        return timeout

    def _finish(
        self, result: SubAgentResult, status: ExecutionStatus, error: str | None = None
    ) -> SubAgentResult:
        result.finish(status, error)
        self._set_status(status)
        logger.info(
            "Agent %s task %s -> %s (%.1fs)",
            self.name,
            result.task_id,
            status.value,
            result.duration,
        )
        return result

    def execute_async(
        self, task: Task, cancel: threading.Event | None = None
    ) -> Future[SubAgentResult]:
        """Run ``execute`` on a worker thread; the future gets the one result."""
        future: Future[SubAgentResult] = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.execute(task, cancel))
            except BaseException as e:
                future.set_exception(e)

        threading.Thread(
            target=_run, name=f"subagent-{self.name}-{task.id}", daemon=True
        ).start()
        return future

    def cancel(self) -> None:
        """Cancel the running execution, if any. A finished status is left alone."""
        with self._state_lock:
            active = self._active_cancel
            if active is None or self._status is not ExecutionStatus.RUNNING:
                return
            active.set()
            self._status = ExecutionStatus.CANCELLED

    def get_progress(self) -> tuple[float, str]:
        status = self._status
        return _PROGRESS.get(status, (0.0, status.value))
