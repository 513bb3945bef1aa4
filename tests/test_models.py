"""Tests for opun.subagent.models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from opun.subagent.models import (
    Artifact,
    DelegationStrategy,
    ExecutionStatus,
    SubAgentConfig,
    SubAgentResult,
    SubAgentType,
    Task,
)


class TestExecutionStatus:
    def test_terminal_states(self) -> None:
        terminal = {s for s in ExecutionStatus if s.is_terminal}
        assert terminal == {
            ExecutionStatus.COMPLETED,
            ExecutionStatus.FAILED,
            ExecutionStatus.CANCELLED,
            ExecutionStatus.TIMEOUT,
        }


class TestTask:
    def test_tags_from_list(self) -> None:
        task = Task(id="t1", context={"capabilities": ["research", "writing"], "type": "report"})
        assert task.tags() == ["research", "writing", "report"]

    def test_tags_from_string(self) -> None:
        assert Task(id="t1", context={"capabilities": "testing"}).tags() == ["testing"]

    def test_no_tags(self) -> None:
        assert Task(id="t1", context={"language": "go"}).tags() == []

    def test_dict_round_trip(self) -> None:
        task = Task(
            id="t1",
            name="Write docs",
            description="Document the API",
            input="api.py",
            context={"type": "docs"},
            variables={"audience": "devs"},
            constraints=["be brief"],
            priority=3,
            deadline=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        assert Task.from_dict(task.to_dict()) == task

    def test_from_dict_naive_deadline_is_utc(self) -> None:
        task = Task.from_dict({"id": 7, "deadline": "2026-01-02T03:04:05"})
        assert task.id == "7"
        assert task.deadline is not None
        assert task.deadline.tzinfo is not None
        assert task.deadline.utcoffset() == timedelta(0)

    def test_constructed_naive_deadline_is_utc(self) -> None:
        task = Task(id="t1", deadline=datetime(2026, 1, 2, 3, 4, 5))
        assert task.deadline == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestSubAgentConfig:
    def test_defaults(self) -> None:
        config = SubAgentConfig(name="a", provider="gemini")
        assert config.type is SubAgentType.DECLARATIVE
        assert config.strategy is DelegationStrategy.AUTOMATIC
        assert config.max_retries == 0
        assert config.timeout == 300.0

    def test_enum_values_from_strings(self) -> None:
        config = SubAgentConfig.model_validate(
            {"name": "a", "type": "workflow", "strategy": "proactive"}
        )
        assert config.type is SubAgentType.WORKFLOW
        assert config.strategy is DelegationStrategy.PROACTIVE

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SubAgentConfig(name="a", max_retries=-1)

    def test_zero_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SubAgentConfig(name="a", timeout=0)


class TestResults:
    def test_artifact_size_derived(self) -> None:
        assert Artifact(name="out.txt", content=b"hello").size == 5
        assert Artifact(name="link", type="url", size=0).size == 0

    def test_finish_stamps_time(self) -> None:
        result = SubAgentResult(task_id="t1", agent_name="a")
        assert result.end_time is None
        result.finish(ExecutionStatus.FAILED, "boom")
        assert result.end_time is not None
        assert result.end_time >= result.start_time
        assert result.duration >= 0
        assert result.error == "boom"
        assert not result.ok

    def test_to_dict(self) -> None:
        result = SubAgentResult(
            task_id="t1",
            agent_name="a",
            output="done",
            artifacts=[Artifact(name="f", content=b"abc")],
        ).finish(ExecutionStatus.COMPLETED)
        data = result.to_dict()
        assert data["status"] == "completed"
        assert data["task_id"] == "t1"
        assert data["artifacts"][0]["size"] == 3
        assert result.ok
