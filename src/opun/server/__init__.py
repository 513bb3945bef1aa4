"""Delegation server exposing subagents as tools."""

from opun.server.task import ExecutionRecord, TaskServer

__all__ = ["ExecutionRecord", "TaskServer"]
