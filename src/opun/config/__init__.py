"""Configuration — Pydantic models for opun settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from opun.subagent.models import SubAgentConfig


class PTYConfig(BaseModel):
    """Terminal geometry, pattern polling, and pacing.

    All durations are in seconds.
    """

    rows: int = Field(default=40)
    cols: int = Field(default=120)
    poll_interval: float = Field(
        default=0.1, description="Interval for every pattern wait loop"
    )
    ready_timeout: float = Field(default=30.0)
    response_timeout: float = Field(default=300.0)
    command_timeout: float = Field(default=30.0)
    health_check_window: float = Field(
        default=0.5,
        description="How long to scan early output for auth failures on startup",
    )
    clipboard_settle: float = Field(default=0.1)
    paste_timeout: float = Field(
        default=5.0,
        description="Upper bound on waiting for a paste to show up in the buffer",
    )
    response_start_delay: float = Field(default=1.0)
    exit_grace: float = Field(
        default=0.5, description="Pause between the exit command and close()"
    )


class DelegationConfig(BaseModel):
    """Manager and task server settings."""

    max_workers: int = Field(default=8, description="Thread pool size for parallel runs")
    sweep_interval: float = Field(default=3600.0)
    retention: float = Field(
        default=86400.0, description="Finished execution records older than this are swept"
    )


class OpunConfig(BaseModel):
    """Top-level opun configuration."""

    pty: PTYConfig = Field(default_factory=PTYConfig)
    delegation: DelegationConfig = Field(default_factory=DelegationConfig)
    agents_dir: str = Field(
        default="~/.claude/agents",
        description="Where declarative agent definitions are persisted",
    )
    working_dir: str | None = Field(default=None)
    agents: list[SubAgentConfig] = Field(default_factory=list)

    @property
    def agents_path(self) -> Path:
        return Path(self.agents_dir).expanduser()

    @classmethod
    def load(cls, config_path: str | None = None) -> OpunConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults. The file may be JSON
        or YAML (picked by extension).

        Env vars:
            OPUN_READY_TIMEOUT     - Seconds to wait for an assistant prompt
            OPUN_RESPONSE_TIMEOUT  - Seconds to wait for a reply
            OPUN_AGENTS_DIR        - Override agents_dir
            OPUN_MAX_WORKERS       - Parallel worker count
            OPUN_RETENTION         - Execution record retention in seconds
        """
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                if config_path.endswith((".yaml", ".yml")):
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)

        pty_cfg = config_data.get("pty", {})
        delegation = config_data.get("delegation", {})

        env_ready = os.environ.get("OPUN_READY_TIMEOUT")
        if env_ready:
            pty_cfg["ready_timeout"] = float(env_ready)

        env_response = os.environ.get("OPUN_RESPONSE_TIMEOUT")
        if env_response:
            pty_cfg["response_timeout"] = float(env_response)

        env_agents_dir = os.environ.get("OPUN_AGENTS_DIR")
        if env_agents_dir:
            config_data["agents_dir"] = env_agents_dir

        env_workers = os.environ.get("OPUN_MAX_WORKERS")
        if env_workers:
            delegation["max_workers"] = int(env_workers)

        env_retention = os.environ.get("OPUN_RETENTION")
        if env_retention:
            delegation["retention"] = float(env_retention)

        if pty_cfg:
            config_data["pty"] = pty_cfg
        if delegation:
            config_data["delegation"] = delegation

        return cls.model_validate(config_data)
