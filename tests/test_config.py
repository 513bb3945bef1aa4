"""Tests for opun.config."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from opun.config import DelegationConfig, OpunConfig, PTYConfig
from opun.subagent.models import DelegationStrategy

_ENV_VARS = (
    "OPUN_READY_TIMEOUT",
    "OPUN_RESPONSE_TIMEOUT",
    "OPUN_AGENTS_DIR",
    "OPUN_MAX_WORKERS",
    "OPUN_RETENTION",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("opun.config.load_dotenv"):
        yield


class TestDefaults:
    def test_pty_defaults(self) -> None:
        config = PTYConfig()
        assert (config.rows, config.cols) == (40, 120)
        assert config.poll_interval == 0.1
        assert config.ready_timeout == 30.0

    def test_delegation_defaults(self) -> None:
        config = DelegationConfig()
        assert config.sweep_interval == 3600.0
        assert config.retention == 86400.0

    def test_load_without_file(self) -> None:
        config = OpunConfig.load(None)
        assert config.agents == []
        assert config.agents_path == Path("~/.claude/agents").expanduser()


class TestLoad:
    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "opun.yaml"
        path.write_text(
            "pty:\n"
            "  ready_timeout: 12\n"
            "delegation:\n"
            "  max_workers: 3\n"
            "agents:\n"
            "  - name: reviewer\n"
            "    provider: qwen\n"
            "    description: Reviews code\n"
            "    strategy: explicit\n"
        )
        config = OpunConfig.load(str(path))
        assert config.pty.ready_timeout == 12.0
        assert config.pty.response_timeout == 300.0
        assert config.delegation.max_workers == 3
        assert config.agents[0].name == "reviewer"
        assert config.agents[0].strategy is DelegationStrategy.EXPLICIT

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "opun.json"
        path.write_text(json.dumps({"working_dir": "/srv/repo", "pty": {"cols": 200}}))
        config = OpunConfig.load(str(path))
        assert config.working_dir == "/srv/repo"
        assert config.pty.cols == 200

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = OpunConfig.load(str(tmp_path / "absent.yaml"))
        assert config.pty.ready_timeout == 30.0

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch) -> None:
        path = tmp_path / "opun.yaml"
        path.write_text("pty:\n  ready_timeout: 12\n")
        monkeypatch.setenv("OPUN_READY_TIMEOUT", "45")
        monkeypatch.setenv("OPUN_RESPONSE_TIMEOUT", "600")
        monkeypatch.setenv("OPUN_AGENTS_DIR", str(tmp_path / "agents"))
        monkeypatch.setenv("OPUN_MAX_WORKERS", "16")
        monkeypatch.setenv("OPUN_RETENTION", "60")

        config = OpunConfig.load(str(path))
        assert config.pty.ready_timeout == 45.0
        assert config.pty.response_timeout == 600.0
        assert config.agents_path == tmp_path / "agents"
        assert config.delegation.max_workers == 16
        assert config.delegation.retention == 60.0
