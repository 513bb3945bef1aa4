"""Tests for opun.drivers — launch resolution and the driver state machine."""

from __future__ import annotations

import sys
from unittest.mock import patch

import pytest

from opun.drivers import (
    ClaudeDriver,
    DriverState,
    GeminiDriver,
    LaunchCommand,
    QwenDriver,
    create_driver,
    registered_drivers,
    resolve_executable,
)
from opun.errors import (
    AutomationFailed,
    ProviderNotFound,
    ProviderNotSupported,
    PTYDisconnected,
    PTYTimeout,
    SessionInvalid,
)
from opun.pty.automator import PASTE
from opun.pty.session import poll_until

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX pty")


def _which(available: dict[str, str]):
    return lambda name: available.get(name)


# ---------------------------------------------------------------------------
# resolve_executable
# ---------------------------------------------------------------------------


class TestResolveExecutable:
    def test_primary_binary(self) -> None:
        with patch("opun.drivers.resolver.shutil.which", _which({"claude": "/usr/bin/claude"})):
            launch = resolve_executable("claude")
        assert launch == LaunchCommand("/usr/bin/claude")
        assert launch.argv == ["/usr/bin/claude"]

    def test_npx_fallback(self) -> None:
        with patch("opun.drivers.resolver.shutil.which", _which({"npx": "/usr/bin/npx"})):
            launch = resolve_executable("gemini")
        assert launch.argv == ["/usr/bin/npx", "@google/gemini-cli"]

    def test_nothing_found(self) -> None:
        with patch("opun.drivers.resolver.shutil.which", _which({})):
            with pytest.raises(ProviderNotFound):
                resolve_executable("qwen")

    def test_unknown_assistant(self) -> None:
        with pytest.raises(ProviderNotSupported):
            resolve_executable("cursor")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestDriverRegistry:
    def test_builtin_drivers(self) -> None:
        assert registered_drivers() == ["claude", "gemini", "qwen"]
        assert isinstance(create_driver("gemini"), GeminiDriver)

    def test_unknown(self) -> None:
        with pytest.raises(ProviderNotSupported):
            create_driver("cursor")

    @pytest.mark.parametrize("cls", [ClaudeDriver, GeminiDriver, QwenDriver])
    def test_pattern_sets_non_empty(self, cls) -> None:
        assert cls.ready_patterns
        assert cls.response_complete_patterns
        assert "│ >" in cls.ready_patterns


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def _driver(cls, session, config, clipboard):
    created: list[dict] = []

    def _factory(**kwargs):
        created.append(kwargs)
        return session

    driver = cls(
        config=config,
        clipboard=clipboard,
        session_factory=_factory,
        resolver=lambda assistant: LaunchCommand(f"/opt/{assistant}"),
    )
    return driver, created


class TestDriverLifecycle:
    def test_start_and_prompt(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        session = fake_session_cls(
            ["Welcome to Claude Code\n", "? for shortcuts\n"],
            reactions={
                PASTE: ["[Pasted text]"],
                b"\r": ["⏺ Hello there\n", "│ > \n"],
            },
        )
        driver, created = _driver(ClaudeDriver, session, fast_pty_config, fake_clipboard)

        driver.start_session("/work")
        assert driver.state is DriverState.READY
        assert created[0]["command"] == "/opt/claude"
        assert created[0]["cwd"] == "/work"
        assert created[0]["provider"] == "claude"
        assert session.started

        reply = driver.send_prompt("say hello")
        assert reply == "Hello there"
        assert fake_clipboard.copied == ["say hello"]
        assert driver.state is DriverState.READY

    def test_auth_failure_fails_fast(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        session = fake_session_cls(["Error: Invalid API key · Please run /login\n"])
        driver, _ = _driver(ClaudeDriver, session, fast_pty_config, fake_clipboard)
        with pytest.raises(AutomationFailed, match="Invalid API key"):
            driver.start_session()
        assert session.closed
        assert driver.state is DriverState.UNSTARTED

    def test_ready_timeout(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        config = fast_pty_config.model_copy(update={"ready_timeout": 0.2})
        session = fake_session_cls(["Loading..."])
        driver, _ = _driver(GeminiDriver, session, config, fake_clipboard)
        with pytest.raises(PTYTimeout, match="did not become ready") as exc:
            driver.start_session()
        assert "Loading" in exc.value.output
        assert session.closed

    def test_prompt_before_start(self, fast_pty_config, fake_clipboard) -> None:
        driver = ClaudeDriver(config=fast_pty_config, clipboard=fake_clipboard)
        with pytest.raises(SessionInvalid):
            driver.send_prompt("hi")

    def test_start_twice(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        session = fake_session_cls(["│ > "])
        driver, _ = _driver(GeminiDriver, session, fast_pty_config, fake_clipboard)
        driver.start_session()
        with pytest.raises(SessionInvalid):
            driver.start_session()

    def test_capture_timeout_uses_buffer(
        self, fake_session_cls, fast_pty_config, fake_clipboard
    ) -> None:
        config = fast_pty_config.model_copy(update={"response_timeout": 0.2})
        session = fake_session_cls(
            ["│ > "],
            reactions={PASTE: ["x"], b"\r": ["✦ partial reply"]},
        )
        driver, _ = _driver(GeminiDriver, session, config, fake_clipboard)
        driver.start_session()
        assert driver.send_prompt("long task") == "partial reply"
        assert driver.state is DriverState.READY

    def test_stop_is_idempotent(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        session = fake_session_cls(["│ > "])
        driver, _ = _driver(QwenDriver, session, fast_pty_config, fake_clipboard)
        driver.start_session()
        assert driver.is_ready()

        driver.stop_session()
        driver.stop_session()
        assert driver.state is DriverState.STOPPED
        assert session.closed
        assert session.writes.count(b"/quit") == 1
        assert not driver.is_ready()
        with pytest.raises(SessionInvalid):
            driver.send_prompt("too late")

    def test_describe(self, fake_session_cls, fast_pty_config, fake_clipboard) -> None:
        session = fake_session_cls(["│ > "])
        driver, _ = _driver(GeminiDriver, session, fast_pty_config, fake_clipboard)
        assert driver.describe()["state"] == "unstarted"
        driver.start_session()
        info = driver.describe()
        assert info == {"assistant": "gemini", "state": "ready", "session_id": "fake01", "pid": 4242}

    def test_dead_process_is_not_a_reply(
        self, fake_session_cls, fast_pty_config, fake_clipboard
    ) -> None:
        session = fake_session_cls(["│ > "])
        driver, _ = _driver(GeminiDriver, session, fast_pty_config, fake_clipboard)
        driver.start_session()
        session.alive = False

        with pytest.raises(PTYDisconnected):
            driver.send_prompt("hello")
        assert driver.state is DriverState.STOPPED
        assert not driver.alive
        assert session.writes == []
        assert session.closed

    def test_exit_while_waiting_for_reply(
        self, fake_session_cls, fast_pty_config, fake_clipboard
    ) -> None:
        class DyingSession(fake_session_cls):
            def send_enter(self) -> None:
                super().send_enter()
                self.alive = False

        config = fast_pty_config.model_copy(update={"response_timeout": 0.2})
        session = DyingSession(["│ > "], reactions={b"\r": ["✦ half a rep"]})
        driver, _ = _driver(GeminiDriver, session, config, fake_clipboard)
        driver.start_session()

        with pytest.raises(PTYDisconnected) as exc:
            driver.send_prompt("long task")
        assert "half a rep" in exc.value.output
        assert driver.state is DriverState.STOPPED


@posix_only
class TestDriverOverRealProcess:
    def test_exited_assistant_raises_disconnected(self, fast_pty_config, fake_clipboard) -> None:
        driver = ClaudeDriver(
            config=fast_pty_config,
            clipboard=fake_clipboard,
            resolver=lambda assistant: LaunchCommand(
                "/bin/sh", ["-c", "printf 'Human: ? for shortcuts\\n'; sleep 0.3"]
            ),
        )
        driver.start_session()
        assert driver.state is DriverState.READY

        session = driver.session
        poll_until(lambda: (not session.alive) or None, timeout=5.0, interval=0.02)

        with pytest.raises(PTYDisconnected):
            driver.send_prompt("hello", timeout=1.0)
        assert driver.state is DriverState.STOPPED
        assert fake_clipboard.copied == []
        driver.stop_session()
