"""Tests for opun.pty.extract."""

from __future__ import annotations

from opun.pty.extract import (
    extract_last_response,
    get_extractor,
    register_extractor,
)


class TestDispatch:
    def test_unknown_assistant_passthrough(self) -> None:
        assert extract_last_response("  raw text  ", "cursor") == "  raw text  "

    def test_builtin_extractors_registered(self) -> None:
        for assistant in ("claude", "gemini", "qwen"):
            assert get_extractor(assistant) is not None

    def test_register_custom(self) -> None:
        @register_extractor("shouty")
        def _upper(text: str) -> str:
            return text.upper()

        assert extract_last_response("hi", "shouty") == "HI"


class TestClaude:
    def test_last_reply_after_marker(self) -> None:
        text = (
            "⏺ first answer\n"
            "> follow-up question\n"
            "⏺ Second answer\n"
            "continues here\n"
            "│ > \n"
        )
        assert extract_last_response(text, "claude") == "Second answer\ncontinues here"

    def test_no_marker_returns_stripped_text(self) -> None:
        assert extract_last_response("\n  plain reply \n", "claude") == "plain reply"


class TestGemini:
    def test_reply_after_sparkle(self) -> None:
        text = "> what is 2+2\n✦ It is 4.\n\nType your message or @path/to/file\n"
        assert extract_last_response(text, "gemini") == "It is 4."

    def test_fallback_stops_at_prompt(self) -> None:
        text = "\n\nThe answer.\nMore.\n$ \n"
        assert extract_last_response(text, "gemini") == "The answer.\nMore."


class TestQwen:
    def test_stops_at_task_complete(self) -> None:
        text = "✦ ```python\nprint('hi')\n```\n## TASK_COMPLETE\n"
        assert extract_last_response(text, "qwen") == "```python\nprint('hi')\n```"
