"""Reply extraction — isolate an assistant's answer in captured terminal text.

Extractors are registered per assistant identifier, so a new assistant only
needs a ``@register_extractor("name")`` function; nothing else dispatches on
the assistant kind.
"""

from __future__ import annotations

from typing import Callable

Extractor = Callable[[str], str]

_EXTRACTORS: dict[str, Extractor] = {}


def register_extractor(assistant: str) -> Callable[[Extractor], Extractor]:
    def _decorator(fn: Extractor) -> Extractor:
        _EXTRACTORS[assistant] = fn
        return fn

    return _decorator


def get_extractor(assistant: str) -> Extractor | None:
    return _EXTRACTORS.get(assistant)


def extract_last_response(text: str, assistant: str) -> str:
    """Run the assistant's extractor; unknown assistants get ``text`` back."""
    extractor = _EXTRACTORS.get(assistant)
    if extractor is None:
        return text
    return extractor(text)


def _is_end(line: str, end_markers: tuple[str, ...], prompt_prefixes: tuple[str, ...]) -> bool:
    if any(marker in line for marker in end_markers):
        return True
    return bool(prompt_prefixes) and line.strip().startswith(prompt_prefixes)


def between_markers(
    text: str,
    start_markers: tuple[str, ...],
    end_markers: tuple[str, ...],
    prompt_prefixes: tuple[str, ...] = (),
) -> str | None:
    """Return the text after the last start marker, up to the next end marker.

    Text following the start marker on its own line is kept. Returns None
    when no start marker is present.
    """
    lines = text.split("\n")

    start = None
    for i in range(len(lines) - 1, -1, -1):
        if any(marker in lines[i] for marker in start_markers):
            start = i
            break
    if start is None:
        return None

    first = lines[start]
    for marker in start_markers:
        if marker in first:
            first = first.split(marker, 1)[1]
            break

    collected = [first] if first.strip() else []
    for line in lines[start + 1 :]:
        if _is_end(line, end_markers, prompt_prefixes):
            break
        collected.append(line)
    return "\n".join(collected).strip()


def until_end(
    text: str, end_markers: tuple[str, ...], prompt_prefixes: tuple[str, ...] = ()
) -> str:
    """Everything up to the first end marker line, minus leading blank lines."""
    collected: list[str] = []
    for line in text.split("\n"):
        if not collected and not line.strip():
            continue
        if _is_end(line, end_markers, prompt_prefixes):
            break
        collected.append(line)
    return "\n".join(collected).strip()


# ---------------------------------------------------------------------------
# Built-in assistants
# ---------------------------------------------------------------------------

CLAUDE_START = ("Assistant:", "⏺")
CLAUDE_END = ("Human:", "│ >", "? for shortcuts")

GEMINI_START = ("✦",)
GEMINI_END = ("Gemini>", "gemini>", "│ >", "Type your message")

QWEN_START = ("✦",)
QWEN_END = ("Qwen>", "qwen>", "│ >", "Type your message", "## TASK_COMPLETE")


@register_extractor("claude")
def extract_claude(text: str) -> str:
    reply = between_markers(text, CLAUDE_START, CLAUDE_END, prompt_prefixes=(">",))
    return reply if reply is not None else text.strip()


@register_extractor("gemini")
def extract_gemini(text: str) -> str:
    reply = between_markers(text, GEMINI_START, GEMINI_END, prompt_prefixes=(">", "$"))
    if reply is not None:
        return reply
    return until_end(text, GEMINI_END, prompt_prefixes=(">", "$"))


@register_extractor("qwen")
def extract_qwen(text: str) -> str:
    reply = between_markers(text, QWEN_START, QWEN_END, prompt_prefixes=(">",))
    if reply is None:
        reply = until_end(text, QWEN_END, prompt_prefixes=(">",))
    return reply
