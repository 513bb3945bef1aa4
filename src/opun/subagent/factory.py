"""Adapter factory — builds subagent adapters from configs.

Adapter classes register themselves with ``@register_adapter``; the
factory never switches on the assistant kind.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from opun.errors import InvalidConfig, ProviderNotSupported
from opun.subagent.models import DelegationStrategy, SubAgentConfig, SubAgentType

if TYPE_CHECKING:
    from opun.providers.base import Provider
    from opun.subagent.base import SubAgentAdapter

logger = logging.getLogger(__name__)

_ADAPTERS: dict[str, type[SubAgentAdapter]] = {}
_TYPES: dict[str, SubAgentType] = {}


def register_adapter(
    assistant: str, subagent_type: SubAgentType
) -> Callable[[type[SubAgentAdapter]], type[SubAgentAdapter]]:
    def _decorator(cls: type[SubAgentAdapter]) -> type[SubAgentAdapter]:
        _ADAPTERS[assistant] = cls
        _TYPES[assistant] = subagent_type
        return cls

    return _decorator


def supported_assistants() -> list[str]:
    return sorted(_ADAPTERS)


def subagent_type_for(assistant: str) -> SubAgentType:
    try:
        return _TYPES[assistant]
    except KeyError:
        raise ProviderNotSupported(f"unknown provider type: {assistant}") from None


def create_adapter(
    config: SubAgentConfig,
    provider: Provider | None = None,
    persist: bool = False,
    agents_dir: str | None = None,
) -> SubAgentAdapter:
    """Build, bind and validate the adapter for ``config.provider``.

    With ``persist=True`` the adapter's descriptor is also written out
    (only the claude adapter has one).
    """
    if not config.provider:
        raise InvalidConfig("provider type not specified in config")
    cls = _ADAPTERS.get(config.provider)
    if cls is None:
        raise ProviderNotSupported(f"unsupported provider type: {config.provider}")

    adapter = cls(config, provider=provider)
    adapter.validate()
    if persist:
        path = adapter.persist_descriptor(agents_dir)
        if path:
            logger.debug("Persisted descriptor for %s at %s", config.name, path)
    return adapter


def default_configs() -> list[SubAgentConfig]:
    """One starter agent per assistant."""
    return [
        SubAgentConfig(
            name="claude-researcher",
            type=SubAgentType.DECLARATIVE,
            description="Research and documentation agent using Claude's Task tool",
            provider="claude",
            model="opus",
            strategy=DelegationStrategy.AUTOMATIC,
            context=["research", "documentation", "analysis", "report"],
            capabilities=["research", "writing", "analysis", "summarization"],
            priority=8,
            timeout=300,
            output_format="markdown",
        ),
        SubAgentConfig(
            name="gemini-coder",
            type=SubAgentType.PROGRAMMATIC,
            description="Code generation and implementation agent using Gemini",
            provider="gemini",
            strategy=DelegationStrategy.AUTOMATIC,
            context=["code", "implementation", "programming", "development"],
            capabilities=["code_generation", "implementation", "testing", "debugging"],
            priority=7,
            timeout=180,
            output_format="json",
            settings={"temperature": 0.3, "max_tokens": 4096, "max_iterations": 3},
        ),
        SubAgentConfig(
            name="qwen-reviewer",
            type=SubAgentType.WORKFLOW,
            description="Code review and refactoring specialist using Qwen",
            provider="qwen",
            strategy=DelegationStrategy.EXPLICIT,
            context=["review", "refactor", "optimize", "quality"],
            capabilities=["code_review", "refactoring", "optimization", "best_practices"],
            priority=9,
            timeout=240,
            output_format="text",
            tools=["linter", "formatter", "analyzer"],
        ),
    ]
