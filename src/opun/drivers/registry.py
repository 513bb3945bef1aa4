"""Driver registry — maps assistant identifiers to driver classes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from opun.errors import ProviderNotSupported

if TYPE_CHECKING:
    from opun.drivers.base import AssistantDriver

_DRIVERS: dict[str, type[AssistantDriver]] = {}


def register_driver(assistant: str) -> Callable[[type[AssistantDriver]], type[AssistantDriver]]:
    """Class decorator adding a driver to the lookup table."""

    def _decorator(cls: type[AssistantDriver]) -> type[AssistantDriver]:
        cls.assistant = assistant
        _DRIVERS[assistant] = cls
        return cls

    return _decorator


def create_driver(assistant: str, **kwargs: Any) -> AssistantDriver:
    """Instantiate the driver registered for ``assistant``."""
    cls = _DRIVERS.get(assistant)
    if cls is None:
        raise ProviderNotSupported(f"no PTY driver for assistant: {assistant}")
    return cls(**kwargs)


def registered_drivers() -> list[str]:
    return sorted(_DRIVERS)
