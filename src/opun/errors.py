"""Exception hierarchy for opun.

Every failure the core raises derives from ``OpunError`` so callers can
catch the whole family at the façade boundary.
"""

from __future__ import annotations


class OpunError(Exception):
    """Base class for all opun errors."""


# ---------------------------------------------------------------------------
# Provider / configuration
# ---------------------------------------------------------------------------


class ProviderNotFound(OpunError):
    """No executable (or registered provider) was found for an assistant."""


class ProviderNotSupported(OpunError):
    """The assistant identifier is not one opun knows how to drive."""


class InvalidConfig(OpunError):
    """A subagent or provider configuration is invalid."""


# ---------------------------------------------------------------------------
# PTY
# ---------------------------------------------------------------------------


class PTYError(OpunError):
    """Base class for PTY failures."""


class PTYCreationFailed(PTYError):
    """The pseudo-terminal could not be allocated, sized, or spawned."""


class PTYTimeout(PTYError):
    """A pattern wait ran out of time.

    ``output`` carries whatever was buffered when the wait gave up, so
    callers can still show something useful.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class PTYDisconnected(PTYError):
    """The session is closed or the process went away.

    ``output`` holds anything the process printed before it died.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionError(OpunError):
    """Base class for session bookkeeping errors."""


class SessionNotFound(SessionError):
    pass


class SessionExists(SessionError):
    pass


class SessionInvalid(SessionError):
    """An operation was attempted in the wrong lifecycle state."""


# ---------------------------------------------------------------------------
# Automation
# ---------------------------------------------------------------------------


class AutomationFailed(OpunError):
    """Driving the assistant failed (auth error, bad startup, ...)."""


class ClipboardFailed(AutomationFailed):
    pass


class PatternNotFound(AutomationFailed):
    pass


class Cancelled(OpunError):
    """A blocking wait observed its cancellation signal."""


# ---------------------------------------------------------------------------
# Delegation
# ---------------------------------------------------------------------------


class ToolExecutionFailed(OpunError):
    pass


class AgentNotFound(OpunError):
    pass


class TaskNotFound(OpunError):
    pass
