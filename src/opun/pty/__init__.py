"""PTY automation — drive interactive assistants on pseudo-terminals.

Each assistant runs in a managed PTY session with process group isolation,
an append-only output buffer, and a background reader thread. The
automator layers clipboard paste injection and pattern waits on top.
"""

from opun.pty.automator import Automator
from opun.pty.buffer import OutputBuffer, contains_pattern, first_match, index_of_pattern
from opun.pty.clipboard import Clipboard, SystemClipboard
from opun.pty.extract import extract_last_response, register_extractor
from opun.pty.session import PTYSession, PTYStatus, poll_until

__all__ = [
    "Automator",
    "Clipboard",
    "OutputBuffer",
    "PTYSession",
    "PTYStatus",
    "SystemClipboard",
    "contains_pattern",
    "extract_last_response",
    "first_match",
    "index_of_pattern",
    "poll_until",
    "register_extractor",
]
