"""Process-group session management."""

from .backend import (
    KEEPALIVE_COMMAND,
    KEEPALIVE_SLOT,
    ProcessGroupBackend,
    ScreenBackend,
    SessionInfo,
    SlotInfo,
)
from .supervisor import (
    DEFAULT_SESSION_NAME,
    SessionHandle,
    SessionState,
    SessionSupervisor,
)

__all__ = [
    "ProcessGroupBackend",
    "ScreenBackend",
    "SessionInfo",
    "SlotInfo",
    "KEEPALIVE_SLOT",
    "KEEPALIVE_COMMAND",
    "SessionSupervisor",
    "SessionHandle",
    "SessionState",
    "DEFAULT_SESSION_NAME",
]
