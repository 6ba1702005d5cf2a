"""Discovery and role classification of the session's pipeline processes."""

import os
from collections.abc import Callable, Iterable, Iterator
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .common.logging import get_logger
from .common.process import iter_children
from .session.supervisor import SessionHandle

logger = get_logger(__name__)

ChildLister = Callable[[int], Iterable[tuple[int, str]]]


class ProcessRole(str, Enum):
    """Role of a process inside a tunnel pipeline."""

    FORWARDER = "forwarder"
    TERMINATOR = "terminator"
    ROUTER = "router"
    KEEP_ALIVE = "keep_alive"
    UNKNOWN = "unknown"


# executable basename -> role
_EXECUTABLE_ROLES = {
    "haproxy": ProcessRole.ROUTER,
    "socat": ProcessRole.TERMINATOR,
    "ssh": ProcessRole.FORWARDER,
}


def classify_command(command_line: str) -> ProcessRole:
    """Infer a process role from its command line.

    Args:
        command_line: Space separated argv of the process

    Returns:
        The matching role, or UNKNOWN for anything not launched by us
    """
    tokens = command_line.split()
    if not tokens:
        return ProcessRole.UNKNOWN

    executable = os.path.basename(tokens[0])
    if executable == "sleep" and "infinity" in tokens[1:]:
        return ProcessRole.KEEP_ALIVE
    return _EXECUTABLE_ROLES.get(executable, ProcessRole.UNKNOWN)


class ProcessRecord(BaseModel):
    """A live child of the session at the time of inspection."""

    model_config = ConfigDict(frozen=True)

    pid: int = Field(ge=1)
    command_line: str
    role: ProcessRole

    @property
    def is_pipeline(self) -> bool:
        """True for roles that teardown is allowed to stop."""
        return self.role in (
            ProcessRole.FORWARDER,
            ProcessRole.TERMINATOR,
            ProcessRole.ROUTER,
        )


class ProcessInventory:
    """Lists and classifies the immediate children of a session.

    Nothing is cached: every call inspects the live process table again.
    """

    def __init__(self, children: ChildLister = iter_children):
        self._children = children

    def list_processes(self, session: SessionHandle) -> Iterator[ProcessRecord]:
        """Yield classified children of ``session``, keep-alive excluded."""
        for pid, command_line in self._children(session.pid):
            role = classify_command(command_line)
            if role is ProcessRole.KEEP_ALIVE:
                continue
            yield ProcessRecord(pid=pid, command_line=command_line, role=role)

    def by_role(self, session: SessionHandle) -> dict[ProcessRole, list[ProcessRecord]]:
        """Group the current inventory by role."""
        grouped: dict[ProcessRole, list[ProcessRecord]] = {}
        for record in self.list_processes(session):
            grouped.setdefault(record.role, []).append(record)
        return grouped
