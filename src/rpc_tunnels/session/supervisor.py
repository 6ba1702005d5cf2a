"""Lifecycle of the persistent process-group session."""

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..common.exceptions import SessionError
from ..common.logging import get_logger
from ..common.process import DEFAULT_STOP_TIMEOUT, stop_processes
from .backend import KEEPALIVE_COMMAND, KEEPALIVE_SLOT, ProcessGroupBackend, SessionInfo

logger = get_logger(__name__)

DEFAULT_SESSION_NAME = "tunnels"


class SessionState(str, Enum):
    """Observed state of the named session."""

    ABSENT = "absent"
    DEAD_ZOMBIE = "dead_zombie"
    ALIVE_UNRESPONSIVE = "alive_unresponsive"
    ALIVE_RESPONSIVE = "alive_responsive"


class SessionHandle(BaseModel):
    """Owned reference to a live session, passed through the lifecycle."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    pid: int = Field(ge=1, description="PID of the session's supervising process")
    keepalive_slot: str = KEEPALIVE_SLOT


class SessionSupervisor:
    """Finds, recovers or creates the single session hosting all pipelines."""

    def __init__(
        self,
        backend: ProcessGroupBackend,
        name: str = DEFAULT_SESSION_NAME,
        stop: Callable[..., list[int]] = stop_processes,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ):
        self.backend = backend
        self.name = name
        self._stop = stop
        self.stop_timeout = stop_timeout

    def _matching(self) -> list[SessionInfo]:
        return [s for s in self.backend.list_sessions() if s.name == self.name]

    def _live(self) -> list[SessionInfo]:
        return [s for s in self._matching() if not s.dead]

    def _inspect(self) -> tuple[SessionState, SessionInfo | None]:
        matches = self._matching()
        if not matches:
            return SessionState.ABSENT, None

        live = [s for s in matches if not s.dead]
        if not live:
            return SessionState.DEAD_ZOMBIE, matches[0]

        # several live sessions with one name make every -S command ambiguous
        if len(live) == 1 and self.backend.is_responsive(self.name):
            return SessionState.ALIVE_RESPONSIVE, live[0]
        return SessionState.ALIVE_UNRESPONSIVE, live[0]

    def state(self) -> SessionState:
        return self._inspect()[0]

    def find(self) -> SessionHandle | None:
        """Return a handle to the live session without creating one."""
        live = self._live()
        if not live:
            return None
        if len(live) > 1:
            logger.warning(
                "Several live sessions share a name, using the first",
                session=self.name,
                pids=[s.pid for s in live],
            )
        return SessionHandle(name=self.name, pid=live[0].pid)

    def _stop_stale(self) -> None:
        stale = [s.pid for s in self._live()]
        logger.warning(
            "Session exists but is unresponsive, stopping it",
            session=self.name,
            pids=stale,
        )
        self._stop(stale, timeout=self.stop_timeout)
        self.backend.wipe()

        survivors = [s.pid for s in self._live()]
        if survivors:
            raise SessionError(
                f"Unresponsive session '{self.name}' could not be stopped "
                f"(pid {', '.join(map(str, survivors))})"
            )

    def ensure(self) -> SessionHandle:
        """Make sure exactly one responsive session exists and return it.

        An unresponsive session is stopped (SIGTERM, then SIGKILL) and its
        registration wiped before a new one is created, so the name stays
        unambiguous.

        Raises:
            SessionError: If the process manager cannot create the session,
                or a stale session cannot be removed
        """
        state, info = self._inspect()

        if state is SessionState.ALIVE_RESPONSIVE and info is not None:
            logger.info("Using existing session", session=self.name, pid=info.pid)
            return SessionHandle(name=self.name, pid=info.pid)

        if state is SessionState.DEAD_ZOMBIE:
            logger.warning("Found dead session, wiping it", session=self.name)
            self.backend.wipe()
        elif state is SessionState.ALIVE_UNRESPONSIVE:
            self._stop_stale()

        logger.info("Creating new session", session=self.name)
        self.backend.create_session(self.name, KEEPALIVE_SLOT, KEEPALIVE_COMMAND)

        live = self._live()
        if not live:
            raise SessionError(f"Session '{self.name}' not found after creation")
        if len(live) > 1:
            raise SessionError(
                f"Found {len(live)} live sessions named '{self.name}' after creation"
            )
        logger.debug("Session created", session=self.name, pid=live[0].pid)
        return SessionHandle(name=self.name, pid=live[0].pid)
