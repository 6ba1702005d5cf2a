"""Process-group backends hosting the tunnel session.

The orchestrator only needs a small set of operations from the process
manager, captured by :class:`ProcessGroupBackend`. :class:`ScreenBackend`
implements them on top of GNU screen: a detached session is the long-lived
parent and every pipeline process runs in its own titled window ("slot").
"""

import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ..common.exceptions import SessionError
from ..common.logging import get_logger

logger = get_logger(__name__)

KEEPALIVE_SLOT = "keepalive"
KEEPALIVE_COMMAND = ("sleep", "infinity")

# "\t12345.tunnels\t(10/19/2026 08:00:00 AM)\t(Detached)"
_SESSION_LINE_RE = re.compile(r"^\s*(\d+)\.(\S+)\s+(.*)$")
_PAREN_RE = re.compile(r"\(([^)]*)\)")
# "0$ keepalive  1*$ ssh_api  2-$ socat_api"
_WINDOW_RE = re.compile(r"(\d+)[-*$!@&Z]*\s+(\S+)")


@dataclass(frozen=True)
class SessionInfo:
    """A session as reported by the process manager."""

    pid: int
    name: str
    dead: bool = False


@dataclass(frozen=True)
class SlotInfo:
    """A named slot (screen window) inside a session."""

    index: int
    title: str


class ProcessGroupBackend(Protocol):
    """Operations the orchestrator needs from the process manager."""

    def list_sessions(self) -> list[SessionInfo]:
        """List known sessions, including dead ones."""
        ...

    def is_responsive(self, session: str) -> bool:
        """Probe a live session with a lightweight command."""
        ...

    def wipe(self) -> None:
        """Purge registrations of dead or unresponsive sessions."""
        ...

    def create_session(self, session: str, slot: str, command: Sequence[str]) -> None:
        """Create a detached session whose first slot runs ``command``."""
        ...

    def spawn(self, session: str, slot: str, command: Sequence[str]) -> None:
        """Start ``command`` in a new named slot of ``session``."""
        ...

    def list_slots(self, session: str) -> list[SlotInfo]:
        """List the named slots of ``session``."""
        ...

    def remove_slot(self, session: str, slot: str) -> bool:
        """Remove a named slot; False if it no longer existed."""
        ...


class ScreenBackend:
    """GNU screen implementation of :class:`ProcessGroupBackend`."""

    def __init__(self, binary: str = "screen", timeout: float = 10.0):
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, *args]
        logger.debug("Running screen command", command=cmd)
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SessionError(f"Failed to run {' '.join(cmd)}: {e}") from e

    def list_sessions(self) -> list[SessionInfo]:
        # screen -list exits non-zero even when sessions exist
        result = self._run("-list")
        sessions = []
        for line in result.stdout.splitlines():
            match = _SESSION_LINE_RE.match(line)
            if not match:
                continue
            states = _PAREN_RE.findall(match.group(3))
            sessions.append(
                SessionInfo(
                    pid=int(match.group(1)),
                    name=match.group(2),
                    dead=any("Dead" in state for state in states),
                )
            )
        return sessions

    def is_responsive(self, session: str) -> bool:
        try:
            result = self._run("-S", session, "-X", "version")
        except SessionError as e:
            logger.debug("Session probe failed", session=session, error=str(e))
            return False
        return result.returncode == 0

    def wipe(self) -> None:
        self._run("-wipe")

    def create_session(self, session: str, slot: str, command: Sequence[str]) -> None:
        result = self._run("-dmS", session, "-t", slot, *command)
        if result.returncode != 0:
            raise SessionError(
                f"Failed to create screen session '{session}': "
                f"{result.stderr.strip() or result.stdout.strip()}"
            )

    def spawn(self, session: str, slot: str, command: Sequence[str]) -> None:
        result = self._run("-S", session, "-X", "screen", "-t", slot, *command)
        if result.returncode != 0:
            raise SessionError(
                f"Failed to start '{slot}' in screen session '{session}': "
                f"{result.stderr.strip() or result.stdout.strip()}"
            )

    def list_slots(self, session: str) -> list[SlotInfo]:
        result = self._run("-S", session, "-Q", "windows")
        if result.returncode != 0:
            return []
        return [
            SlotInfo(index=int(index), title=title)
            for index, title in _WINDOW_RE.findall(result.stdout)
        ]

    def remove_slot(self, session: str, slot: str) -> bool:
        result = self._run("-S", session, "-p", slot, "-X", "kill")
        return result.returncode == 0
