"""Advisory run lock serializing concurrent up/down invocations."""

import fcntl
import os
import time
from pathlib import Path
from types import TracebackType
from typing import Literal

from .common.exceptions import LockTimeoutError, LockUnavailableError
from .common.logging import get_logger

logger = get_logger(__name__)


class RunLock:
    """Exclusive ``flock`` on a lock file, held for one orchestrator run."""

    def __init__(self, path: str | Path, timeout: float = 30.0, poll_interval: float = 0.1):
        self.path = Path(path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._fd: int | None = None

    @property
    def locked(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Block until the lock is held.

        Raises:
            LockTimeoutError: If another process keeps it past ``timeout``
            LockUnavailableError: If the lock file cannot be created or opened
        """
        if self._fd is not None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise LockUnavailableError(f"Cannot open run lock {self.path}: {e}") from e

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    os.close(fd)
                    raise LockTimeoutError(
                        f"Another rpc-tunnels run holds {self.path}"
                    ) from None
                time.sleep(self.poll_interval)

        self._fd = fd
        logger.debug("Run lock acquired", path=str(self.path))

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Run lock released", path=str(self.path))

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.release()
        return False
