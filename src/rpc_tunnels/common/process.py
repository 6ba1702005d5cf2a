"""psutil helpers for inspecting and signalling session children."""

from collections.abc import Iterable, Iterator

import psutil

from .logging import get_logger

logger = get_logger(__name__)


def iter_children(pid: int) -> Iterator[tuple[int, str]]:
    """Yield ``(pid, command line)`` for the immediate children of ``pid``.

    Children that exit or become unreadable while being inspected are skipped.
    A missing parent yields nothing.
    """
    try:
        children = psutil.Process(pid).children(recursive=False)
    except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
        logger.debug("Cannot list children", pid=pid, error=str(e))
        return

    for child in children:
        try:
            command_line = " ".join(child.cmdline())
        except (psutil.NoSuchProcess, psutil.ZombieProcess, psutil.AccessDenied):
            logger.debug("Child vanished during inventory", pid=child.pid)
            continue
        yield child.pid, command_line


DEFAULT_STOP_TIMEOUT = 5.0


def stop_processes(pids: Iterable[int], timeout: float = DEFAULT_STOP_TIMEOUT) -> list[int]:
    """Stop processes with SIGTERM, escalating to SIGKILL after ``timeout``.

    Waits until every signalled process has exited, so ports and sockets held
    by them are free once this returns.

    Returns:
        PIDs that were signalled and have exited. Processes already gone or
        not ours to signal are left out.
    """
    procs: list[psutil.Process] = []
    for pid in pids:
        try:
            proc = psutil.Process(pid)
            proc.terminate()
        except psutil.NoSuchProcess:
            logger.debug("Process already gone", pid=pid)
            continue
        except psutil.AccessDenied as e:
            logger.warning("Not allowed to signal process", pid=pid, error=str(e))
            continue
        procs.append(proc)

    if not procs:
        return []

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        logger.warning(
            "Process did not terminate gracefully, force killing", pid=proc.pid
        )
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            logger.error("Failed to kill process", pid=proc.pid, error=str(e))

    if alive:
        _, still_alive = psutil.wait_procs(alive, timeout=timeout)
        for proc in still_alive:
            logger.error("Process survived SIGKILL", pid=proc.pid)
            procs.remove(proc)

    return [proc.pid for proc in procs]
