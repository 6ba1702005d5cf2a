"""Readiness gating for spawned pipeline processes."""

import socket
import time

from .common.logging import get_logger

logger = get_logger(__name__)


def port_accepts_connections(host: str, port: int, timeout: float = 0.5) -> bool:
    """Return True if a TCP connection to ``host:port`` succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def wait_for_port(
    port: int,
    host: str = "127.0.0.1",
    timeout: float = 10.0,
    poll_interval: float = 0.2,
) -> bool:
    """Poll ``host:port`` until it accepts a connection.

    Args:
        port: Port to probe
        host: Host to probe
        timeout: Seconds to keep polling
        poll_interval: Pause between probes

    Returns:
        True once the port accepts connections, False on timeout
    """
    deadline = time.monotonic() + timeout
    while True:
        if port_accepts_connections(host, port, timeout=min(poll_interval, 1.0)):
            logger.debug("Port ready", host=host, port=port)
            return True
        if time.monotonic() >= deadline:
            logger.debug("Port not ready before timeout", host=host, port=port)
            return False
        time.sleep(poll_interval)
