"""haproxy configuration builder for the shared router."""

import os
import tempfile
from pathlib import Path

from .common.logging import get_logger
from .config import TunnelConfig
from .ports import PortTriple

logger = get_logger(__name__)

GLOBAL_HEADER = """global
    maxconn 256

defaults
    mode http
    timeout connect 5000ms
    timeout client 50000ms
    timeout server 50000ms
"""

TUNNEL_BLOCK = """
frontend {name}_proxy
  bind 127.0.0.1:{router_port}
  mode http
  option http-server-close
  http-request set-header Host {target}
  default_backend {name}_backend

backend {name}_backend
  mode http
  server tunnel 127.0.0.1:{terminator_port}
"""


class RouterConfigBuilder:
    """Accumulates one frontend/backend pair per tunnel under a global header.

    The document is always built from scratch; nothing is merged with a
    previously written configuration.
    """

    def __init__(self) -> None:
        self._blocks: list[str] = [GLOBAL_HEADER]
        self._tunnels: list[str] = []
        logger.debug("RouterConfigBuilder initialized")

    def add_tunnel(
        self, tunnel: TunnelConfig, ports: PortTriple | None = None
    ) -> "RouterConfigBuilder":
        """Append the routing block for one tunnel.

        Args:
            tunnel: Tunnel whose name and target are used
            ports: Derived ports, computed from the tunnel when omitted

        Returns:
            Self for method chaining

        Raises:
            ValueError: If a tunnel with the same name was already added
        """
        if tunnel.name in self._tunnels:
            raise ValueError(f"Tunnel '{tunnel.name}' already added to router config")

        ports = ports or tunnel.ports
        self._blocks.append(
            TUNNEL_BLOCK.format(
                name=tunnel.name,
                target=tunnel.target,
                router_port=ports.router_port,
                terminator_port=ports.terminator_port,
            )
        )
        self._tunnels.append(tunnel.name)
        logger.debug(
            "Added routing block",
            tunnel=tunnel.name,
            router_port=ports.router_port,
            terminator_port=ports.terminator_port,
        )
        return self

    @property
    def tunnel_names(self) -> list[str]:
        return list(self._tunnels)

    def render(self) -> str:
        """Return the complete configuration text."""
        return "".join(self._blocks)

    def write(self, path: str | Path) -> Path:
        """Atomically write the configuration to ``path``.

        Returns:
            Absolute path of the written file
        """
        target = Path(path).resolve()
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=target.parent, prefix=".haproxy_", suffix=".cfg"
        )
        try:
            with os.fdopen(fd, "w") as f:
                f.write(self.render())
            os.replace(temp_path, target)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

        logger.info(
            "Router configuration written", path=str(target), tunnels=len(self._tunnels)
        )
        return target
