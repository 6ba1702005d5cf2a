"""Port derivation for tunnel pipelines.

Every tunnel occupies three consecutive local ports starting at its
configured base port::

    base      ssh -L listens here, forwarding to target:port
    base + 1  socat terminates TLS here, forwarding to base
    base + 2  haproxy publishes plain HTTP here, forwarding to base + 1
"""

from pydantic import BaseModel, ConfigDict, Field

from .common.utils import MAX_PORT, validate_port

PORTS_PER_TUNNEL = 3
MAX_BASE_PORT = MAX_PORT - (PORTS_PER_TUNNEL - 1)


class PortTriple(BaseModel):
    """The three local ports used by one tunnel pipeline."""

    model_config = ConfigDict(frozen=True)

    forward_port: int = Field(ge=1, le=MAX_BASE_PORT)
    terminator_port: int = Field(ge=2, le=MAX_PORT - 1)
    router_port: int = Field(ge=3, le=MAX_PORT)

    def as_set(self) -> frozenset[int]:
        return frozenset((self.forward_port, self.terminator_port, self.router_port))

    def overlaps(self, other: "PortTriple") -> bool:
        """Return True if any port is shared with ``other``."""
        return not self.as_set().isdisjoint(other.as_set())


def derive_ports(base_port: int) -> PortTriple:
    """Derive the forwarder, terminator and router ports from a base port.

    Raises:
        ValueError: If the triple would leave the valid port range
    """
    validate_port(base_port, "Base port")
    if base_port > MAX_BASE_PORT:
        raise ValueError(f"Base port must be between 1 and {MAX_BASE_PORT}")
    return PortTriple(
        forward_port=base_port,
        terminator_port=base_port + 1,
        router_port=base_port + 2,
    )
