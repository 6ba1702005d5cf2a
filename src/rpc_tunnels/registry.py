"""In-memory registry of the slots spawned by the orchestrator."""

from pydantic import BaseModel, ConfigDict, Field

from .common.exceptions import TunnelsError
from .common.logging import get_logger
from .inventory import ProcessRole

logger = get_logger(__name__)

ROUTER_SLOT = "haproxy"

_SLOT_PREFIXES = {
    ProcessRole.FORWARDER: "ssh",
    ProcessRole.TERMINATOR: "socat",
}


class RegistryError(TunnelsError):
    """Raised for inconsistent registry operations."""

    pass


def slot_name(role: ProcessRole, tunnel: str | None = None) -> str:
    """Slot title for a pipeline process, namespaced by tunnel and role.

    Raises:
        ValueError: If the role has no slot, or a per-tunnel role lacks a name
    """
    if role is ProcessRole.ROUTER:
        return ROUTER_SLOT
    if role not in _SLOT_PREFIXES:
        raise ValueError(f"Role {role.value} is not spawned by the orchestrator")
    if not tunnel:
        raise ValueError(f"Role {role.value} needs a tunnel name")
    return f"{_SLOT_PREFIXES[role]}_{tunnel}"


class SpawnedSlot(BaseModel):
    """A process the orchestrator started in a session slot."""

    model_config = ConfigDict(frozen=True)

    slot: str = Field(min_length=1)
    role: ProcessRole
    tunnel: str | None = None
    command: tuple[str, ...] = ()


class PipelineRegistry(BaseModel):
    """Slots spawned during this run.

    Teardown compares it with the slots still open to report processes that
    died on their own, then forgets every entry.
    """

    slots: dict[str, SpawnedSlot] = Field(default_factory=dict)

    def record(self, spawned: SpawnedSlot) -> None:
        """Register a newly spawned slot.

        Raises:
            RegistryError: If the slot name is already registered
        """
        if spawned.slot in self.slots:
            raise RegistryError(f"Slot '{spawned.slot}' already registered")
        self.slots[spawned.slot] = spawned
        logger.debug("Recorded slot", slot=spawned.slot, role=spawned.role.value)

    def forget(self, slot: str) -> SpawnedSlot | None:
        return self.slots.pop(slot, None)

    def list_slots(self) -> list[SpawnedSlot]:
        """Registered slots in spawn order."""
        return list(self.slots.values())
