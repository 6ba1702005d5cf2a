"""Ordered, best-effort teardown of every pipeline in a session."""

from collections.abc import Callable

from pydantic import BaseModel, Field

from .common.exceptions import SessionError
from .common.logging import get_logger
from .common.process import DEFAULT_STOP_TIMEOUT, stop_processes
from .inventory import ProcessInventory, ProcessRole
from .registry import PipelineRegistry
from .session.backend import ProcessGroupBackend
from .session.supervisor import SessionHandle

logger = get_logger(__name__)

# Consumers stop before their upstreams, across all tunnels.
TEARDOWN_ORDER = (ProcessRole.ROUTER, ProcessRole.TERMINATOR, ProcessRole.FORWARDER)


class TeardownReport(BaseModel):
    """What a teardown pass stopped and removed."""

    stopped: dict[ProcessRole, list[int]] = Field(default_factory=dict)
    removed_slots: list[str] = Field(default_factory=list)
    # recorded as spawned, but their slot had already closed
    exited_slots: list[str] = Field(default_factory=list)

    @property
    def total_stopped(self) -> int:
        return sum(len(pids) for pids in self.stopped.values())

    @property
    def is_noop(self) -> bool:
        return self.total_stopped == 0 and not self.removed_slots


class TeardownOrchestrator:
    """Stops routers, then terminators, then forwarders, then clears slots.

    Each role is fully stopped (SIGTERM, wait, SIGKILL) before the next one
    is signalled, so no process of a later run can find its port still held.
    Failures to find or signal a process, and failures to remove a slot, are
    logged and otherwise ignored, so teardown can be re-run from any state.
    """

    def __init__(
        self,
        backend: ProcessGroupBackend,
        inventory: ProcessInventory | None = None,
        stop: Callable[..., list[int]] = stop_processes,
        stop_timeout: float = DEFAULT_STOP_TIMEOUT,
    ):
        self.backend = backend
        self.inventory = inventory or ProcessInventory()
        self._stop = stop
        self.stop_timeout = stop_timeout

    def teardown(
        self, session: SessionHandle, registry: PipelineRegistry | None = None
    ) -> TeardownReport:
        """Stop every pipeline process in ``session`` and remove their slots.

        When ``registry`` is given, slots it recorded but that had already
        closed are reported as exited, and every recorded slot is forgotten.
        """
        logger.info("Cleaning up existing tunnels", session=session.name)
        report = TeardownReport()

        live_slots = self._list_slots(session)
        if registry is not None and live_slots is not None:
            self._reconcile(registry, live_slots, report)

        grouped = self.inventory.by_role(session)
        for role in TEARDOWN_ORDER:
            pids = [record.pid for record in grouped.get(role, [])]
            if not pids:
                continue
            logger.info("Stopping processes", role=role.value, pids=pids)
            stopped = self._stop(pids, timeout=self.stop_timeout)
            if stopped:
                report.stopped[role] = stopped

        if live_slots is not None:
            self._remove_slots(session, report)

        if registry is not None:
            for spawned in registry.list_slots():
                registry.forget(spawned.slot)

        logger.info(
            "Teardown complete",
            session=session.name,
            stopped=report.total_stopped,
            removed_slots=len(report.removed_slots),
        )
        return report

    def _list_slots(self, session: SessionHandle) -> list[str] | None:
        try:
            return [slot.title for slot in self.backend.list_slots(session.name)]
        except SessionError as e:
            logger.warning("Cannot list session slots", session=session.name, error=str(e))
            return None

    def _reconcile(
        self, registry: PipelineRegistry, live_slots: list[str], report: TeardownReport
    ) -> None:
        for spawned in registry.list_slots():
            if spawned.slot in live_slots:
                continue
            logger.warning(
                "Spawned process exited before teardown",
                slot=spawned.slot,
                tunnel=spawned.tunnel,
                command=" ".join(spawned.command),
            )
            report.exited_slots.append(spawned.slot)

    def _remove_slots(self, session: SessionHandle, report: TeardownReport) -> None:
        # slots whose process just exited are closed by the process manager
        for title in self._list_slots(session) or []:
            if title == session.keepalive_slot:
                continue
            try:
                removed = self.backend.remove_slot(session.name, title)
            except SessionError as e:
                logger.warning("Failed to remove slot", slot=title, error=str(e))
                continue
            if removed:
                logger.debug("Removed slot", slot=title)
                report.removed_slots.append(title)
