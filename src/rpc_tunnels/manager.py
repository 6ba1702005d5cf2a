"""Top-level up/down orchestration of all tunnel pipelines."""

import time
from collections.abc import Callable, Sequence
from pathlib import Path

from pydantic import ValidationError

from .commands import (
    HostKeyMode,
    check_dependencies,
    forwarder_command,
    negotiate_host_key_mode,
    router_command,
    terminator_command,
)
from .common.exceptions import (
    ConfigurationError,
    LockUnavailableError,
    MissingKeyError,
    ReadinessTimeoutError,
    SessionError,
)
from .common.logging import get_logger
from .common.process import stop_processes
from .config import Settings, TunnelConfig, TunnelsFile, load_tunnels
from .inventory import ProcessInventory, ProcessRole
from .lock import RunLock
from .ports import PortTriple
from .readiness import wait_for_port
from .registry import PipelineRegistry, SpawnedSlot, slot_name
from .routing import RouterConfigBuilder
from .session.backend import ProcessGroupBackend, ScreenBackend
from .session.supervisor import SessionHandle, SessionSupervisor
from .teardown import TeardownOrchestrator, TeardownReport

logger = get_logger(__name__)


class TunnelLifecycleManager:
    """Brings every configured tunnel up, or everything down, in one pass.

    ``up`` always starts from a clean session: existing pipelines are torn
    down first, all key files are checked before anything is spawned, and a
    failure while provisioning tears the partial state down again.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        backend: ProcessGroupBackend | None = None,
        inventory: ProcessInventory | None = None,
        stop: Callable[..., list[int]] | None = None,
    ):
        self.settings = settings or Settings()
        stop = stop or stop_processes
        self.backend = backend or ScreenBackend()
        self.supervisor = SessionSupervisor(
            self.backend,
            self.settings.session_name,
            stop=stop,
            stop_timeout=self.settings.stop_timeout,
        )
        self.teardown = TeardownOrchestrator(
            self.backend,
            inventory or ProcessInventory(),
            stop=stop,
            stop_timeout=self.settings.stop_timeout,
        )
        self.registry = PipelineRegistry()

    def _lock(self) -> RunLock:
        return RunLock(self.settings.lock_path, timeout=self.settings.lock_timeout)

    @staticmethod
    def validate_tunnels(tunnels: Sequence[TunnelConfig]) -> list[TunnelConfig]:
        """Apply the tunnels-file rules (non-empty, unique, disjoint ports)."""
        try:
            return list(TunnelsFile(tunnels=tuple(tunnels)).tunnels)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tunnel list: {e}") from e

    @staticmethod
    def validate_keys(tunnels: Sequence[TunnelConfig]) -> None:
        """Check every distinct SSH key path once and report all missing ones.

        Raises:
            MissingKeyError: If any referenced key file does not exist
        """
        logger.info("Checking SSH keys")
        checked: set[str] = set()
        missing: dict[str, str] = {}
        for tunnel in tunnels:
            path = str(tunnel.key_path)
            if path in checked:
                continue
            checked.add(path)
            if not tunnel.key_path.is_file():
                logger.error("SSH key does not exist", key=path, tunnel=tunnel.name)
                missing[path] = tunnel.name

        if missing:
            raise MissingKeyError(missing)

    def up(self, tunnels: Sequence[TunnelConfig]) -> dict[str, str]:
        """Provision every tunnel and the shared router.

        Returns:
            Published endpoint per tunnel name, in input order

        Raises:
            DependencyError: If an external tool is missing
            ConfigurationError: If the tunnel list or key files are invalid
            SessionError: If the session cannot be created or driven
            ReadinessTimeoutError: If a forwarder never opens its port
            LockError: If the run lock cannot be taken
        """
        check_dependencies()
        return self._up(tunnels)

    def up_from_file(self, config_path: str | Path) -> dict[str, str]:
        """Like :meth:`up`, reading the tunnels file after the dependency check."""
        check_dependencies()
        return self._up(load_tunnels(config_path))

    def _up(self, tunnels: Sequence[TunnelConfig]) -> dict[str, str]:
        tunnels = self.validate_tunnels(tunnels)

        with self._lock():
            session = self.supervisor.ensure()
            self.teardown.teardown(session, self.registry)
            self.validate_keys(tunnels)
            host_key_mode = negotiate_host_key_mode()

            try:
                endpoints = self._provision(session, tunnels, host_key_mode)
            except (ReadinessTimeoutError, SessionError):
                logger.error("Provisioning failed, tearing down partial pipelines")
                report = self.teardown.teardown(session, self.registry)
                if report.exited_slots:
                    logger.error(
                        "Processes exited during startup, see their output with screen",
                        slots=report.exited_slots,
                    )
                raise

        for name, endpoint in endpoints.items():
            logger.info("Service available", tunnel=name, endpoint=endpoint)
        logger.info("All tunnels are now active", session=session.name)
        return endpoints

    def _write_router_config(self, tunnels: Sequence[TunnelConfig]) -> Path:
        router = RouterConfigBuilder()
        for tunnel in tunnels:
            router.add_tunnel(tunnel, tunnel.ports)
        try:
            return router.write(self.settings.router_config_path)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot write router config {self.settings.router_config_path}: {e}"
            ) from e

    def _provision(
        self,
        session: SessionHandle,
        tunnels: Sequence[TunnelConfig],
        host_key_mode: HostKeyMode,
    ) -> dict[str, str]:
        # written before anything is spawned so a bad work dir leaves nothing running
        config_path = self._write_router_config(tunnels)
        endpoints: dict[str, str] = {}

        for tunnel in tunnels:
            ports = tunnel.ports
            logger.info("Setting up tunnel", tunnel=tunnel.name, target=tunnel.target)

            self._spawn(
                session,
                ProcessRole.FORWARDER,
                forwarder_command(
                    tunnel,
                    ports,
                    host_key_mode,
                    server_alive_interval=self.settings.server_alive_interval,
                ),
                tunnel.name,
            )
            self._await_forwarder(tunnel, ports)
            self._spawn(
                session,
                ProcessRole.TERMINATOR,
                terminator_command(ports, verbose=self.settings.verbose_terminator),
                tunnel.name,
            )
            endpoints[tunnel.name] = tunnel.endpoint

        self._spawn(session, ProcessRole.ROUTER, router_command(config_path))
        return endpoints

    def _spawn(
        self,
        session: SessionHandle,
        role: ProcessRole,
        command: list[str],
        tunnel: str | None = None,
    ) -> None:
        slot = slot_name(role, tunnel)
        logger.debug("Spawning", slot=slot, role=role.value, command=command)
        self.backend.spawn(session.name, slot, command)
        self.registry.record(
            SpawnedSlot(slot=slot, role=role, tunnel=tunnel, command=tuple(command))
        )

    def _await_forwarder(self, tunnel: TunnelConfig, ports: PortTriple) -> None:
        if self.settings.readiness_timeout <= 0:
            time.sleep(self.settings.settle_interval)
            return

        ready = wait_for_port(
            ports.forward_port,
            timeout=self.settings.readiness_timeout,
            poll_interval=self.settings.poll_interval,
        )
        if not ready:
            raise ReadinessTimeoutError(
                f"Tunnel '{tunnel.name}': forward port {ports.forward_port} not "
                f"accepting connections after {self.settings.readiness_timeout}s"
            )

    def down(self) -> TeardownReport:
        """Tear down every pipeline; never fails on process or session errors.

        A lock file that cannot be opened does not stop the teardown. Only a
        run that keeps holding the lock makes this raise.

        Raises:
            LockTimeoutError: If another run holds the lock past ``lock_timeout``
        """
        lock = self._lock()
        try:
            lock.acquire()
        except LockUnavailableError as e:
            logger.warning("Run lock unavailable, tearing down without it", error=str(e))

        try:
            report = self._down()
        finally:
            lock.release()
        return report

    def _down(self) -> TeardownReport:
        try:
            session = self.supervisor.find()
        except SessionError as e:
            logger.warning("Cannot inspect sessions", error=str(e))
            return TeardownReport()

        if session is None:
            logger.info("No session found, nothing to tear down")
            return TeardownReport()

        report = self.teardown.teardown(session, self.registry)
        logger.info("All tunnels have been removed")
        return report
