"""rpc-tunnels - layered ssh/socat/haproxy tunnels to IP-restricted services."""

from .commands import HostKeyMode, check_dependencies, negotiate_host_key_mode
from .common.exceptions import (
    ConfigurationError,
    DependencyError,
    LockError,
    LockTimeoutError,
    LockUnavailableError,
    MissingKeyError,
    ReadinessTimeoutError,
    SessionError,
    TunnelsError,
)
from .common.logging import get_logger, setup_logging
from .config import Settings, TunnelConfig, TunnelsFile, load_tunnels
from .inventory import ProcessInventory, ProcessRecord, ProcessRole, classify_command
from .manager import TunnelLifecycleManager
from .ports import PortTriple, derive_ports
from .registry import PipelineRegistry, SpawnedSlot, slot_name
from .routing import RouterConfigBuilder
from .session import (
    ProcessGroupBackend,
    ScreenBackend,
    SessionHandle,
    SessionState,
    SessionSupervisor,
)
from .teardown import TeardownOrchestrator, TeardownReport

__version__ = "0.1.0"


__all__ = [
    # Orchestration
    "TunnelLifecycleManager",
    "TeardownOrchestrator",
    "TeardownReport",
    "SessionSupervisor",
    "SessionHandle",
    "SessionState",
    "ProcessGroupBackend",
    "ScreenBackend",
    # Inventory
    "ProcessInventory",
    "ProcessRecord",
    "ProcessRole",
    "classify_command",
    "PipelineRegistry",
    "SpawnedSlot",
    "slot_name",
    # Configuration
    "Settings",
    "TunnelConfig",
    "TunnelsFile",
    "load_tunnels",
    "PortTriple",
    "derive_ports",
    "RouterConfigBuilder",
    # External tools
    "HostKeyMode",
    "check_dependencies",
    "negotiate_host_key_mode",
    # Exceptions
    "TunnelsError",
    "DependencyError",
    "ConfigurationError",
    "MissingKeyError",
    "SessionError",
    "ReadinessTimeoutError",
    "LockError",
    "LockTimeoutError",
    "LockUnavailableError",
    # Logging
    "get_logger",
    "setup_logging",
]
