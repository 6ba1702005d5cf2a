"""Common utilities and shared functionality."""

from .exceptions import (
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
from .logging import get_logger, setup_logging
from .process import iter_children, stop_processes
from .utils import (
    MAX_PORT,
    MIN_PORT,
    expand_user_path,
    validate_identifier,
    validate_port,
)

__all__ = [
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
    # Processes
    "iter_children",
    "stop_processes",
    # Utils
    "validate_port",
    "validate_identifier",
    "expand_user_path",
    "MIN_PORT",
    "MAX_PORT",
]
