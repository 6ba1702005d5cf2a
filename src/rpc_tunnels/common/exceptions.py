"""Custom exceptions for rpc-tunnels."""


class TunnelsError(Exception):
    """Base exception for all rpc-tunnels errors."""

    pass


class DependencyError(TunnelsError):
    """Raised when required external tools are not installed."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(
            "Required tools not installed or not in PATH: " + ", ".join(self.missing)
        )


class ConfigurationError(TunnelsError):
    """Raised when the tunnels configuration is invalid."""

    pass


class MissingKeyError(ConfigurationError):
    """Raised when one or more SSH keys referenced by tunnels do not exist."""

    def __init__(self, missing: dict[str, str]):
        # key path -> name of the first tunnel referencing it
        self.missing = dict(missing)
        details = "; ".join(
            f"'{path}' (tunnel '{name}')" for path, name in self.missing.items()
        )
        super().__init__(f"Found {len(self.missing)} missing SSH key(s): {details}")


class SessionError(TunnelsError):
    """Raised when the process-group session cannot be created or driven."""

    pass


class ReadinessTimeoutError(TunnelsError):
    """Raised when a spawned process never starts accepting connections."""

    pass


class LockError(TunnelsError):
    """Base exception for run lock failures."""

    pass


class LockTimeoutError(LockError):
    """Raised when another invocation holds the run lock for too long."""

    pass


class LockUnavailableError(LockError):
    """Raised when the lock file cannot be created or opened."""

    pass
