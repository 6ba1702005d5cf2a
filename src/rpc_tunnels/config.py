"""Tunnel configuration models and orchestrator settings."""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .common.exceptions import ConfigurationError
from .common.logging import get_logger
from .common.utils import expand_user_path, validate_identifier
from .ports import MAX_BASE_PORT, PortTriple, derive_ports

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "tunnels_config.json"


class TunnelConfig(BaseModel):
    """One requested tunnel, as read from the tunnels file."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    name: str = Field(min_length=1, description="Unique tunnel identifier")
    remote_host: str = Field(min_length=1, description="Authorized intermediary host")
    remote_user: str = Field(min_length=1, description="SSH user on the intermediary")
    ssh_key: str = Field(min_length=1, description="Private key path, ~ allowed")
    target: str = Field(min_length=1, description="Restricted service host")
    port: int = Field(ge=1, le=65535, description="Restricted service port")
    local_port: int = Field(
        ge=1, le=MAX_BASE_PORT, description="First of three consecutive local ports"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Names end up in screen window titles and haproxy section names."""
        return validate_identifier(v, "Tunnel name")

    @property
    def key_path(self) -> Path:
        """Absolute SSH key path, independent of the session's working directory."""
        return expand_user_path(self.ssh_key).resolve()

    @property
    def ports(self) -> PortTriple:
        return derive_ports(self.local_port)

    @property
    def endpoint(self) -> str:
        """Address the tunnel is published on once up."""
        return f"http://localhost:{self.ports.router_port}"


class TunnelsFile(BaseModel):
    """Top-level document of the tunnels file: ``{"tunnels": [...]}``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tunnels: tuple[TunnelConfig, ...] = Field(min_length=1)

    @field_validator("tunnels")
    @classmethod
    def validate_unique(
        cls, v: tuple[TunnelConfig, ...]
    ) -> tuple[TunnelConfig, ...]:
        """Reject duplicate names and overlapping port triples."""
        problems: list[str] = []
        seen: dict[str, TunnelConfig] = {}
        for tunnel in v:
            if tunnel.name in seen:
                problems.append(f"duplicate tunnel name '{tunnel.name}'")
            seen.setdefault(tunnel.name, tunnel)

        for i, first in enumerate(v):
            for second in v[i + 1 :]:
                if first.ports.overlaps(second.ports):
                    shared = sorted(first.ports.as_set() & second.ports.as_set())
                    problems.append(
                        f"tunnels '{first.name}' and '{second.name}' "
                        f"share local ports {shared}"
                    )

        if problems:
            raise ValueError("; ".join(problems))
        return v


def load_tunnels(path: str | Path) -> list[TunnelConfig]:
    """Read and validate the tunnels file.

    Args:
        path: JSON file path

    Returns:
        Tunnel records in file order

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    config_path = Path(path)
    try:
        raw = config_path.read_text()
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read tunnels config {config_path}: {e}"
        ) from e

    try:
        document = TunnelsFile.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid tunnels config {config_path}: {e}"
        ) from e

    logger.debug(
        "Tunnels config loaded", path=str(config_path), count=len(document.tunnels)
    )
    return list(document.tunnels)


def default_lock_dir() -> Path:
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / "rpc-tunnels"
    return expand_user_path("~/.cache/rpc-tunnels")


class Settings(BaseSettings):
    """Orchestrator tunables, overridable with ``RPC_TUNNELS_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="RPC_TUNNELS_",
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    config_path: Path = Field(default=Path(DEFAULT_CONFIG_FILE))
    work_dir: Path = Field(
        default=Path("_build"), description="Holds the generated haproxy.cfg"
    )
    lock_dir: Path | None = Field(
        default=None, description="Run lock directory, per user when unset"
    )
    session_name: str = Field(default="tunnels", min_length=1)

    readiness_timeout: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Seconds to wait for a forwarder port; 0 uses settle_interval",
    )
    settle_interval: float = Field(default=2.0, ge=0.0, le=60.0)
    poll_interval: float = Field(default=0.2, ge=0.01, le=5.0)
    lock_timeout: float = Field(default=30.0, ge=0.0, le=600.0)
    stop_timeout: float = Field(
        default=5.0,
        ge=0.1,
        le=60.0,
        description="Seconds a process gets to exit after SIGTERM before SIGKILL",
    )

    server_alive_interval: int = Field(default=60, ge=1, le=3600)
    verbose_terminator: bool = Field(
        default=False, description="Pass -v to socat to dump relayed traffic"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool = False
    log_file: Path | None = Field(
        default=None, description="Also append plain-text logs to this file"
    )

    @field_validator("session_name")
    @classmethod
    def validate_session_name(cls, v: str) -> str:
        return validate_identifier(v, "Session name")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @property
    def router_config_path(self) -> Path:
        return self.work_dir / "haproxy.cfg"

    @property
    def lock_path(self) -> Path:
        """One lock per session, shared by runs from any directory."""
        return (self.lock_dir or default_lock_dir()) / f"{self.session_name}.lock"
