"""Utility functions for rpc-tunnels."""

import os
import re
from pathlib import Path

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_port(port: int, port_name: str = "Port") -> None:
    """Validate port number range.

    Args:
        port: Port number to validate
        port_name: Name of the port for error messages

    Raises:
        ValueError: If port is not in valid range (1-65535)
    """
    if not isinstance(port, int) or not (MIN_PORT <= port <= MAX_PORT):
        raise ValueError(f"{port_name} must be between {MIN_PORT} and {MAX_PORT}")


def validate_identifier(value: str, field_name: str) -> str:
    """Validate a name used in screen window titles and haproxy sections.

    Args:
        value: Name to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped name

    Raises:
        ValueError: If the name is empty or has characters other than
            letters, digits, hyphens and underscores
    """
    value = value.strip() if value else ""
    if not value:
        raise ValueError(f"{field_name} cannot be empty")
    if not _NAME_RE.match(value):
        raise ValueError(
            f"{field_name} must contain only alphanumeric characters, "
            "hyphens, and underscores"
        )
    return value


def expand_user_path(path: str | os.PathLike[str]) -> Path:
    """Expand a leading ``~`` to the current user's home directory."""
    return Path(os.path.expanduser(os.fspath(path)))
