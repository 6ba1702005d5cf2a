"""External tool discovery and command lines for the pipeline processes."""

import re
import shutil
import subprocess
from enum import Enum
from pathlib import Path

from .common.exceptions import DependencyError
from .common.logging import get_logger
from .common.utils import expand_user_path
from .config import TunnelConfig
from .ports import PortTriple

logger = get_logger(__name__)

REQUIRED_TOOLS = ("screen", "ssh", "socat", "haproxy")
KNOWN_HOSTS_FILE = "~/.ssh/known_hosts"

# "OpenSSH_8.9p1 Ubuntu-3ubuntu0.6, OpenSSL 3.0.2 15 Mar 2022"
_OPENSSH_VERSION_RE = re.compile(r"OpenSSH_(?:for_Windows_)?(\d+)\.(\d+)")


class HostKeyMode(str, Enum):
    """Non-interactive StrictHostKeyChecking policy for the forwarders.

    Both are weaker than full verification; ACCEPT_NEW still rejects changed
    keys, NO accepts anything.
    """

    ACCEPT_NEW = "accept-new"
    NO = "no"


def check_dependencies(tools: tuple[str, ...] = REQUIRED_TOOLS) -> None:
    """Ensure every external tool is on PATH.

    Raises:
        DependencyError: Listing all missing tools
    """
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise DependencyError(missing)
    logger.debug("All dependencies present", tools=list(tools))


def parse_ssh_version(banner: str) -> tuple[int, int] | None:
    """Extract (major, minor) from an ``ssh -V`` banner."""
    match = _OPENSSH_VERSION_RE.search(banner)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def host_key_mode_for(version: tuple[int, int] | None) -> HostKeyMode:
    """accept-new exists since OpenSSH 7.6."""
    if version is not None and version >= (7, 6):
        return HostKeyMode.ACCEPT_NEW
    return HostKeyMode.NO


def negotiate_host_key_mode(ssh_binary: str = "ssh") -> HostKeyMode:
    """Probe the installed ssh client once and pick its safest unattended mode."""
    try:
        result = subprocess.run(
            [ssh_binary, "-V"],
            capture_output=True,
            text=True,
            timeout=5.0,
            check=False,
        )
        # ssh -V prints its banner on stderr
        banner = result.stderr or result.stdout
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Could not determine ssh version", error=str(e))
        banner = ""

    version = parse_ssh_version(banner)
    mode = host_key_mode_for(version)
    logger.info(
        "Negotiated host key checking",
        ssh_version=".".join(map(str, version)) if version else None,
        mode=mode.value,
    )
    return mode


def forwarder_command(
    tunnel: TunnelConfig,
    ports: PortTriple,
    host_key_mode: HostKeyMode,
    server_alive_interval: int = 60,
) -> list[str]:
    """ssh local forward from ``forward_port`` to ``target:port`` via the intermediary."""
    return [
        "ssh",
        "-N",
        "-L",
        f"{ports.forward_port}:{tunnel.target}:{tunnel.port}",
        "-o",
        f"StrictHostKeyChecking={host_key_mode.value}",
        "-o",
        f"UserKnownHostsFile={expand_user_path(KNOWN_HOSTS_FILE)}",
        "-o",
        f"ServerAliveInterval={server_alive_interval}",
        "-o",
        "ExitOnForwardFailure=yes",
        "-i",
        str(tunnel.key_path),
        f"{tunnel.remote_user}@{tunnel.remote_host}",
    ]


def terminator_command(ports: PortTriple, verbose: bool = False) -> list[str]:
    """socat accepting plain TCP on ``terminator_port`` and speaking TLS to the forward.

    The forward endpoint's certificate is not verified; the hop to it is
    already inside the ssh channel.
    """
    command = ["socat"]
    if verbose:
        command.append("-v")
    command += [
        f"TCP-LISTEN:{ports.terminator_port},fork,reuseaddr",
        f"OPENSSL:localhost:{ports.forward_port},verify=0",
    ]
    return command


def router_command(config_path: Path) -> list[str]:
    return ["haproxy", "-f", str(config_path)]
