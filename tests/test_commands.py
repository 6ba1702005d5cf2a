"""Tests for external tool discovery and command construction."""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from rpc_tunnels.commands import (
    HostKeyMode,
    check_dependencies,
    forwarder_command,
    host_key_mode_for,
    negotiate_host_key_mode,
    parse_ssh_version,
    router_command,
    terminator_command,
)
from rpc_tunnels.common.exceptions import DependencyError


class TestCheckDependencies:
    """Test cases for check_dependencies"""

    def test_all_present(self):
        with patch("shutil.which", return_value="/usr/bin/tool"):
            check_dependencies()

    def test_reports_every_missing_tool(self):
        present = {"screen": "/usr/bin/screen", "ssh": "/usr/bin/ssh"}
        with patch("shutil.which", side_effect=present.get):
            with pytest.raises(DependencyError) as exc_info:
                check_dependencies()
        assert exc_info.value.missing == ["socat", "haproxy"]
        assert "socat, haproxy" in str(exc_info.value)


class TestHostKeyMode:
    """Test cases for host key mode negotiation"""

    @pytest.mark.parametrize(
        "banner,version",
        [
            ("OpenSSH_8.9p1 Ubuntu-3ubuntu0.6, OpenSSL 3.0.2 15 Mar 2022", (8, 9)),
            ("OpenSSH_7.4p1, OpenSSL 1.0.2k-fips  26 Jan 2017", (7, 4)),
            ("OpenSSH_for_Windows_8.1p1, LibreSSL 3.0.2", (8, 1)),
            ("garbage", None),
            ("", None),
        ],
    )
    def test_parse_ssh_version(self, banner, version):
        assert parse_ssh_version(banner) == version

    @pytest.mark.parametrize(
        "version,mode",
        [
            ((7, 6), HostKeyMode.ACCEPT_NEW),
            ((7, 5), HostKeyMode.NO),
            ((8, 0), HostKeyMode.ACCEPT_NEW),
            ((9, 6), HostKeyMode.ACCEPT_NEW),
            ((6, 9), HostKeyMode.NO),
            (None, HostKeyMode.NO),
        ],
    )
    def test_mode_for_version(self, version, mode):
        assert host_key_mode_for(version) is mode

    @patch("subprocess.run")
    def test_negotiate_reads_stderr_banner(self, mock_run):
        mock_run.return_value = Mock(stdout="", stderr="OpenSSH_9.6p1, OpenSSL 3.0.13\n")
        assert negotiate_host_key_mode() is HostKeyMode.ACCEPT_NEW
        assert mock_run.call_args[0][0] == ["ssh", "-V"]

    @patch("subprocess.run")
    def test_negotiate_old_client(self, mock_run):
        mock_run.return_value = Mock(stdout="", stderr="OpenSSH_7.5p1, OpenSSL 1.0.2\n")
        assert negotiate_host_key_mode() is HostKeyMode.NO

    @patch("subprocess.run")
    def test_negotiate_failure_falls_back(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired("ssh", 5)
        assert negotiate_host_key_mode() is HostKeyMode.NO


class TestCommandLines:
    """Test cases for pipeline command lines"""

    def test_forwarder_command(self, make_tunnel, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        tunnel = make_tunnel(local_port=18008)
        command = forwarder_command(tunnel, tunnel.ports, HostKeyMode.ACCEPT_NEW)

        assert command[:4] == ["ssh", "-N", "-L", "18008:restricted-api.example.com:443"]
        assert "StrictHostKeyChecking=accept-new" in command
        assert f"UserKnownHostsFile={tmp_path / '.ssh' / 'known_hosts'}" in command
        assert "ServerAliveInterval=60" in command
        assert "ExitOnForwardFailure=yes" in command
        assert command[command.index("-i") + 1] == str(tunnel.key_path)
        assert command[-1] == "deploy@bastion.example.com"

    def test_forwarder_key_is_absolute(self, make_tunnel, monkeypatch, tmp_path):
        """ssh runs in the session's cwd, so a relative key must not leak through"""
        monkeypatch.chdir(tmp_path)
        tunnel = make_tunnel(ssh_key="keys/id")
        command = forwarder_command(tunnel, tunnel.ports, HostKeyMode.NO)

        key = Path(command[command.index("-i") + 1])
        assert key.is_absolute()
        assert key == (tmp_path / "keys" / "id").resolve()

    def test_forwarder_command_alive_interval(self, make_tunnel):
        tunnel = make_tunnel()
        command = forwarder_command(tunnel, tunnel.ports, HostKeyMode.NO, server_alive_interval=15)
        assert "ServerAliveInterval=15" in command
        assert "StrictHostKeyChecking=no" in command

    def test_terminator_command(self, make_tunnel):
        ports = make_tunnel(local_port=18008).ports
        assert terminator_command(ports) == [
            "socat",
            "TCP-LISTEN:18009,fork,reuseaddr",
            "OPENSSL:localhost:18008,verify=0",
        ]
        assert terminator_command(ports, verbose=True)[1] == "-v"

    def test_router_command(self):
        assert router_command(Path("/srv/_build/haproxy.cfg")) == [
            "haproxy",
            "-f",
            "/srv/_build/haproxy.cfg",
        ]
