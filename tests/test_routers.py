from unittest.mock import patch

import pytest
from dynaconf import Dynaconf

from errors import LeaseSourceError, NeighborSourceError
from routers import LocalRouter, SshRouter, get_router
from utils import RemoteCommandError


def make_settings(tmp_path, router_type, **local):
    local = {"ndp_cmd": "ndp -an", **local}
    lines = ["[general]", f'router_type = "{router_type}"', "", "[local_router]"]
    lines += [f'{key} = "{value}"' for key, value in local.items()]
    lines += ["", "[ssh_router]", 'router_ip = "192.168.0.1"', 'router_user = "admin"', "ssh_timeout = 3"]
    path = tmp_path / "settings.toml"
    path.write_text("\n".join(lines) + "\n")
    return Dynaconf(settings_files=[str(path)])


def test_factory_selects_router(tmp_path):
    assert isinstance(get_router(make_settings(tmp_path, "local")), LocalRouter)
    assert isinstance(get_router(make_settings(tmp_path, "ssh")), SshRouter)
    with pytest.raises(ValueError, match="Unsupported router type"):
        get_router(make_settings(tmp_path, "asus_router"))


def test_local_router_reads_leases(tmp_path):
    leases = tmp_path / "dhcpd.leases"
    leases.write_text("lease 192.168.0.29 {\n}\n")
    router = get_router(make_settings(tmp_path, "local", leases_file=leases))
    assert router.read_lease_source().startswith("lease 192.168.0.29")


def test_local_router_missing_leases_file(tmp_path):
    router = get_router(make_settings(tmp_path, "local", leases_file=tmp_path / "missing"))
    with pytest.raises(LeaseSourceError):
        router.read_lease_source()


def test_local_router_runs_command(tmp_path):
    listing = tmp_path / "ndp.txt"
    listing.write_text("2001:db8::29 aa:bb:cc:dd:ee:ff em0 1s R\n")
    router = get_router(make_settings(tmp_path, "local", ndp_cmd=f"cat {listing}"))
    assert "aa:bb:cc:dd:ee:ff" in router.run_neighbor_diagnostic(timeout=5)


@pytest.mark.parametrize("command", ["sleep 5", "false", "no-such-ndp-binary -an"])
def test_local_router_command_failures(tmp_path, command):
    router = get_router(make_settings(tmp_path, "local", ndp_cmd=command))
    with pytest.raises(NeighborSourceError):
        router.run_neighbor_diagnostic(timeout=0.2)


@patch("routers.ssh.SSHClient")
def test_ssh_router_runs_commands_remotely(mock_client_cls, tmp_path):
    client = mock_client_cls.return_value
    client.connect.return_value = True
    client.execute_command.return_value = "lease text"
    router = get_router(make_settings(tmp_path, "ssh"))

    assert router.read_lease_source() == "lease text"
    client.execute_command.assert_called_with("cat /var/db/dhcpd/dhcpd.leases", timeout=3)
    assert router.run_neighbor_diagnostic(timeout=7) == "lease text"
    client.execute_command.assert_called_with("ndp -an", timeout=7)
    assert client.close.call_count == 2


@patch("routers.ssh.SSHClient")
def test_ssh_router_failures_become_source_errors(mock_client_cls, tmp_path):
    client = mock_client_cls.return_value
    router = get_router(make_settings(tmp_path, "ssh"))

    client.connect.return_value = False
    with pytest.raises(LeaseSourceError):
        router.read_lease_source()

    client.connect.return_value = True
    client.execute_command.side_effect = RemoteCommandError("timed out")
    with pytest.raises(NeighborSourceError):
        router.run_neighbor_diagnostic(timeout=1)
    client.close.assert_called_once()


@patch("routers.ssh.SSHClient")
def test_ssh_router_connect_errors_stay_source_errors(mock_client_cls, tmp_path):
    mock_client_cls.return_value.connect.side_effect = EOFError("no terminal")
    router = get_router(make_settings(tmp_path, "ssh"))
    with pytest.raises(LeaseSourceError, match="no terminal"):
        router.read_lease_source()
    with pytest.raises(NeighborSourceError):
        router.run_neighbor_diagnostic(timeout=1)


@patch("routers.ssh.SSHClient")
def test_ssh_router_passes_key_passphrase(mock_client_cls):
    router = SshRouter({"router_ip": "192.168.0.1", "router_user": "admin", "key_passphrase": "secret"})
    mock_client_cls.return_value.connect.return_value = True
    mock_client_cls.return_value.execute_command.return_value = ""
    router.read_lease_source()
    assert mock_client_cls.call_args.kwargs["key_passphrase"] == "secret"
