import socket
import time
import subprocess
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from utils import RemoteCommandError, SSHClient, format_mac, is_valid_ipv4, run_command


@pytest.mark.parametrize("raw", [
    "aa:bb:cc:dd:ee:ff",
    "AA:BB:CC:DD:EE:FF",
    "aa-bb-cc-dd-ee-ff",
    "aabb.ccdd.eeff",
    "AABBCCDDEEFF",
    " aa:bb:cc:dd:ee:ff ",
])
def test_format_mac_spellings_share_one_key(raw):
    assert format_mac(raw) == "aa:bb:cc:dd:ee:ff"


def test_format_mac_pads_short_octets():
    # ISC dhcpd drops leading zeros
    assert format_mac("0:c:29:1a:2b:3c") == "00:0c:29:1a:2b:3c"


@pytest.mark.parametrize("raw", ["(incomplete)", "aa:bb:cc:dd:ee", "gg:bb:cc:dd:ee:ff", "aa:bb:cc:dd:ee:fff", ""])
def test_format_mac_rejects_garbage(raw):
    with pytest.raises(ValueError):
        format_mac(raw)


def test_is_valid_ipv4():
    assert is_valid_ipv4("192.168.0.29")
    assert not is_valid_ipv4("192.168.0.256")
    assert not is_valid_ipv4("fe80::1")


@patch("utils.subprocess.run")
def test_run_command_splits_string_and_passes_timeout(mock_run):
    mock_run.return_value = MagicMock(stdout="out", stderr="")
    assert run_command("ndp -an", timeout=3) == "out"
    args, kwargs = mock_run.call_args
    assert args[0] == ["ndp", "-an"]
    assert kwargs["timeout"] == 3
    assert kwargs["check"] is True


def test_run_command_kills_slow_child():
    with pytest.raises(subprocess.TimeoutExpired):
        run_command(["sleep", "5"], timeout=0.2)


def _connected_client(stdout=b"", stderr=b"", status=0, finished=True):
    client = SSHClient("192.168.0.1", "admin")
    out_chunks = [stdout] if stdout else []
    err_chunks = [stderr] if stderr else []
    channel = MagicMock()
    channel.recv_ready.side_effect = lambda: bool(out_chunks)
    channel.recv.side_effect = lambda size: out_chunks.pop(0)
    channel.recv_stderr_ready.side_effect = lambda: bool(err_chunks)
    channel.recv_stderr.side_effect = lambda size: err_chunks.pop(0)
    channel.exit_status_ready.return_value = finished
    channel.recv_exit_status.return_value = status
    out = MagicMock()
    out.channel = channel
    client.client = MagicMock()
    client.client.exec_command.return_value = (MagicMock(), out, MagicMock())
    return client, channel


def test_ssh_execute_returns_stdout():
    client, _ = _connected_client(stdout=b"hello\n")
    assert client.execute_command("echo hello", timeout=5) == "hello\n"
    client.client.exec_command.assert_called_once_with("echo hello", timeout=5)


def test_ssh_execute_nonzero_exit_raises():
    client, _ = _connected_client(stderr=b"ndp: not found", status=127)
    with pytest.raises(RemoteCommandError, match="status 127"):
        client.execute_command("ndp -an")


def test_ssh_execute_read_timeout_raises():
    client, channel = _connected_client(finished=False)
    channel.recv_ready.side_effect = socket.timeout()
    with pytest.raises(RemoteCommandError, match="timed out"):
        client.execute_command("ndp -an", timeout=1)


def test_ssh_execute_deadline_covers_whole_command():
    # A command that never stops printing still ends at the deadline
    client, channel = _connected_client(finished=False)
    channel.recv_ready.side_effect = lambda: True
    channel.recv.side_effect = lambda size: b"fe80::1%em0 aa:bb:cc:dd:ee:ff em0 1s R\n"
    started = time.monotonic()
    with pytest.raises(RemoteCommandError, match="timed out"):
        client.execute_command("ndp -an", timeout=0.2)
    assert time.monotonic() - started < 2
    channel.close.assert_called_once()


def test_ssh_execute_requires_connection():
    with pytest.raises(RemoteCommandError):
        SSHClient("192.168.0.1", "admin").execute_command("true")


@patch("utils.paramiko.SSHClient")
def test_ssh_connect_failure_returns_false(mock_client_cls):
    mock_client_cls.return_value.connect.side_effect = OSError("unreachable")
    client = SSHClient("192.168.0.1", "admin")
    assert client.connect() is False
    assert client.client is None


@patch("utils.paramiko.SSHClient")
def test_ssh_connect_encrypted_key_fails_without_prompting(mock_client_cls):
    mock_client_cls.return_value.connect.side_effect = paramiko.ssh_exception.PasswordRequiredException("encrypted")
    client = SSHClient("192.168.0.1", "admin")
    with patch("getpass.getpass") as prompt:
        assert client.connect() is False
    prompt.assert_not_called()
    assert mock_client_cls.return_value.connect.call_count == 1


@patch("utils.paramiko.SSHClient")
def test_ssh_connect_passes_key_passphrase(mock_client_cls):
    client = SSHClient("192.168.0.1", "admin", key_passphrase="secret")
    assert client.connect() is True
    assert mock_client_cls.return_value.connect.call_args.kwargs["passphrase"] == "secret"
