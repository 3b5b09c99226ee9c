# utils.py
import re
import shlex
import socket
import time
import logging
import subprocess
from typing import List, Optional, Sequence, Union

import paramiko

logger = logging.getLogger(__name__)

_MAC_SPLIT = re.compile(r"[:\-]")
_HEX = re.compile(r"^[0-9a-f]+$")
_RECV_BYTES = 32768
_POLL_INTERVAL = 0.05


def format_mac(mac: str) -> str:
    """Formats a MAC address to lowercase with colons and two-digit octets.

    Accepts colon or dash separated octets (padded or not, as ISC dhcpd
    writes them), Cisco-style dotted groups and bare 12-digit hex.

    Raises:
        ValueError: If the text is not a 6-octet hardware address.
    """
    text = mac.strip().lower()
    if ":" in text or "-" in text:
        octets = _MAC_SPLIT.split(text)
        if len(octets) != 6 or not all(1 <= len(o) <= 2 and _HEX.match(o) for o in octets):
            raise ValueError(f"Invalid MAC address: {mac!r}")
        return ":".join(o.zfill(2) for o in octets)

    digits = text.replace(".", "")
    if len(digits) != 12 or not _HEX.match(digits):
        raise ValueError(f"Invalid MAC address: {mac!r}")
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def is_valid_ipv4(ip: str) -> bool:
    """Checks if a string is a valid IPv4 address."""
    pattern = r"^(\d{1,3}\.){3}\d{1,3}$"
    if re.match(pattern, ip):
        parts = ip.split('.')
        return all(0 <= int(part) <= 255 for part in parts)
    return False


def run_command(command: Union[str, Sequence[str]], timeout: float) -> str:
    """Runs a local command and returns its stdout.

    The child is killed if it outlives ``timeout``.

    Raises:
        subprocess.TimeoutExpired: The command did not finish in time.
        subprocess.CalledProcessError: The command exited non-zero.
        OSError: The command could not be started.
    """
    args: List[str] = shlex.split(command) if isinstance(command, str) else list(command)
    logger.debug("exec: %s (timeout %ss)", " ".join(args), timeout)
    completed = subprocess.run(
        args,
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout,
        check=True,
    )
    if completed.stderr.strip():
        logger.debug("Command '%s' wrote to stderr: %s", args[0], completed.stderr.strip())
    return completed.stdout


class RemoteCommandError(Exception):
    """A command run over SSH failed or timed out."""


class SSHClient:
    """A utility class for handling SSH connections and command execution.

    Never prompts: an encrypted key needs ``key_passphrase`` up front,
    otherwise the connection attempt fails.
    """

    def __init__(self, hostname: str, username: str, password: Optional[str] = None,
                  timeout: int = 10, key_passphrase: Optional[str] = None):
        self.hostname = hostname
        self.username = username
        self.password = password
        self.key_passphrase = key_passphrase
        self.timeout = timeout
        self.client: Optional[paramiko.SSHClient] = None

    def connect(self) -> bool:
        """Connects to the SSH server, using default SSH keys and agent."""
        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            if self.password:
                self.client.connect(hostname=self.hostname, username=self.username,
                                        password=self.password, timeout=self.timeout)
            else:
                self.client.connect(hostname=self.hostname, username=self.username,
                                        timeout=self.timeout, look_for_keys=True, allow_agent=True,
                                        passphrase=self.key_passphrase)
            return True
        except paramiko.ssh_exception.PasswordRequiredException as e:
            logger.error(f"SSH key for {self.username}@{self.hostname} is encrypted and no key_passphrase is set: {e}")
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"Error connecting to {self.hostname}: {e}")
        self.client = None
        return False

    def execute_command(self, command: str, timeout: Optional[float] = None) -> str:
        """Executes a command on the connected SSH server and returns stdout.

        ``timeout`` bounds the whole command, not each read; the channel is
        closed once it runs out.

        Raises:
            RemoteCommandError: Not connected, non-zero exit status, or the
                command did not finish within ``timeout`` seconds.
        """
        if not self.client:
            raise RemoteCommandError("SSH client not connected. Call connect() first.")
        deadline = None if timeout is None else time.monotonic() + timeout
        output, errors = [], []
        try:
            stdin, stdout, stderr = self.client.exec_command(command, timeout=timeout)
            channel = stdout.channel
            while True:
                idle = True
                if channel.recv_ready():
                    output.append(channel.recv(_RECV_BYTES))
                    idle = False
                if channel.recv_stderr_ready():
                    errors.append(channel.recv_stderr(_RECV_BYTES))
                    idle = False
                if idle and channel.exit_status_ready():
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    channel.close()
                    raise RemoteCommandError(f"Command '{command}' timed out after {timeout}s")
                if idle:
                    time.sleep(_POLL_INTERVAL)
            while channel.recv_ready():
                output.append(channel.recv(_RECV_BYTES))
            status = channel.recv_exit_status()
        except (socket.timeout, TimeoutError) as e:
            raise RemoteCommandError(f"Command '{command}' timed out after {timeout}s") from e
        except paramiko.SSHException as e:
            raise RemoteCommandError(f"Error executing command '{command}': {e}") from e

        error = b"".join(errors).decode(errors="replace").strip()
        if status != 0:
            raise RemoteCommandError(f"Command '{command}' exited with status {status}: {error}")
        if error:
            logger.warning(f"Command '{command}' returned error: {error}")
        return b"".join(output).decode(errors="replace")

    def close(self):
        """Closes the SSH connection."""
        if self.client:
            self.client.close()
            self.client = None
