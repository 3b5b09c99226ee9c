# routers/ssh.py
import shlex
import logging

from dynaconf import Dynaconf

from errors import LeaseSourceError, NeighborSourceError
from utils import RemoteCommandError, SSHClient
from .base import BaseRouter

logger = logging.getLogger(__name__)


class SshRouter(BaseRouter):
    """Implementation of BaseRouter for a remote gateway reached over SSH."""

    def __init__(self, config: Dynaconf):
        self.config = config
        self.router_ip = config.get("router_ip")
        self.router_user = config.get("router_user")
        self.dhcp_leases_file = config.get("leases_file", "/var/db/dhcpd/dhcpd.leases")
        self.ndp_cmd = config.get("ndp_cmd", "ndp -an")
        self.ssh_timeout = config.get("ssh_timeout", 10)
        self.key_passphrase = config.get("key_passphrase")

    def _execute(self, command: str, timeout: float) -> str:
        """Runs one command on a fresh connection.

        Raises:
            RemoteCommandError: Connection or command failure.
        """
        ssh_client = SSHClient(hostname=self.router_ip, username=self.router_user, timeout=self.ssh_timeout,
                               key_passphrase=self.key_passphrase)
        try:
            connected = ssh_client.connect()
        except Exception as err:  # pylint: disable=broad-except
            raise RemoteCommandError(f"Could not connect to {self.router_user}@{self.router_ip}: {err}") from err
        if not connected:
            raise RemoteCommandError(f"Could not connect to {self.router_user}@{self.router_ip}")
        try:
            return ssh_client.execute_command(command, timeout=timeout)
        finally:
            # Closing the transport also tears down a timed-out remote command.
            ssh_client.close()

    def read_lease_source(self) -> str:
        try:
            return self._execute(f"cat {shlex.quote(self.dhcp_leases_file)}", timeout=self.ssh_timeout)
        except RemoteCommandError as err:
            raise LeaseSourceError(str(err)) from err

    def run_neighbor_diagnostic(self, timeout: float) -> str:
        try:
            return self._execute(self.ndp_cmd, timeout=timeout)
        except RemoteCommandError as err:
            raise NeighborSourceError(str(err)) from err
