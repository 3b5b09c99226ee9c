# routers/local.py
import logging
import subprocess
from pathlib import Path

from dynaconf import Dynaconf

from errors import LeaseSourceError, NeighborSourceError
from utils import run_command
from .base import BaseRouter

logger = logging.getLogger(__name__)


class LocalRouter(BaseRouter):
    """Reads the lease file and runs ndp on the machine we are running on."""

    def __init__(self, config: Dynaconf):
        self.config = config
        self.dhcp_leases_file = Path(config.get("leases_file", "/var/db/dhcpd/dhcpd.leases"))
        self.ndp_cmd = config.get("ndp_cmd", "ndp -an")

    def read_lease_source(self) -> str:
        try:
            return self.dhcp_leases_file.read_text(encoding="utf-8", errors="replace")
        except OSError as err:
            raise LeaseSourceError(f"Cannot read {self.dhcp_leases_file}: {err}") from err

    def run_neighbor_diagnostic(self, timeout: float) -> str:
        try:
            return run_command(self.ndp_cmd, timeout=timeout)
        except subprocess.TimeoutExpired as err:
            raise NeighborSourceError(f"'{self.ndp_cmd}' timed out after {timeout}s") from err
        except subprocess.CalledProcessError as err:
            stderr = (err.stderr or "").strip()
            raise NeighborSourceError(
                f"'{self.ndp_cmd}' exited with status {err.returncode}: {stderr}") from err
        except OSError as err:
            raise NeighborSourceError(f"Cannot run '{self.ndp_cmd}': {err}") from err
