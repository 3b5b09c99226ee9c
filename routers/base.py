# routers/base.py
from abc import ABC, abstractmethod


class BaseRouter(ABC):
    """Abstract base class for reading host state off a gateway."""

    @abstractmethod
    def read_lease_source(self) -> str:
        """Returns the full text of the DHCP lease log.

        Raises:
            LeaseSourceError: The log could not be read.
        """

    @abstractmethod
    def run_neighbor_diagnostic(self, timeout: float) -> str:
        """Runs the neighbor listing command and returns its output.

        The command must not run longer than ``timeout`` seconds.

        Raises:
            NeighborSourceError: The command failed or timed out.
        """
