# refresher.py
import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from aggregate import merge
from errors import AggregationInconsistency, LeaseSourceError, NeighborSourceError
from lease_parser import parse_leases
from ndp_parser import parse_neighbors
from records import DhcpLease, NdpEntry
from routers.base import BaseRouter
from snapshot import SnapshotStore

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    AGGREGATING = "aggregating"
    PUBLISHED = "published"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshScheduler:
    """Periodically rebuilds the snapshot from the router's two sources.

    A source that fails on a cycle is replaced by its last good parse, so one
    broken source never blanks the other's fresh data. Only when both fail is
    the cycle abandoned, leaving the previous snapshot in place.
    """

    def __init__(self, router: BaseRouter, store: SnapshotStore, interval: float = 30.0,
                 command_timeout: float = 10.0, clock: Callable[[], datetime] = _utcnow):
        self.router = router
        self.store = store
        self.interval = interval
        self.command_timeout = command_timeout
        self.clock = clock
        self.state = SchedulerState.IDLE
        self.stats: Dict[str, int] = {
            "cycles": 0,
            "published": 0,
            "skipped": 0,
            "lease_failures": 0,
            "neighbor_failures": 0,
            "lease_parse_errors": 0,
            "neighbor_parse_errors": 0,
        }
        self._last_leases: Dict[str, DhcpLease] = {}
        self._last_neighbors: Dict[str, List[NdpEntry]] = {}
        self._leases_at: Optional[datetime] = None
        self._neighbors_at: Optional[datetime] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _acquire_leases(self) -> Optional[str]:
        try:
            return self.router.read_lease_source()
        except LeaseSourceError as err:
            self.stats["lease_failures"] += 1
            logger.warning("Lease source unavailable: %s", err)
            return None

    def _acquire_neighbors(self) -> Optional[str]:
        try:
            return self.router.run_neighbor_diagnostic(self.command_timeout)
        except NeighborSourceError as err:
            self.stats["neighbor_failures"] += 1
            logger.warning("Neighbor source unavailable: %s", err)
            return None

    def _current_leases(self, text: Optional[str], now: datetime) -> Dict[str, DhcpLease]:
        if text is None:
            if self._leases_at is not None:
                logger.info("Reusing leases from %s", self._leases_at.isoformat())
            # The cached leases may have run out since they were parsed.
            return {mac: lease for mac, lease in self._last_leases.items() if not lease.is_expired(now)}
        parsed = parse_leases(text, now)
        self.stats["lease_parse_errors"] += len(parsed.errors)
        self._last_leases = parsed.leases
        self._leases_at = now
        return parsed.leases

    def _current_neighbors(self, text: Optional[str], now: datetime) -> Dict[str, List[NdpEntry]]:
        if text is None:
            if self._neighbors_at is not None:
                logger.info("Reusing neighbor entries from %s", self._neighbors_at.isoformat())
            return self._last_neighbors
        parsed = parse_neighbors(text)
        self.stats["neighbor_parse_errors"] += len(parsed.errors)
        self._last_neighbors = parsed.entries
        self._neighbors_at = now
        return parsed.entries

    def run_cycle(self) -> bool:
        """Acquires, parses, merges and publishes once.

        Returns:
            bool: True if a new snapshot was published.
        """
        self.stats["cycles"] += 1
        self.state = SchedulerState.ACQUIRING
        now = self.clock()
        lease_text = self._acquire_leases()
        neighbor_text = self._acquire_neighbors()
        if lease_text is None and neighbor_text is None:
            self.stats["skipped"] += 1
            self.state = SchedulerState.IDLE
            logger.error("Both sources unavailable, keeping the previous snapshot")
            return False

        self.state = SchedulerState.AGGREGATING
        leases = self._current_leases(lease_text, now)
        neighbors = self._current_neighbors(neighbor_text, now)
        try:
            snapshot = merge(leases, neighbors, created_at=now,
                             leases_refreshed_at=self._leases_at,
                             neighbors_refreshed_at=self._neighbors_at)
        except AggregationInconsistency:
            self.stats["skipped"] += 1
            self.state = SchedulerState.IDLE
            logger.exception("Inconsistent merge result, snapshot not published")
            return False

        generation = self.store.publish(snapshot)
        self.stats["published"] += 1
        self.state = SchedulerState.PUBLISHED
        logger.info("Published snapshot #%d: %d hosts (%d leases, %d with neighbor entries)",
                    generation, len(snapshot), len(leases), len(neighbors))
        return True

    def _run(self):
        logger.info("Refresh loop started, interval %ss", self.interval)
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except Exception:  # pylint: disable=broad-except
                self.stats["skipped"] += 1
                self.state = SchedulerState.IDLE
                logger.exception("Unexpected error in refresh cycle")
            self._stop.wait(self.interval)
        logger.info("Refresh loop stopped")

    def start(self) -> threading.Thread:
        """Starts the refresh loop in a daemon thread."""
        if self._thread and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="refresh", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None):
        """Asks the loop to exit and waits for the current cycle to finish."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None
