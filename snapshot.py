# snapshot.py
import logging
import threading
from typing import Union

from records import NOT_YET_AVAILABLE, NotYetAvailable, Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Holds the one published Snapshot.

    Readers get whatever reference was last assigned and never take a lock.
    Snapshots are immutable, so swapping the reference is the whole publish.
    """

    def __init__(self):
        self._current: Union[Snapshot, NotYetAvailable] = NOT_YET_AVAILABLE
        self._publish_lock = threading.Lock()
        self.generation = 0

    def current(self) -> Union[Snapshot, NotYetAvailable]:
        """Returns the visible Snapshot, or NOT_YET_AVAILABLE before the first publish."""
        return self._current

    def publish(self, snapshot: Snapshot) -> int:
        """Makes ``snapshot`` visible to all readers.

        The last snapshot published is the one served, whatever its
        ``created_at`` says, so a wall clock stepping backwards cannot pin an
        old snapshot in place.

        Returns:
            int: The generation number of the published snapshot.
        """
        if not isinstance(snapshot, Snapshot):
            raise TypeError(f"expected Snapshot, got {type(snapshot).__name__}")
        with self._publish_lock:
            self._current = snapshot
            self.generation += 1
            generation = self.generation
        logger.debug("Published snapshot #%d with %d hosts", generation, len(snapshot))
        return generation
