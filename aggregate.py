# aggregate.py
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from errors import AggregationInconsistency
from records import AggregatedRecord, DhcpLease, NdpEntry, Snapshot
from utils import format_mac

logger = logging.getLogger(__name__)


def merge(leases: Mapping[str, DhcpLease],
          neighbors: Mapping[str, Iterable[NdpEntry]],
          created_at: Optional[datetime] = None,
          leases_refreshed_at: Optional[datetime] = None,
          neighbors_refreshed_at: Optional[datetime] = None) -> Snapshot:
    """Joins leases and neighbor entries on MAC address into a Snapshot.

    Keys are canonicalized here, so the inputs may use any MAC spelling.
    Records are inserted in MAC order, which makes the result independent of
    the ordering of either input.

    Raises:
        AggregationInconsistency: A lease is filed under a MAC other than its own,
            or two input keys collapse onto the same MAC.
    """
    lease_by_mac: Dict[str, DhcpLease] = {}
    for key, lease in leases.items():
        mac = format_mac(key)
        if format_mac(lease.hardware_address) != mac:
            raise AggregationInconsistency(
                f"lease {lease.ipv4_address} for {lease.hardware_address} filed under {key}")
        if mac in lease_by_mac:
            raise AggregationInconsistency(f"two leases for {mac}")
        lease_by_mac[mac] = lease

    entries_by_mac: Dict[str, List[NdpEntry]] = {}
    for key, entries in neighbors.items():
        entries_by_mac.setdefault(format_mac(key), []).extend(entries)

    records = {}
    for mac in sorted(lease_by_mac.keys() | entries_by_mac.keys()):
        records[mac] = AggregatedRecord(
            hardware_address=mac,
            ndp_entries=tuple(entries_by_mac.get(mac, ())),
            dhcp_lease=lease_by_mac.get(mac),
        )

    logger.debug("Merged %d leases and %d neighbor hosts into %d records",
                 len(lease_by_mac), len(entries_by_mac), len(records))
    return Snapshot(
        records=records,
        created_at=created_at or datetime.now(timezone.utc),
        leases_refreshed_at=leases_refreshed_at,
        neighbors_refreshed_at=neighbors_refreshed_at,
    )
