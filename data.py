# data.py
import json
import logging
from datetime import datetime
from typing import Dict, Optional

from lease_parser import LEASE_TIME_FORMAT
from records import AggregatedRecord, DhcpLease, NdpEntry, Snapshot

logger = logging.getLogger(__name__)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.strftime(LEASE_TIME_FORMAT) if value else None


def lease_to_dict(lease: DhcpLease) -> Dict:
    return {
        "mac_address": lease.hardware_address,
        "ip4_address": lease.ipv4_address,
        "expire_at": _format_time(lease.expires_at),
        "hostname": lease.hostname,
    }


def ndp_entry_to_dict(entry: NdpEntry) -> Dict:
    return {
        "mac_address": entry.hardware_address,
        "ip_address": entry.ip_address,
        "cache_state": entry.cache_state.value,
    }


def record_to_dict(record: AggregatedRecord) -> Dict:
    return {
        "ndp_entries": [ndp_entry_to_dict(entry) for entry in record.ndp_entries],
        "dhcp_lease": lease_to_dict(record.dhcp_lease) if record.dhcp_lease else None,
    }


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Dict]:
    """Converts a Snapshot to the status document keyed by MAC address.

    Lease times are rendered in the lease file's own format, in UTC.
    """
    return {mac: record_to_dict(record) for mac, record in snapshot.records.items()}


def dump_snapshot(snapshot: Snapshot, indent: Optional[int] = 4) -> str:
    """Serializes a Snapshot to JSON text."""
    return json.dumps(snapshot_to_dict(snapshot), indent=indent)
