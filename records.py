# records.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class NdpCacheState(Enum):
    """Neighbor cache states, valued by their display names."""
    REACHABLE = "Reachable"
    STALE = "Stale"
    DELAY = "Delay"
    PROBE = "Probe"
    PERMANENT = "Permanent"
    INCOMPLETE = "Incomplete"
    UNREACHABLE = "Unreachable"
    NO_STATE = "No State"
    WAIT_DELETE = "Wait Delete"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DhcpLease:
    hardware_address: str
    ipv4_address: str
    expires_at: Optional[datetime]  # UTC; None means the lease never ends
    hostname: Optional[str] = None
    starts_at: Optional[datetime] = None
    binding_state: str = "active"

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class NdpEntry:
    hardware_address: str
    ip_address: str  # link-local addresses may carry a %zone suffix
    cache_state: NdpCacheState


@dataclass(frozen=True)
class AggregatedRecord:
    hardware_address: str
    ndp_entries: Tuple[NdpEntry, ...] = ()
    dhcp_lease: Optional[DhcpLease] = None


@dataclass(frozen=True)
class Snapshot:
    """One fully merged view of all known hosts.

    ``records`` is a read-only mapping keyed by canonical MAC address.
    """
    records: Mapping[str, AggregatedRecord]
    created_at: datetime
    leases_refreshed_at: Optional[datetime] = None
    neighbors_refreshed_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.records, MappingProxyType):
            object.__setattr__(self, "records", MappingProxyType(dict(self.records)))

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, mac: object) -> bool:
        return mac in self.records

    def __getitem__(self, mac: str) -> AggregatedRecord:
        return self.records[mac]


class NotYetAvailable:
    """Returned by the snapshot store before anything has been published."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_YET_AVAILABLE"


NOT_YET_AVAILABLE = NotYetAvailable()
