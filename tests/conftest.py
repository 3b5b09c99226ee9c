from datetime import datetime, timedelta, timezone

import pytest

from errors import LeaseSourceError, NeighborSourceError
from routers.base import BaseRouter

LEASES_TEXT = """\
# The format of this file is documented in the dhcpd.leases(5) manual page.
# This lease file was written by isc-dhcp-4.4.2

# authoring-byte-order entry is generated, DO NOT DELETE
authoring-byte-order little-endian;

server-duid "\\000\\001\\000\\001'\\251\\223\\304\\000\\014)\\032\\213\\316";

lease 192.168.0.29 {
  starts 6 2021/02/06 10:17:27;
  ends 6 2021/02/06 11:17:27;
  cltt 6 2021/02/06 10:17:27;
  binding state active;
  next binding state free;
  rewind binding state free;
  hardware ethernet aa:bb:cc:dd:ee:ff;
  uid "\\001\\252\\273\\314\\335\\356\\377";
}
"""

NDP_TEXT = """\
Neighbor                             Linklayer Address  Netif Expire    S Flags
2001:db8::29                         aa:bb:cc:dd:ee:ff    em0 23h59m58s S
fe80::a8bb:ccff:fedd:eeff%em0        aa:bb:cc:dd:ee:ff    em0 23h59m51s R
"""

# Inside the lifetime of the sample lease above.
NOW = datetime(2021, 2, 6, 10, 30, 0, tzinfo=timezone.utc)


class FakeRouter(BaseRouter):
    """Router returning canned text; set an attribute to an exception to fail that source."""

    def __init__(self, leases=LEASES_TEXT, neighbors=NDP_TEXT):
        self.leases = leases
        self.neighbors = neighbors
        self.lease_calls = 0
        self.neighbor_calls = 0
        self.timeouts = []

    def read_lease_source(self) -> str:
        self.lease_calls += 1
        if isinstance(self.leases, Exception):
            raise self.leases
        return self.leases

    def run_neighbor_diagnostic(self, timeout: float) -> str:
        self.neighbor_calls += 1
        self.timeouts.append(timeout)
        if isinstance(self.neighbors, Exception):
            raise self.neighbors
        return self.neighbors


class StepClock:
    """Returns NOW, then NOW + step, NOW + 2 * step, ..."""

    def __init__(self, start=NOW, step_seconds=30):
        self.current = start
        self.step_seconds = step_seconds

    def __call__(self):
        value = self.current
        self.current = value + timedelta(seconds=self.step_seconds)
        return value


@pytest.fixture
def fake_router():
    return FakeRouter()


@pytest.fixture
def lease_error():
    return LeaseSourceError("leases file missing")


@pytest.fixture
def neighbor_error():
    return NeighborSourceError("ndp timed out")
