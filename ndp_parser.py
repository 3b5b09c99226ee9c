# ndp_parser.py
"""Decoder for IPv6 neighbor cache listings.

Understands the BSD ``ndp -an`` table::

    Neighbor                      Linklayer Address  Netif Expire    S Flags
    fe80::1%em0                   aa:bb:cc:dd:ee:ff    em0 23h59m58s S R

and Linux ``ip -6 neigh show`` lines::

    fe80::1 dev eth0 lladdr aa:bb:cc:dd:ee:ff router STALE
"""
import logging
import ipaddress
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import RecordParseError
from records import NdpCacheState, NdpEntry
from utils import format_mac

logger = logging.getLogger(__name__)

_STATE_TOKENS = {
    "r": NdpCacheState.REACHABLE,
    "reachable": NdpCacheState.REACHABLE,
    "s": NdpCacheState.STALE,
    "stale": NdpCacheState.STALE,
    "d": NdpCacheState.DELAY,
    "delay": NdpCacheState.DELAY,
    "p": NdpCacheState.PROBE,
    "probe": NdpCacheState.PROBE,
    "i": NdpCacheState.INCOMPLETE,
    "incomplete": NdpCacheState.INCOMPLETE,
    "permanent": NdpCacheState.PERMANENT,
    "u": NdpCacheState.UNREACHABLE,
    "unreachable": NdpCacheState.UNREACHABLE,
    "failed": NdpCacheState.UNREACHABLE,
    "n": NdpCacheState.NO_STATE,
    "none": NdpCacheState.NO_STATE,
    "noarp": NdpCacheState.NO_STATE,
    "w": NdpCacheState.WAIT_DELETE,
    "?": NdpCacheState.UNKNOWN,
}

_BSD_INCOMPLETE_MAC = "(incomplete)"


@dataclass
class NeighborParseResult:
    entries: Dict[str, List[NdpEntry]] = field(default_factory=dict)
    errors: List[RecordParseError] = field(default_factory=list)
    incomplete: int = 0


def parse_state(token: str) -> NdpCacheState:
    """Maps a state token from either tool to a cache state."""
    return _STATE_TOKENS.get(token.lower(), NdpCacheState.UNKNOWN)


def _check_address(address: str, line_number: int) -> None:
    try:
        ipaddress.IPv6Address(address.split("%", 1)[0])
    except ValueError as err:
        raise RecordParseError(f"bad IPv6 address {address!r}", line_number) from err


def _canonical_mac(mac: str, line_number: int) -> str:
    try:
        return format_mac(mac)
    except ValueError as err:
        raise RecordParseError(str(err), line_number) from err


def _parse_bsd_line(parts: List[str], line_number: int) -> Optional[NdpEntry]:
    """Neighbor, Linklayer Address, Netif, Expire, S, [Flags]."""
    if len(parts) < 5:
        raise RecordParseError(f"expected at least 5 columns, got {len(parts)}", line_number)
    address, mac, _netif, expire, state_token = parts[:5]
    _check_address(address, line_number)

    state = parse_state(state_token)
    if state is NdpCacheState.INCOMPLETE or mac == _BSD_INCOMPLETE_MAC:
        return None
    if expire == "permanent":
        state = NdpCacheState.PERMANENT
    return NdpEntry(
        hardware_address=_canonical_mac(mac, line_number),
        ip_address=address,
        cache_state=state,
    )


def _parse_ip_neigh_line(parts: List[str], line_number: int) -> Optional[NdpEntry]:
    """<addr> dev <if> [lladdr <mac>] [router] [proxy] <STATE>."""
    address, interface = parts[0], parts[2]
    _check_address(address, line_number)

    state = parse_state(parts[-1]) if len(parts) > 3 else NdpCacheState.UNKNOWN
    mac = None
    if "lladdr" in parts:
        index = parts.index("lladdr")
        if index + 1 >= len(parts):
            raise RecordParseError("lladdr without an address", line_number)
        mac = parts[index + 1]
    if state is NdpCacheState.INCOMPLETE or mac is None:
        return None

    if "%" not in address and ipaddress.IPv6Address(address).is_link_local:
        address = f"{address}%{interface}"
    return NdpEntry(
        hardware_address=_canonical_mac(mac, line_number),
        ip_address=address,
        cache_state=state,
    )


def parse_neighbor_line(line: str, line_number: int = 0) -> Optional[NdpEntry]:
    """Parses one data line; returns None for entries without a MAC address.

    Raises:
        RecordParseError: If the line fits neither listing format.
    """
    parts = line.split()
    if len(parts) >= 3 and parts[1] == "dev":
        return _parse_ip_neigh_line(parts, line_number)
    return _parse_bsd_line(parts, line_number)


def _is_header(line: str) -> bool:
    return line.startswith("Neighbor") and "Linklayer" in line


def parse_neighbors(text: str) -> NeighborParseResult:
    """Parses a neighbor listing into entries grouped by canonical MAC.

    Every resolved line is kept, in input order, so a host with a global and
    a link-local address gets two entries. Incomplete entries are counted
    and dropped; malformed lines are recorded in ``errors`` and skipped.
    """
    result = NeighborParseResult()
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or _is_header(line):
            continue
        try:
            entry = parse_neighbor_line(line, line_number)
        except RecordParseError as err:
            err.text = line
            logger.warning("Skipping neighbor line: %s", err)
            result.errors.append(err)
            continue
        if entry is None:
            result.incomplete += 1
            continue
        result.entries.setdefault(entry.hardware_address, []).append(entry)

    logger.debug("Parsed %d neighbor addresses, %d incomplete, %d errors",
                 sum(len(v) for v in result.entries.values()), result.incomplete, len(result.errors))
    return result
