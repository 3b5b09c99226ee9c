# lease_parser.py
"""Decoder for ISC dhcpd lease logs (``dhcpd.leases``).

The file is an append-only journal: each ``lease <ip> { ... }`` block is the
state of that address at the time it was written, so the same address and
the same MAC show up many times. Later blocks describe newer state.
"""
import re
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from errors import RecordParseError
from records import DhcpLease
from utils import format_mac, is_valid_ipv4

logger = logging.getLogger(__name__)

LEASE_TIME_FORMAT = "%Y/%m/%d %H:%M:%S"

_LEASE_START = re.compile(r"^lease\s+(?P<ip>\S+)\s*\{$")
_TRAILING_COMMENT = re.compile(r";\s*#.*$")
_TIME_STMT = re.compile(r"^(?P<kind>starts|ends)\s+(?P<value>.+);$")
_BINDING_STMT = re.compile(r"^binding\s+state\s+(?P<state>[\w-]+);$")
_HARDWARE_STMT = re.compile(r"^hardware\s+\S+\s+(?P<mac>[0-9A-Fa-f:\-.]+);$")
_HOSTNAME_STMT = re.compile(r'^client-hostname\s+"(?P<hostname>(?:[^"\\]|\\.)*)";$')
_DATE_VALUE = re.compile(r"^\d\s+(?P<stamp>\d{4}/\d{1,2}/\d{1,2}\s+\d{1,2}:\d{2}:\d{2})$")
_EPOCH_VALUE = re.compile(r"^epoch\s+(?P<seconds>\d+)$")
_STRING_ESCAPE = re.compile(rb"\\(?:([0-7]{1,3})|(.))", re.DOTALL)


@dataclass
class LeaseParseResult:
    leases: Dict[str, DhcpLease] = field(default_factory=dict)
    errors: List[RecordParseError] = field(default_factory=list)
    blocks: int = 0


@dataclass
class _LeaseBlock:
    ip: str
    line_number: int
    statements: List[str] = field(default_factory=list)


def _unescape(value: str) -> str:
    """Undoes dhcpd string escaping: \\ooo octal bytes plus \\" and \\\\."""
    def replace(match):
        if match.group(1):
            return bytes([int(match.group(1), 8) & 0xFF])
        return match.group(2)

    return _STRING_ESCAPE.sub(replace, value.encode("utf-8")).decode("utf-8", errors="replace")


def _parse_time(value: str, line_number: int) -> Optional[datetime]:
    """Decodes a starts/ends value; None means ``never``."""
    value = value.strip()
    if value == "never":
        return None
    match = _EPOCH_VALUE.match(value)
    if match:
        return datetime.fromtimestamp(int(match.group("seconds")), tz=timezone.utc)
    match = _DATE_VALUE.match(value)
    if match:
        try:
            stamp = datetime.strptime(match.group("stamp"), LEASE_TIME_FORMAT)
        except ValueError as err:
            raise RecordParseError(f"bad timestamp {value!r}: {err}", line_number) from err
        return stamp.replace(tzinfo=timezone.utc)
    raise RecordParseError(f"bad timestamp {value!r}", line_number)


def _decode_block(block: _LeaseBlock) -> Optional[DhcpLease]:
    """Turns one closed block into a lease, or None if it is not a candidate."""
    if not is_valid_ipv4(block.ip):
        raise RecordParseError(f"bad lease address {block.ip!r}", block.line_number)

    times: Dict[str, Optional[datetime]] = {}
    binding_state = "active"  # dhcpd 2.x wrote no binding state
    mac = None
    hostname = None
    for stmt in block.statements:
        match = _TIME_STMT.match(stmt)
        if match:
            times[match.group("kind")] = _parse_time(match.group("value"), block.line_number)
            continue
        match = _BINDING_STMT.match(stmt)
        if match:
            binding_state = match.group("state")
            continue
        match = _HARDWARE_STMT.match(stmt)
        if match:
            mac = match.group("mac")
            continue
        match = _HOSTNAME_STMT.match(stmt)
        if match:
            hostname = _unescape(match.group("hostname"))

    if binding_state != "active":
        return None
    if mac is None:
        raise RecordParseError(f"active lease {block.ip} has no hardware address", block.line_number)
    if "ends" not in times:
        raise RecordParseError(f"active lease {block.ip} has no ends statement", block.line_number)
    try:
        mac = format_mac(mac)
    except ValueError as err:
        raise RecordParseError(str(err), block.line_number) from err

    return DhcpLease(
        hardware_address=mac,
        ipv4_address=block.ip,
        expires_at=times["ends"],
        hostname=hostname or None,
        starts_at=times.get("starts"),
        binding_state=binding_state,
    )


def _iter_blocks(text: str, result: LeaseParseResult):
    """Yields closed lease blocks in file order.

    Other brace blocks (failover peers, lease6, host declarations) are skipped
    and a block still open at end of text is dropped.
    """
    block: Optional[_LeaseBlock] = None
    skip_depth = 0
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        line = _TRAILING_COMMENT.sub(";", line)

        if skip_depth:
            if line.endswith("{"):
                skip_depth += 1
            elif line.startswith("}"):
                skip_depth -= 1
            continue

        if block is None:
            match = _LEASE_START.match(line)
            if match:
                block = _LeaseBlock(ip=match.group("ip"), line_number=line_number)
            elif line.endswith("{"):
                skip_depth = 1
            continue

        if line.startswith("}"):
            result.blocks += 1
            yield block
            block = None
        else:
            block.statements.append(line)

    if block is not None:
        logger.debug("Discarding unterminated lease block for %s at line %d", block.ip, block.line_number)


def parse_leases(text: str, now: Optional[datetime] = None) -> LeaseParseResult:
    """Parses lease log text into the current lease of each MAC address.

    Blocks are applied oldest to newest; the last ``active`` block for a MAC
    wins and non-active blocks never displace it. Leases already expired at
    ``now`` (default: current UTC time) are left out.

    Args:
        text: Full contents of the lease file.
        now: Reference time for the expiry check.

    Returns:
        LeaseParseResult: Leases keyed by canonical MAC, plus the errors of
        any blocks that were skipped.
    """
    now = now or datetime.now(timezone.utc)
    result = LeaseParseResult()
    latest: Dict[str, DhcpLease] = {}

    for block in _iter_blocks(text, result):
        try:
            lease = _decode_block(block)
        except RecordParseError as err:
            err.text = block.ip
            logger.warning("Skipping lease block: %s", err)
            result.errors.append(err)
            continue
        if lease is not None:
            latest[lease.hardware_address] = lease

    for mac, lease in latest.items():
        if lease.is_expired(now):
            logger.debug("Lease %s for %s expired at %s", lease.ipv4_address, mac, lease.expires_at)
            continue
        result.leases[mac] = lease

    logger.debug("Parsed %d lease blocks, %d current leases, %d errors",
                 result.blocks, len(result.leases), len(result.errors))
    return result
