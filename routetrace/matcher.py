"""
Address matching — membership and specificity.

Every function here is pure and never raises on malformed addresses:
bad input is a non-match, not an error.
"""

from __future__ import annotations
from ipaddress import IPv4Address, AddressValueError
from typing import Optional, Sequence
import re

from .models import RouteRecord

_ALL_ONES = 0xFFFFFFFF
_DOTTED_QUAD = re.compile(r"^([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})$")


def address_to_int(address: str) -> Optional[int]:
    """Dotted quad → unsigned 32-bit int. None if it doesn't parse."""
    if not isinstance(address, str):
        return None
    m = _DOTTED_QUAD.match(address.strip())
    if not m:
        return None
    # Leading zeros are decimal, not octal: 192.168.001.050 is 192.168.1.50
    try:
        return int(IPv4Address(".".join(str(int(o)) for o in m.groups())))
    except AddressValueError:
        return None


def is_valid_address(address: str) -> bool:
    return address_to_int(address) is not None


def prefix_mask(prefix_length: int) -> int:
    return (_ALL_ONES << (32 - prefix_length)) & _ALL_ONES


def is_address_in_network(address: str, network: str, prefix_length: int) -> bool:
    # bool is an int subclass; True/False are not prefix lengths
    if (not isinstance(prefix_length, int) or isinstance(prefix_length, bool)
            or not 0 <= prefix_length <= 32):
        return False

    addr = address_to_int(address)
    net = address_to_int(network)
    if addr is None or net is None:
        return False

    mask = prefix_mask(prefix_length)
    return (addr & mask) == (net & mask)


def record_contains(record: RouteRecord, address: str) -> bool:
    return is_address_in_network(address, record.network, record.prefix_length)


def most_specific(candidates: Sequence[RouteRecord]) -> RouteRecord:
    """
    Longest prefix wins. Ties go to whichever came first — max() keeps
    the first maximal element, so input order decides.
    """
    if not candidates:
        raise ValueError("most_specific() needs at least one candidate")
    return max(candidates, key=lambda r: r.prefix_length)
