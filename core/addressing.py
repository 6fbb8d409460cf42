"""IPv4 address arithmetic used to derive pools and reservation addresses."""

from __future__ import annotations

import ipaddress
from ipaddress import IPv4Address, IPv4Network

MAX_IPV4 = IPv4Address("255.255.255.255")


class AddressError(ValueError):
    """Raised when a CIDR or address cannot be used."""


def parse_cidr(text: str) -> IPv4Network:
    """Parse ``A.B.C.D/P`` into its network, masking off any host bits."""

    if not isinstance(text, str) or "/" not in text:
        raise AddressError(f"Expected IPv4 CIDR in A.B.C.D/P form, got {text!r}")
    address, _, prefix = text.strip().partition("/")
    if not (prefix.isascii() and prefix.isdigit()) or not 0 <= int(prefix) <= 32:
        raise AddressError(f"Prefix length must be 0..32 in {text!r}")
    try:
        return IPv4Network(f"{address}/{int(prefix)}", strict=False)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError, ValueError) as exc:
        raise AddressError(f"Invalid IPv4 CIDR {text!r}: {exc}") from exc


def network_address(net: IPv4Network) -> IPv4Address:
    return net.network_address


def broadcast_address(net: IPv4Network) -> IPv4Address:
    return net.broadcast_address


def first_usable(net: IPv4Network) -> IPv4Address:
    """Lowest address a host may use.

    /31 links use both addresses (RFC 3021) and a /32 is its own single
    usable address, so neither skips the network address.
    """

    if net.prefixlen >= 31:
        return net.network_address
    return net.network_address + 1


def last_usable(net: IPv4Network) -> IPv4Address:
    if net.prefixlen >= 31:
        return net.broadcast_address
    return net.broadcast_address - 1


def pool_range(net: IPv4Network) -> str:
    """Return the Kea pool string ``<first-usable>-<broadcast>``."""

    return f"{first_usable(net)}-{net.broadcast_address}"


def successor(address: IPv4Address) -> IPv4Address:
    if address == MAX_IPV4:
        raise AddressError("Cannot advance past 255.255.255.255")
    return address + 1


def prefix_size(net: IPv4Network) -> int:
    return 1 << (32 - net.prefixlen)


def is_assignable(net: IPv4Network, address: IPv4Address) -> bool:
    """Whether ``address`` may be handed to a host inside ``net``."""

    if net.prefixlen >= 31:
        return address in net
    return net.network_address < address < net.broadcast_address


def ranges_overlap(a: IPv4Network, b: IPv4Network) -> bool:
    return a.network_address <= b.broadcast_address and b.network_address <= a.broadcast_address
