"""Subnet ID allocation and overlap detection against the server inventory."""

from __future__ import annotations

import logging
from ipaddress import IPv4Network
from typing import Iterable

from .addressing import AddressError, parse_cidr, ranges_overlap
from .inventory import ExistingSubnet

logger = logging.getLogger(__name__)


def next_free_id(existing_ids: Iterable[int]) -> int:
    """Return the smallest positive integer not in ``existing_ids``.

    Kea enumerates subnets in no guaranteed order, so the IDs are sorted
    before looking for the first gap.
    """

    candidate = 1
    for subnet_id in sorted(set(existing_ids)):
        if subnet_id < candidate:
            continue
        if subnet_id > candidate:
            break
        candidate += 1
    return candidate


def find_overlap(existing: Iterable[ExistingSubnet], candidate: IPv4Network | str) -> ExistingSubnet | None:
    """Return the first existing subnet whose address range meets ``candidate``."""

    candidate_text = str(candidate)
    candidate_net = candidate if isinstance(candidate, IPv4Network) else parse_cidr(candidate)
    for record in existing:
        if record.subnet == candidate_text:
            return record
        try:
            current = parse_cidr(record.subnet)
        except AddressError:
            logger.debug("Cannot compare against unparseable subnet %r (id %d)", record.subnet, record.id)
            continue
        if ranges_overlap(current, candidate_net):
            return record
    return None


def overlaps(existing: Iterable[ExistingSubnet], candidate: IPv4Network | str) -> bool:
    return find_overlap(existing, candidate) is not None
