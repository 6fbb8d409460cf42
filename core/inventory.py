"""Read the subnets currently configured on the Kea server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .kea_client import KeaClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ExistingSubnet:
    id: int
    subnet: str


def parse_subnet_entry(entry: Any) -> ExistingSubnet | None:
    if not isinstance(entry, Mapping):
        return None
    subnet_id = entry.get("id")
    subnet = entry.get("subnet")
    if isinstance(subnet_id, bool) or not isinstance(subnet_id, int) or subnet_id < 1:
        return None
    if not isinstance(subnet, str) or not subnet:
        return None
    return ExistingSubnet(id=subnet_id, subnet=subnet)


def list_subnets(client: KeaClient) -> list[ExistingSubnet]:
    results = client.invoke("subnet4-list")
    subnets: list[ExistingSubnet] = []
    for entry in results[0].get_list("subnets"):
        record = parse_subnet_entry(entry)
        if record is None:
            logger.debug("Ignoring malformed subnet4-list entry: %r", entry)
            continue
        subnets.append(record)
    return subnets
