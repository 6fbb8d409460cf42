"""Provision Kea subnets and host reservations for an activated device."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from ipaddress import IPv4Address, IPv4Network
from typing import Any, Mapping

from models.settings import RunMode
from models.workflow import PortDescriptor, Workflow

from .addressing import (
    AddressError,
    first_usable,
    is_assignable,
    network_address,
    parse_cidr,
    pool_range,
    successor,
)
from .allocation import find_overlap, next_free_id
from .inventory import ExistingSubnet, list_subnets
from .kea_client import KeaClient, KeaCommandError, KeaError, KeaTransportError
from .loaders import ordered_ports

logger = logging.getLogger(__name__)

DEFAULT_LIFETIME = 300

SKIP_INVALID_CIDR = "invalid-cidr"
SKIP_OVERLAP = "overlap"


class ProvisioningConfigError(ValueError):
    """The workflow and stencil cannot be provisioned as given."""


class ProvisioningError(RuntimeError):
    """A run stopped part way; ``result`` describes what was done before it stopped."""

    def __init__(self, message: str, result: "ProvisionResult") -> None:
        super().__init__(message)
        self.result = result


def flex_id(hostname: str, port: str) -> str:
    # Kea matches on the literal string, quotes included.
    return f"'{hostname}-{port}'"


@dataclass(slots=True)
class CreatedSubnet:
    id: int
    subnet: str
    pool: str


@dataclass(slots=True)
class CreatedReservation:
    subnet_id: int
    ip_address: str
    flex_id: str
    hostname: str
    port: str
    ordinal: int


@dataclass(slots=True)
class SkippedSubnet:
    subnet: str
    reason: str
    detail: str = ""


@dataclass(slots=True)
class FailedReservation:
    subnet_id: int
    port: str
    ordinal: int
    ip_address: str | None
    error: str


@dataclass(slots=True)
class RunJournal:
    """Append-only record of the mutations a run performed (or would perform)."""

    subnets: list[CreatedSubnet] = field(default_factory=list)
    reservations: list[CreatedReservation] = field(default_factory=list)

    @property
    def subnet_ids(self) -> list[int]:
        return [item.id for item in self.subnets]

    @property
    def reservation_addresses(self) -> list[tuple[int, str]]:
        return [(item.subnet_id, item.ip_address) for item in self.reservations]

    def as_inventory(self) -> list[ExistingSubnet]:
        return [ExistingSubnet(id=item.id, subnet=item.subnet) for item in self.subnets]


@dataclass(slots=True)
class ProvisionResult:
    hostname: str
    mode: RunMode
    journal: RunJournal = field(default_factory=RunJournal)
    skipped: list[SkippedSubnet] = field(default_factory=list)
    failed_reservations: list[FailedReservation] = field(default_factory=list)
    config_written: bool = False
    rolled_back: bool = False
    rollback_errors: list[str] = field(default_factory=list)

    @property
    def subnets_created(self) -> int:
        return len(self.journal.subnets)

    @property
    def reservations_created(self) -> int:
        return len(self.journal.reservations)

    @property
    def reservations_failed(self) -> int:
        return len(self.failed_reservations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "mode": self.mode.value,
            "simulated": self.mode is RunMode.DRY_RUN,
            "subnets_created": self.subnets_created,
            "reservations_created": self.reservations_created,
            "reservations_failed": self.reservations_failed,
            "subnets_skipped": len(self.skipped),
            "config_written": self.config_written,
            "rolled_back": self.rolled_back,
            "rollback_errors": list(self.rollback_errors),
            "journal": {
                "subnets": [asdict(item) for item in self.journal.subnets],
                "reservations": [asdict(item) for item in self.journal.reservations],
            },
            "skipped": [asdict(item) for item in self.skipped],
            "failed_reservations": [asdict(item) for item in self.failed_reservations],
        }


def validate_inputs(workflow: Workflow, stencil: Mapping[str, PortDescriptor]) -> None:
    if not workflow.subnets:
        raise ProvisioningConfigError("Workflow has no subnets to provision")
    known = set(workflow.subnets)
    for key, port in stencil.items():
        if port.subnet not in known:
            raise ProvisioningConfigError(
                f"Stencil port {key} ({port.port}) is bound to {port.subnet}, "
                f"which is not one of the workflow subnets {list(workflow.subnets)}"
            )


def build_subnet_payload(subnet_id: int, network: IPv4Network, lifetime: int) -> dict[str, Any]:
    return {
        "subnet4": [
            {
                "id": subnet_id,
                "subnet": str(network),
                "valid-lifetime": lifetime,
                "min-valid-lifetime": lifetime,
                "max-valid-lifetime": lifetime,
                "pools": [{"pool": pool_range(network), "option-data": []}],
                "option-data": [{"name": "routers", "data": str(network_address(network))}],
            }
        ]
    }


def build_reservation_payload(subnet_id: int, ip_address: IPv4Address, flex: str, hostname: str) -> dict[str, Any]:
    return {
        "reservation": {
            "subnet-id": subnet_id,
            "ip-address": str(ip_address),
            "flex-id": flex,
            "hostname": hostname,
        }
    }


class Provisioner:
    """Drive one workflow through Kea, one command at a time."""

    def __init__(self, client: KeaClient, *, lifetime: int = DEFAULT_LIFETIME, rollback: bool = True) -> None:
        self._client = client
        self._lifetime = lifetime
        self._rollback_enabled = rollback

    def provision(self, workflow: Workflow, stencil: Mapping[str, PortDescriptor]) -> ProvisionResult:
        validate_inputs(workflow, stencil)

        result = ProvisionResult(hostname=workflow.hostname, mode=self._client.mode)
        logger.info(
            "Provisioning %s (%s %s): %d subnet(s), %d stencil port(s), mode=%s",
            workflow.hostname,
            workflow.vendor,
            workflow.model,
            len(workflow.subnets),
            len(stencil),
            result.mode.value,
        )

        try:
            for cidr in workflow.subnets:
                self._provision_subnet(workflow, stencil, cidr, result)
            self._write_config(result)
        except KeaTransportError as exc:
            logger.error("Lost contact with Kea: %s", exc)
            raise ProvisioningError(f"Transport failure: {exc}", result) from exc

        logger.info(
            "Finished %s: %d subnet(s) created, %d skipped, %d reservation(s) created, %d failed",
            workflow.hostname,
            result.subnets_created,
            len(result.skipped),
            result.reservations_created,
            result.reservations_failed,
        )
        return result

    def _provision_subnet(
        self,
        workflow: Workflow,
        stencil: Mapping[str, PortDescriptor],
        cidr: str,
        result: ProvisionResult,
    ) -> None:
        logger.info("Building subnet %s", cidr)
        try:
            network = parse_cidr(cidr)
        except AddressError as exc:
            logger.warning("Skipping %s: %s", cidr, exc)
            result.skipped.append(SkippedSubnet(subnet=cidr, reason=SKIP_INVALID_CIDR, detail=str(exc)))
            return

        # Refetched every pass: earlier passes changed the server's subnets.
        inventory = list_subnets(self._client) + result.journal.as_inventory()
        subnet_id = next_free_id(record.id for record in inventory)
        logger.debug("First free subnet id is %d", subnet_id)

        conflict = find_overlap(inventory, network)
        if conflict is not None:
            detail = f"overlaps existing subnet {conflict.subnet} (id {conflict.id})"
            logger.warning("Skipping %s: %s", cidr, detail)
            result.skipped.append(SkippedSubnet(subnet=cidr, reason=SKIP_OVERLAP, detail=detail))
            return

        pool = pool_range(network)
        logger.info("Creating subnet %s as id %d with pool %s", network, subnet_id, pool)
        try:
            self._client.invoke("subnet4-add", build_subnet_payload(subnet_id, network, self._lifetime))
        except KeaError as exc:
            logger.error("subnet4-add for %s failed: %s", network, exc)
            if self._rollback_enabled:
                self._rollback(result)
            raise ProvisioningError(f"Could not create subnet {network}: {exc}", result) from exc

        result.journal.subnets.append(CreatedSubnet(id=subnet_id, subnet=str(network), pool=pool))
        self._reserve_ports(workflow, stencil, cidr, network, subnet_id, result)

    def _reserve_ports(
        self,
        workflow: Workflow,
        stencil: Mapping[str, PortDescriptor],
        cidr: str,
        network: IPv4Network,
        subnet_id: int,
        result: ProvisionResult,
    ) -> None:
        # The first port bound to the subnet gets first-usable. From there the
        # cursor moves on every ordinal, matching or not, so later addresses
        # keep the stencil's ordinal spacing.
        cursor: IPv4Address | None = None
        started = False
        for ordinal, port in ordered_ports(stencil):
            if port.subnet == cidr:
                if not started:
                    cursor = first_usable(network)
                    started = True
                self._reserve(workflow, port, ordinal, network, subnet_id, cursor, result)
            if started and cursor is not None:
                try:
                    cursor = successor(cursor)
                except AddressError:
                    cursor = None

    def _reserve(
        self,
        workflow: Workflow,
        port: PortDescriptor,
        ordinal: int,
        network: IPv4Network,
        subnet_id: int,
        ip_address: IPv4Address | None,
        result: ProvisionResult,
    ) -> None:
        if ip_address is None or not is_assignable(network, ip_address):
            error = f"no usable address left in {network} for ordinal {ordinal}"
            logger.warning("Not reserving port %s: %s", port.port, error)
            result.failed_reservations.append(
                FailedReservation(
                    subnet_id=subnet_id,
                    port=port.port,
                    ordinal=ordinal,
                    ip_address=str(ip_address) if ip_address is not None else None,
                    error=error,
                )
            )
            return

        flex = flex_id(workflow.hostname, port.port)
        logger.info("Reserving %s for port %s [%d] flex-id %s", ip_address, port.port, ordinal, flex)
        try:
            self._client.invoke(
                "reservation-add",
                build_reservation_payload(subnet_id, ip_address, flex, workflow.hostname),
            )
        except KeaCommandError as exc:
            logger.warning("reservation-add for port %s (%s) failed: %s", port.port, ip_address, exc.text)
            result.failed_reservations.append(
                FailedReservation(
                    subnet_id=subnet_id,
                    port=port.port,
                    ordinal=ordinal,
                    ip_address=str(ip_address),
                    error=exc.text or str(exc),
                )
            )
            return

        result.journal.reservations.append(
            CreatedReservation(
                subnet_id=subnet_id,
                ip_address=str(ip_address),
                flex_id=flex,
                hostname=workflow.hostname,
                port=port.port,
                ordinal=ordinal,
            )
        )

    def _write_config(self, result: ProvisionResult) -> None:
        try:
            self._client.invoke("config-write")
        except KeaCommandError as exc:
            logger.warning("config-write failed, changes will not survive a Kea restart: %s", exc.text)
            return
        result.config_written = True

    def _rollback(self, result: ProvisionResult) -> None:
        journal = result.journal
        if not journal.subnets and not journal.reservations:
            return

        logger.warning(
            "Rolling back %d reservation(s) and %d subnet(s)",
            len(journal.reservations),
            len(journal.subnets),
        )
        for reservation in reversed(journal.reservations):
            try:
                self._client.invoke(
                    "reservation-del",
                    {"subnet-id": reservation.subnet_id, "ip-address": reservation.ip_address},
                )
            except KeaError as exc:
                logger.error("Could not delete reservation %s: %s", reservation.ip_address, exc)
                result.rollback_errors.append(f"reservation {reservation.ip_address}: {exc}")
        for subnet in reversed(journal.subnets):
            try:
                self._client.invoke("subnet4-del", {"id": subnet.id})
            except KeaError as exc:
                logger.error("Could not delete subnet %s (id %d): %s", subnet.subnet, subnet.id, exc)
                result.rollback_errors.append(f"subnet {subnet.id}: {exc}")
        result.rolled_back = True


def provision(workflow: Workflow, stencil: Mapping[str, PortDescriptor], client: KeaClient) -> ProvisionResult:
    return Provisioner(client).provision(workflow, stencil)
