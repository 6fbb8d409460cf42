"""Pydantic models for provisioning requests and run reports."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from .settings import RunMode


class ProvisionRequest(BaseModel):
    workflow: dict[str, Any] = Field(..., description="Device workflow: hostname, vendor, model, subnet list.")
    template: dict[str, Any] = Field(
        ...,
        description="Port stencil keyed by ordinal; may contain {{SUBNET_i}} placeholders.",
    )
    mode: RunMode | None = Field(default=None, description="Overrides the configured run mode.")
    rollback: bool | None = Field(default=None, description="Overrides rollback on fatal subnet failures.")


class CreatedSubnetModel(BaseModel):
    id: int
    subnet: str
    pool: str


class CreatedReservationModel(BaseModel):
    subnet_id: int
    ip_address: str
    flex_id: str
    hostname: str
    port: str
    ordinal: int


class JournalModel(BaseModel):
    subnets: list[CreatedSubnetModel]
    reservations: list[CreatedReservationModel]


class SkippedSubnetModel(BaseModel):
    subnet: str
    reason: str
    detail: str = ""


class FailedReservationModel(BaseModel):
    subnet_id: int
    port: str
    ordinal: int
    ip_address: str | None = None
    error: str


class ProvisionResponse(BaseModel):
    hostname: str
    mode: RunMode
    simulated: bool
    subnets_created: int
    reservations_created: int
    reservations_failed: int
    subnets_skipped: int
    config_written: bool
    rolled_back: bool
    rollback_errors: list[str]
    journal: JournalModel
    skipped: list[SkippedSubnetModel]
    failed_reservations: list[FailedReservationModel]


class SubnetModel(BaseModel):
    id: int
    subnet: str
