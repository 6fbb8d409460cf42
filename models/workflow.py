"""Pydantic models for device workflows and port stencils."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

HOSTNAME_LABEL_RE = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


class Workflow(BaseModel):
    """A newly activated device and the subnets it will serve."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hostname: str = Field(..., min_length=1, description="Device hostname, DNS label rules.")
    vendor: str = Field(..., description="Vendor used to select the stencil.")
    model: str = Field(..., description="Model used to select the stencil.")
    subnets: tuple[str, ...] = Field(
        ...,
        min_length=1,
        alias="subnet",
        description="IPv4 CIDRs in provisioning order.",
    )

    @field_validator("hostname")
    @classmethod
    def _check_hostname(cls, value: str) -> str:
        labels = value.rstrip(".").split(".")
        if len(value) > 253 or not all(HOSTNAME_LABEL_RE.match(label) for label in labels):
            raise ValueError(f"'{value}' is not a valid DNS hostname")
        return value

    @field_validator("subnets")
    @classmethod
    def _strip_subnets(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(item.strip() for item in value)


class PortDescriptor(BaseModel):
    """One device-facing port from a model stencil."""

    model_config = ConfigDict(frozen=True)

    port: str = Field(..., min_length=1, description="Device-facing port identifier, e.g. Gi0/1.")
    subnet: str = Field(..., description="Workflow subnet the port is bound to.")
    type: str = Field("", description="Opaque port classification.")
    mask: int | None = Field(default=None, ge=0, le=32, description="Informational prefix length.")


Stencil = dict[str, PortDescriptor]
