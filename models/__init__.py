"""Pydantic models for the provisioner."""

from .provision import (
	CreatedReservationModel,
	CreatedSubnetModel,
	FailedReservationModel,
	JournalModel,
	ProvisionRequest,
	ProvisionResponse,
	SkippedSubnetModel,
	SubnetModel,
)
from .settings import KeaSettings, RunMode
from .workflow import PortDescriptor, Stencil, Workflow

__all__ = [
	"CreatedReservationModel",
	"CreatedSubnetModel",
	"FailedReservationModel",
	"JournalModel",
	"KeaSettings",
	"PortDescriptor",
	"ProvisionRequest",
	"ProvisionResponse",
	"RunMode",
	"SkippedSubnetModel",
	"Stencil",
	"SubnetModel",
	"Workflow",
]
