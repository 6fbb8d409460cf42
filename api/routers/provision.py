"""Routes for provisioning devices on the Kea server."""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, Depends, HTTPException

from core.inventory import list_subnets
from core.kea_client import KeaError
from core.loaders import LoaderError, parse_stencil, parse_workflow
from core.provisioner import Provisioner, ProvisioningConfigError, ProvisioningError
from models import KeaSettings, ProvisionRequest, ProvisionResponse, RunMode, SubnetModel

from ..dependencies import ClientFactory, get_client_factory, get_settings

router = APIRouter(tags=["provision"])


@router.post("/provision", response_model=ProvisionResponse)
async def provision_device(
    payload: ProvisionRequest,
    settings: KeaSettings = Depends(get_settings),
    client_factory: ClientFactory = Depends(get_client_factory),
) -> ProvisionResponse:
    try:
        workflow = parse_workflow(payload.workflow)
        stencil = parse_stencil(json.dumps(payload.template), workflow.subnets)
    except LoaderError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    rollback = settings.rollback_on_failure if payload.rollback is None else payload.rollback
    client = client_factory(payload.mode or settings.mode)
    provisioner = Provisioner(client, lifetime=settings.valid_lifetime, rollback=rollback)

    try:
        result = await asyncio.to_thread(provisioner.provision, workflow, stencil)
    except ProvisioningConfigError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProvisioningError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": str(exc), "report": exc.result.to_dict()},
        ) from exc
    finally:
        client.close()

    return ProvisionResponse.model_validate(result.to_dict())


@router.get("/subnets", response_model=list[SubnetModel])
async def get_subnets(client_factory: ClientFactory = Depends(get_client_factory)) -> list[SubnetModel]:
    client = client_factory(RunMode.DRY_RUN)
    try:
        records = await asyncio.to_thread(list_subnets, client)
    except KeaError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    finally:
        client.close()
    return [SubnetModel(id=record.id, subnet=record.subnet) for record in records]
