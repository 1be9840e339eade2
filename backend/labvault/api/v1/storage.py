"""Storage unit endpoints: provisioning, capacity detail, slot registry."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from labvault.core.deps import ActorDep, get_storage_service
from labvault.schemas.storage import SlotRead, StorageUnitCreate, StorageUnitRead
from labvault.services.storage import StorageService

router = APIRouter(prefix="/storage", tags=["storage"])

StorageServiceDep = Annotated[StorageService, Depends(get_storage_service)]


@router.post("/units", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_storage_unit(
    data: StorageUnitCreate,
    svc: StorageServiceDep,
    actor: ActorDep,
):
    unit = await svc.create_storage_unit(data, actor)
    return {"success": True, "data": StorageUnitRead.model_validate(unit).model_dump(mode="json")}


@router.get("/units/{storage_id}", response_model=dict)
async def get_storage_unit(storage_id: uuid.UUID, svc: StorageServiceDep):
    """Unit with capacity computed from its occupied slots."""
    detail = await svc.get_storage_unit_detail(storage_id)
    return {"success": True, "data": detail.model_dump(mode="json")}


@router.get("/units/{storage_id}/slots", response_model=dict)
async def list_slots(storage_id: uuid.UUID, svc: StorageServiceDep):
    slots = await svc.list_slots(storage_id)
    return {
        "success": True,
        "data": [SlotRead.model_validate(s).model_dump(mode="json") for s in slots],
        "meta": {"total": len(slots), "occupied": sum(1 for s in slots if s.occupied)},
    }


@router.post("/units/{storage_id}/recount", response_model=dict)
async def recount_samples(
    storage_id: uuid.UUID,
    svc: StorageServiceDep,
    actor: ActorDep,
):
    """Reset the unit's sample counter from its occupied slots."""
    count = await svc.recount_samples(storage_id, actor)
    return {"success": True, "data": {"id": str(storage_id), "sample_count": count}}
