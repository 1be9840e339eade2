"""Sample endpoints: atomic create, bulk import, move, status, delete."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from labvault.core.deps import ActorDep, get_sample_service
from labvault.schemas.sample import (
    SampleCreate,
    SampleImportRequest,
    SampleMove,
    SampleRead,
    SampleStatusUpdate,
)
from labvault.services.sample_lifecycle import SampleLifecycleService

router = APIRouter(prefix="/samples", tags=["samples"])

SampleServiceDep = Annotated[SampleLifecycleService, Depends(get_sample_service)]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_sample(
    data: SampleCreate,
    svc: SampleServiceDep,
    actor: ActorDep,
):
    """Create a sample, claiming its storage slot when a location is given."""
    sample_id = await svc.create_sample_atomic(data, actor)
    return {"success": True, "data": {"id": str(sample_id)}}


@router.post("/import", response_model=dict, status_code=status.HTTP_201_CREATED)
async def import_samples(
    data: SampleImportRequest,
    svc: SampleServiceDep,
    actor: ActorDep,
):
    """Create a batch of samples in a single all-or-nothing transaction."""
    sample_ids = await svc.import_samples_atomic(data.samples, actor)
    return {
        "success": True,
        "data": {"ids": [str(sid) for sid in sample_ids]},
        "meta": {"count": len(sample_ids)},
    }


@router.get("/{sample_id}", response_model=dict)
async def get_sample(sample_id: uuid.UUID, svc: SampleServiceDep):
    sample = await svc.get_sample(sample_id)
    if sample is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sample not found.")
    return {"success": True, "data": SampleRead.model_validate(sample).model_dump(mode="json")}


@router.post("/{sample_id}/move", response_model=dict)
async def move_sample(
    sample_id: uuid.UUID,
    data: SampleMove,
    svc: SampleServiceDep,
    actor: ActorDep,
):
    await svc.move_sample_atomic(sample_id, data.target_storage_id, data.target_slot_id, actor)
    sample = await svc.get_sample(sample_id)
    return {"success": True, "data": SampleRead.model_validate(sample).model_dump(mode="json")}


@router.patch("/{sample_id}/status", response_model=dict)
async def update_sample_status(
    sample_id: uuid.UUID,
    data: SampleStatusUpdate,
    svc: SampleServiceDep,
    actor: ActorDep,
):
    new_status = await svc.update_sample_status(sample_id, data.status, actor)
    return {"success": True, "data": {"id": str(sample_id), "status": new_status.value}}


@router.delete("/{sample_id}", response_model=dict)
async def delete_sample(
    sample_id: uuid.UUID,
    svc: SampleServiceDep,
    actor: ActorDep,
):
    """Delete a sample and release its storage slot."""
    await svc.delete_sample_atomic(sample_id, actor)
    return {"success": True, "data": {"id": str(sample_id), "deleted": True}}
