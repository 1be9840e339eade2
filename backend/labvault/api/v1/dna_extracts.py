"""DNA extract endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from labvault.core.deps import ActorDep, get_dna_extract_service
from labvault.schemas.science import DnaExtractCreate, DnaExtractRead, QuantificationSave
from labvault.services.dna_extract import DnaExtractService

router = APIRouter(prefix="/dna-extracts", tags=["dna-extracts"])

DnaExtractServiceDep = Annotated[DnaExtractService, Depends(get_dna_extract_service)]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_dna_extract(
    data: DnaExtractCreate,
    svc: DnaExtractServiceDep,
    actor: ActorDep,
):
    extract = await svc.create_dna_extract(data, actor)
    return {
        "success": True,
        "data": DnaExtractRead.model_validate(extract).model_dump(mode="json"),
    }


@router.post("/quantification", response_model=dict)
async def save_quantification(
    data: QuantificationSave,
    svc: DnaExtractServiceDep,
    actor: ActorDep,
):
    """Record quantification results for extracts produced by a task."""
    extracts = await svc.save_quantification(data.task_id, data.updates, actor)
    return {
        "success": True,
        "data": [DnaExtractRead.model_validate(e).model_dump(mode="json") for e in extracts],
    }
