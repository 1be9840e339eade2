"""Experiment endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status

from labvault.core.deps import ActorDep, get_experiment_service
from labvault.schemas.science import (
    ExperimentCreate,
    ExperimentRead,
    ExperimentStatusUpdate,
)
from labvault.services.experiment import ExperimentService

router = APIRouter(prefix="/experiments", tags=["experiments"])

ExperimentServiceDep = Annotated[ExperimentService, Depends(get_experiment_service)]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_experiment(
    data: ExperimentCreate,
    svc: ExperimentServiceDep,
    actor: ActorDep,
):
    experiment = await svc.create_experiment(data, actor)
    return {
        "success": True,
        "data": ExperimentRead.model_validate(experiment).model_dump(mode="json"),
    }


@router.patch("/{experiment_id}/status", response_model=dict)
async def update_experiment_status(
    experiment_id: uuid.UUID,
    data: ExperimentStatusUpdate,
    svc: ExperimentServiceDep,
    actor: ActorDep,
):
    experiment = await svc.update_experiment_status(experiment_id, data.status, actor)
    return {
        "success": True,
        "data": ExperimentRead.model_validate(experiment).model_dump(mode="json"),
    }
