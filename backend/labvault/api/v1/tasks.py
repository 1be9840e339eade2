"""Task endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from labvault.core.deps import ActorDep, get_task_service
from labvault.schemas.science import (
    SampleOutcome,
    TaskCreate,
    TaskRead,
    TaskStatusUpdate,
)
from labvault.services.task import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])

TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_task(data: TaskCreate, svc: TaskServiceDep, actor: ActorDep):
    """Create a task; its samples move to processing."""
    task = await svc.create_task(data, actor)
    return {"success": True, "data": TaskRead.model_validate(task).model_dump(mode="json")}


@router.get("/{task_id}", response_model=dict)
async def get_task(task_id: uuid.UUID, svc: TaskServiceDep):
    task = await svc.get_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found.")
    return {"success": True, "data": TaskRead.model_validate(task).model_dump(mode="json")}


@router.patch("/{task_id}/status", response_model=dict)
async def update_task_status(
    task_id: uuid.UUID,
    data: TaskStatusUpdate,
    svc: TaskServiceDep,
    actor: ActorDep,
):
    task = await svc.update_task_status(task_id, data.status, actor)
    return {"success": True, "data": TaskRead.model_validate(task).model_dump(mode="json")}


@router.post("/{task_id}/samples/{sample_id}/outcome", response_model=dict)
async def record_sample_outcome(
    task_id: uuid.UUID,
    sample_id: uuid.UUID,
    data: SampleOutcome,
    svc: TaskServiceDep,
    actor: ActorDep,
):
    task = await svc.record_sample_outcome(task_id, sample_id, data, actor)
    return {"success": True, "data": TaskRead.model_validate(task).model_dump(mode="json")}
