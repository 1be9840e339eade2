"""Task, experiment, and DNA extract schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from labvault.models.enums import (
    DnaExtractStatus,
    ExperimentStatus,
    ExperimentType,
    TaskPriority,
    TaskSampleProgress,
    TaskStatus,
    TaskType,
)


# --- Task ---

class TaskCreate(BaseModel):
    model_config = {"extra": "forbid"}

    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    task_type: TaskType
    priority: TaskPriority | None = None
    assigned_to: str = Field(min_length=1, max_length=128)
    sample_ids: list[uuid.UUID] = []
    due_date: date | None = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class SampleOutcome(BaseModel):
    """Result of processing one sample within a task, with optional placement."""
    model_config = {"extra": "forbid"}

    outcome: TaskSampleProgress
    storage_location_id: uuid.UUID | None = None
    position_label: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def _check_location_pair(self) -> "SampleOutcome":
        if (self.storage_location_id is None) != (self.position_label is None):
            raise ValueError(
                "storage_location_id and position_label must be given together"
            )
        return self


class TaskRead(BaseModel):
    id: uuid.UUID
    task_code: str
    title: str
    description: str | None
    task_type: TaskType
    priority: TaskPriority | None
    assigned_to: str
    sample_ids: list[str]
    sample_progress: dict[str, TaskSampleProgress]
    status: TaskStatus
    due_date: date | None
    created_by: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# --- Experiment ---

class ExperimentCreate(BaseModel):
    model_config = {"extra": "forbid"}

    title: str = Field(min_length=1, max_length=200)
    experiment_type: ExperimentType
    protocol_id: str | None = None
    project_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: ExperimentStatus = ExperimentStatus.PLANNED
    sample_ids: list[uuid.UUID] = []
    task_id: uuid.UUID | None = None


class ExperimentStatusUpdate(BaseModel):
    status: ExperimentStatus


class ExperimentRead(BaseModel):
    id: uuid.UUID
    experiment_code: str
    title: str
    experiment_type: ExperimentType
    protocol_id: str | None
    project_id: str | None
    start_time: datetime | None
    end_time: datetime | None
    status: ExperimentStatus
    sample_ids: list[str]
    task_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


# --- DNA extract ---

class DnaExtractCreate(BaseModel):
    model_config = {"extra": "forbid"}

    dna_id: str = Field(min_length=1, max_length=50)
    sample_id: uuid.UUID | None = None
    project_id: str | None = None
    date_extracted: date | None = None
    operator: str | None = None
    yield_ng_per_ul: Decimal | None = Field(default=None, ge=0)
    a260_a280: Decimal | None = None
    a260_a230: Decimal | None = None
    volume_ul: Decimal | None = Field(default=None, ge=0)
    storage_location_id: uuid.UUID | None = None
    storage_position_label: str | None = None
    status: DnaExtractStatus = DnaExtractStatus.STORED
    source_task_id: uuid.UUID | None = None
    extraction_method: str | None = None
    notes: str | None = None


class QuantificationUpdate(BaseModel):
    id: uuid.UUID
    dna_id: str
    yield_ng_per_ul: Decimal | None = Field(default=None, ge=0)
    a260_a280: Decimal | None = None
    sample_id: uuid.UUID | None = None


class QuantificationSave(BaseModel):
    task_id: uuid.UUID
    updates: list[QuantificationUpdate] = Field(min_length=1)


class DnaExtractRead(BaseModel):
    id: uuid.UUID
    dna_id: str
    barcode: str
    sample_id: uuid.UUID | None
    project_id: str | None
    yield_ng_per_ul: Decimal | None
    a260_a280: Decimal | None
    a260_a230: Decimal | None
    volume_ul: Decimal | None
    storage_location_id: uuid.UUID | None
    storage_position_label: str | None
    status: DnaExtractStatus
    source_task_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
