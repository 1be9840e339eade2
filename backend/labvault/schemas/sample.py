"""Sample request/response schemas."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from labvault.models.enums import SampleStatus, SampleType


# --- Sample ---

class SampleCreate(BaseModel):
    model_config = {"extra": "forbid"}

    sample_code: str = Field(min_length=1, max_length=50)
    barcode: str | None = Field(default=None, max_length=100)
    sample_type: SampleType
    parent_sample_id: uuid.UUID | None = None
    project_id: str | None = None
    source: str | None = None
    collected_by: str | None = None
    date_collected: date | None = None
    date_received: date | None = None
    initial_volume: Decimal | None = Field(default=None, ge=0)
    current_volume: Decimal | None = Field(default=None, ge=0)
    storage_location_id: uuid.UUID | None = None
    position_label: str | None = Field(default=None, max_length=50)
    status: SampleStatus = SampleStatus.RECEIVED
    notes: str | None = None

    @field_validator("barcode", "position_label")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _check_location_pair(self) -> "SampleCreate":
        if (self.storage_location_id is None) != (self.position_label is None):
            raise ValueError(
                "storage_location_id and position_label must be given together"
            )
        if self.current_volume is None:
            self.current_volume = self.initial_volume
        return self


class SampleImportRequest(BaseModel):
    samples: list[SampleCreate]


class SampleMove(BaseModel):
    target_storage_id: uuid.UUID
    target_slot_id: str = Field(min_length=1, max_length=50)


class SampleStatusUpdate(BaseModel):
    status: SampleStatus


class SampleRead(BaseModel):
    id: uuid.UUID
    sample_code: str
    barcode: str | None
    sample_type: SampleType
    parent_sample_id: uuid.UUID | None
    project_id: str | None
    initial_volume: Decimal | None
    current_volume: Decimal | None
    storage_location_id: uuid.UUID | None
    position_label: str | None
    status: SampleStatus
    notes: str | None
    created_by: str | None
    created_by_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
