"""Storage unit, grid, capacity, and slot schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from labvault.models.enums import CapacityMode, GridLabelSchema


# --- Grid definition ---

class GridSpec(BaseModel):
    rows: int = 0
    cols: int = 0
    label_schema: GridLabelSchema = GridLabelSchema.ALPHA_NUMERIC
    disabled_slots: list[str] = []
    enabled_slots: list[str] = []


class StorageUnitOverrides(BaseModel):
    """Per-unit widening/narrowing of a shared grid template."""
    grid_disabled_slots: list[str] = []
    grid_enabled_slots: list[str] = []


class CustomSlot(BaseModel):
    slot_id: str = Field(min_length=1, max_length=50)
    label: str
    disabled: bool = False


# --- Derived values ---

class CapacitySnapshot(BaseModel):
    theoretical: int
    effective: int
    occupied: int | None = None
    available: int | None = None


class StoragePath(BaseModel):
    path_ids: list[str]
    path_names: list[str]
    full_path: str
    depth: int


# --- StorageUnit ---

class StorageUnitCreate(BaseModel):
    model_config = {"extra": "forbid"}

    storage_id: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    unit_type: str | None = None
    description: str | None = None
    parent_storage_id: uuid.UUID | None = None
    capacity_mode: CapacityMode = CapacityMode.GRID
    capacity_slots: int | None = Field(default=None, ge=0)
    grid_spec: GridSpec | None = None
    overrides: StorageUnitOverrides | None = None
    custom_slots: list[CustomSlot] | None = None
    temperature_c: int | None = None

    @model_validator(mode="after")
    def _check_capacity_definition(self) -> "StorageUnitCreate":
        if self.capacity_mode == CapacityMode.GRID and self.grid_spec is None:
            raise ValueError("grid_spec is required for grid storage units")
        if self.capacity_mode == CapacityMode.FLAT and self.capacity_slots is None:
            raise ValueError("capacity_slots is required for flat storage units")
        if self.capacity_mode == CapacityMode.CUSTOM and not self.custom_slots:
            raise ValueError("custom_slots is required for custom storage units")
        return self


class StorageUnitRead(BaseModel):
    id: uuid.UUID
    storage_id: str
    name: str
    unit_type: str | None
    parent_storage_id: uuid.UUID | None
    ancestors: list[str]
    path_ids: list[str] | None
    path_names: list[str] | None
    full_path: str | None
    depth: int
    capacity_mode: CapacityMode
    capacity_slots: int | None
    grid_spec: GridSpec | None
    overrides: StorageUnitOverrides | None
    temperature_c: int | None
    sample_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StorageUnitDetail(StorageUnitRead):
    """Unit with capacity computed from the slot registry."""
    capacity: CapacitySnapshot | None = None


class SlotRead(BaseModel):
    storage_unit_id: uuid.UUID
    slot_label: str
    sample_id: uuid.UUID | None
    sample_label: str | None
    occupied: bool
    updated_at: datetime

    model_config = {"from_attributes": True}
