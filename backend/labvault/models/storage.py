"""Storage hierarchy: storage units and their slot registry."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from labvault.models.base import Base, BaseModel
from labvault.models.enums import CapacityMode


class StorageUnit(BaseModel):
    __tablename__ = "storage_unit"

    storage_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_storage_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("storage_unit.id"), nullable=True
    )

    # Materialized hierarchy, root first, excluding the unit itself
    ancestors: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    path_ids: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    path_names: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    full_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    depth: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    # Capacity definition
    capacity_mode: Mapped[CapacityMode] = mapped_column(
        default=CapacityMode.GRID, nullable=False
    )
    capacity_slots: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grid_spec: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    overrides: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    custom_slots: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    temperature_c: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Running aggregate, kept equal to the number of occupied slot rows
    sample_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )

    # Legacy inline occupancy map {slot_label: sample_ref}; only read by the
    # slot migration script
    occupied_slots: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Relationships
    parent: Mapped["StorageUnit | None"] = relationship(
        "StorageUnit", remote_side="StorageUnit.id"
    )

    __table_args__ = (
        Index("ix_storage_unit_parent", "parent_storage_id"),
    )


class StorageSlot(Base):
    """One entry of a unit's slot registry, keyed by slot label.

    ``sample_id`` is a reverse index, not an owning pointer: the sample row is
    the source of truth for its own location.
    """

    __tablename__ = "storage_slot"

    storage_unit_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("storage_unit.id"), primary_key=True
    )
    slot_label: Mapped[str] = mapped_column(String(50), primary_key=True)
    sample_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    sample_label: Mapped[str | None] = mapped_column(String(100), nullable=True)
    occupied: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    migrated: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_storage_slot_sample", "sample_id"),
    )
