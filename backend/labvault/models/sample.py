"""Sample model."""

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from labvault.models.base import BaseModelNoSoftDelete
from labvault.models.enums import SampleStatus, SampleType


class Sample(BaseModelNoSoftDelete):
    __tablename__ = "sample"

    sample_code: Mapped[str] = mapped_column(String(50), nullable=False)
    barcode: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    parent_sample_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sample.id", ondelete="SET NULL"), nullable=True
    )
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sample_type: Mapped[SampleType] = mapped_column(nullable=False)
    source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    collected_by: Mapped[str | None] = mapped_column(String(200), nullable=True)
    date_collected: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_received: Mapped[date | None] = mapped_column(Date, nullable=True)
    initial_volume: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    current_volume: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    # Current location; position_label keys a row in the unit's slot registry
    storage_location_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("storage_unit.id"), nullable=True
    )
    position_label: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[SampleStatus] = mapped_column(
        default=SampleStatus.RECEIVED, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Relationships
    parent_sample: Mapped["Sample | None"] = relationship(
        "Sample", remote_side="Sample.id"
    )

    __table_args__ = (
        Index("ix_sample_code", "sample_code"),
        Index("ix_sample_status", "status"),
        Index("ix_sample_storage", "storage_location_id", "position_label"),
        Index("ix_sample_parent", "parent_sample_id"),
    )
