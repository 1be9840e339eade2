"""Task, experiment, and DNA extract models."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from labvault.models.base import BaseModelNoSoftDelete
from labvault.models.enums import (
    DnaExtractStatus,
    ExperimentStatus,
    ExperimentType,
    TaskPriority,
    TaskStatus,
    TaskType,
)


class Task(BaseModelNoSoftDelete):
    __tablename__ = "task"

    task_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    task_type: Mapped[TaskType] = mapped_column(nullable=False)
    priority: Mapped[TaskPriority | None] = mapped_column(nullable=True)
    assigned_to: Mapped[str] = mapped_column(String(128), nullable=False)
    sample_ids: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    # {sample_id: TaskSampleProgress value}
    sample_progress: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    status: Mapped[TaskStatus] = mapped_column(default=TaskStatus.PENDING, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_task_status", "status"),
        Index("ix_task_assigned_to", "assigned_to"),
    )


class Experiment(BaseModelNoSoftDelete):
    __tablename__ = "experiment"

    experiment_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    experiment_type: Mapped[ExperimentType] = mapped_column(nullable=False)
    protocol_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ExperimentStatus] = mapped_column(
        default=ExperimentStatus.PLANNED, nullable=False
    )
    sample_ids: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    task_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("task.id"), nullable=True
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_experiment_status", "status"),
    )


class DnaExtract(BaseModelNoSoftDelete):
    __tablename__ = "dna_extract"

    dna_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)
    sample_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("sample.id", ondelete="SET NULL"), nullable=True
    )
    project_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    date_extracted: Mapped[date | None] = mapped_column(Date, nullable=True)
    operator: Mapped[str | None] = mapped_column(String(200), nullable=True)
    yield_ng_per_ul: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    a260_a280: Mapped[Decimal | None] = mapped_column(Numeric(6, 3), nullable=True)
    a260_a230: Mapped[Decimal | None] = mapped_column(Numeric(6, 3), nullable=True)
    volume_ul: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    storage_location_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("storage_unit.id"), nullable=True
    )
    storage_position_label: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[DnaExtractStatus] = mapped_column(
        default=DnaExtractStatus.STORED, nullable=False
    )
    source_task_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("task.id"), nullable=True
    )
    extraction_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    __table_args__ = (
        Index("ix_dna_extract_sample", "sample_id"),
    )
