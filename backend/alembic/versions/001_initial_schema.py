"""Initial schema - storage units, slot registry, samples, tasks, audit log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # --- Audit ---

    op.create_table(
        "audit_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("actor", sa.String(128), nullable=False),
        sa.Column("actor_email", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("details", postgresql.JSONB, nullable=True),
    )
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_actor", "audit_log", ["actor"])
    op.create_index("ix_audit_log_timestamp", "audit_log", ["timestamp"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])

    # --- Storage ---

    op.create_table(
        "storage_unit",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("storage_id", sa.String(50), unique=True, nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("unit_type", sa.String(50), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("parent_storage_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("storage_unit.id"), nullable=True),
        sa.Column("ancestors", postgresql.JSONB, server_default="[]", nullable=False),
        sa.Column("path_ids", postgresql.JSONB, nullable=True),
        sa.Column("path_names", postgresql.JSONB, nullable=True),
        sa.Column("full_path", sa.String(500), nullable=True),
        sa.Column("depth", sa.Integer, server_default="0", nullable=False),
        sa.Column("capacity_mode", sa.String(32), nullable=False),
        sa.Column("capacity_slots", sa.Integer, nullable=True),
        sa.Column("grid_spec", postgresql.JSONB, nullable=True),
        sa.Column("overrides", postgresql.JSONB, nullable=True),
        sa.Column("custom_slots", postgresql.JSONB, nullable=True),
        sa.Column("temperature_c", sa.Integer, nullable=True),
        sa.Column("sample_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("occupied_slots", postgresql.JSONB, nullable=True),
        sa.Column("created_by_id", sa.String(128), nullable=True),
        sa.Column("is_deleted", sa.Boolean, server_default="false", nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_storage_unit_parent", "storage_unit", ["parent_storage_id"])

    op.create_table(
        "storage_slot",
        sa.Column("storage_unit_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("storage_unit.id"), primary_key=True),
        sa.Column("slot_label", sa.String(50), primary_key=True),
        sa.Column("sample_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sample_label", sa.String(100), nullable=True),
        sa.Column("occupied", sa.Boolean, server_default="false", nullable=False),
        sa.Column("migrated", sa.Boolean, server_default="false", nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_storage_slot_sample", "storage_slot", ["sample_id"])

    # --- Samples ---

    op.create_table(
        "sample",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sample_code", sa.String(50), nullable=False),
        sa.Column("barcode", sa.String(100), unique=True, nullable=True),
        sa.Column("parent_sample_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sample.id", ondelete="SET NULL"), nullable=True),
        sa.Column("project_id", sa.String(100), nullable=True),
        sa.Column("sample_type", sa.String(32), nullable=False),
        sa.Column("source", sa.String(200), nullable=True),
        sa.Column("collected_by", sa.String(200), nullable=True),
        sa.Column("date_collected", sa.Date, nullable=True),
        sa.Column("date_received", sa.Date, nullable=True),
        sa.Column("initial_volume", sa.Numeric(10, 2), nullable=True),
        sa.Column("current_volume", sa.Numeric(10, 2), nullable=True),
        sa.Column("storage_location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("storage_unit.id"), nullable=True),
        sa.Column("position_label", sa.String(50), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_by_id", sa.String(128), nullable=True),
        sa.Column("updated_by", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_sample_code", "sample", ["sample_code"])
    op.create_index("ix_sample_status", "sample", ["status"])
    op.create_index("ix_sample_storage", "sample", ["storage_location_id", "position_label"])
    op.create_index("ix_sample_parent", "sample", ["parent_sample_id"])

    # --- Science ---

    op.create_table(
        "task",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("task_code", sa.String(50), unique=True, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("task_type", sa.String(32), nullable=False),
        sa.Column("priority", sa.String(32), nullable=True),
        sa.Column("assigned_to", sa.String(128), nullable=False),
        sa.Column("sample_ids", postgresql.JSONB, server_default="[]", nullable=False),
        sa.Column("sample_progress", postgresql.JSONB, server_default="{}", nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_by_id", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_task_status", "task", ["status"])
    op.create_index("ix_task_assigned_to", "task", ["assigned_to"])

    op.create_table(
        "experiment",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("experiment_code", sa.String(50), unique=True, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("experiment_type", sa.String(32), nullable=False),
        sa.Column("protocol_id", sa.String(100), nullable=True),
        sa.Column("project_id", sa.String(100), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("sample_ids", postgresql.JSONB, server_default="[]", nullable=False),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("task.id"), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_by_id", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_experiment_status", "experiment", ["status"])

    op.create_table(
        "dna_extract",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("dna_id", sa.String(50), unique=True, nullable=False),
        sa.Column("barcode", sa.String(100), nullable=False),
        sa.Column("sample_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sample.id", ondelete="SET NULL"), nullable=True),
        sa.Column("project_id", sa.String(100), nullable=True),
        sa.Column("date_extracted", sa.Date, nullable=True),
        sa.Column("operator", sa.String(200), nullable=True),
        sa.Column("yield_ng_per_ul", sa.Numeric(10, 3), nullable=True),
        sa.Column("a260_a280", sa.Numeric(6, 3), nullable=True),
        sa.Column("a260_a230", sa.Numeric(6, 3), nullable=True),
        sa.Column("volume_ul", sa.Numeric(10, 2), nullable=True),
        sa.Column("storage_location_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("storage_unit.id"), nullable=True),
        sa.Column("storage_position_label", sa.String(50), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("source_task_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("task.id"), nullable=True),
        sa.Column("extraction_method", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_by_id", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_dna_extract_sample", "dna_extract", ["sample_id"])


def downgrade() -> None:
    op.drop_table("dna_extract")
    op.drop_table("experiment")
    op.drop_table("task")
    op.drop_table("sample")
    op.drop_table("storage_slot")
    op.drop_table("storage_unit")
    op.drop_table("audit_log")
