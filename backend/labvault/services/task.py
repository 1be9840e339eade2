"""Task service: creating work assignments and recording per-sample results."""

import logging
import secrets
import time
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.core.exceptions import LabVaultError, NotFoundError
from labvault.database import Database
from labvault.models.enums import (
    AuditAction,
    SampleStatus,
    TaskSampleProgress,
    TaskStatus,
)
from labvault.models.science import Task
from labvault.schemas import Actor
from labvault.schemas.science import SampleOutcome, TaskCreate
from labvault.services.audit import AuditService
from labvault.services.sample_lifecycle import (
    get_sample_for_update,
    load_samples_or_fail,
    relocate_sample,
)
from labvault.services.slot_registry import SlotAssignment
from labvault.services.status_machine import (
    assert_sample_transition,
    assert_task_transition,
    derive_sample_status,
    requires_storage,
)

logger = logging.getLogger(__name__)

BATCH_UPDATE_ENTITY_ID = "batch_update"


def generate_code(prefix: str) -> str:
    """Human-facing record code: epoch milliseconds plus a short random suffix."""
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(2).upper()}"


def unique_ids(ids: list[uuid.UUID]) -> list[uuid.UUID]:
    return list(dict.fromkeys(ids))


async def get_task_for_update(tx: AsyncSession, task_id: uuid.UUID) -> Task:
    result = await tx.execute(select(Task).where(Task.id == task_id).with_for_update())
    task = result.scalar_one_or_none()
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


class TaskService:
    def __init__(self, database: Database):
        self.database = database

    async def get_task(self, task_id: uuid.UUID) -> Task | None:
        async with self.database.session() as db:
            result = await db.execute(select(Task).where(Task.id == task_id))
            return result.scalar_one_or_none()

    # ── Create ────────────────────────────────────────────────────────

    async def create_task(self, data: TaskCreate, actor: Actor) -> Task:
        """Create a Pending task and move every assigned sample to processing."""
        return await self.database.run_transaction(self._create_task, data, actor)

    async def _create_task(self, tx: AsyncSession, data: TaskCreate, actor: Actor) -> Task:
        sample_ids = unique_ids(data.sample_ids)
        samples = await load_samples_or_fail(tx, sample_ids)

        for sample in samples:
            assert_sample_transition(sample.status, SampleStatus.PROCESSING)

        task = Task(
            id=uuid.uuid4(),
            task_code=generate_code("TASK"),
            title=data.title,
            description=data.description,
            task_type=data.task_type,
            priority=data.priority,
            assigned_to=data.assigned_to,
            sample_ids=[str(sid) for sid in sample_ids],
            sample_progress={
                str(sid): TaskSampleProgress.PENDING.value for sid in sample_ids
            },
            status=TaskStatus.PENDING,
            due_date=data.due_date,
            created_by=actor.email,
            created_by_id=actor.id,
        )
        tx.add(task)

        audit = AuditService(tx)
        if samples:
            for sample in samples:
                sample.status = SampleStatus.PROCESSING
                sample.updated_by = actor.id
            await audit.log_update(
                actor=actor,
                entity_type="sample",
                entity_id=BATCH_UPDATE_ENTITY_ID,
                details={
                    "count": len(samples),
                    "status": SampleStatus.PROCESSING.value,
                    "task_code": task.task_code,
                },
            )

        await tx.flush()
        await audit.log_create(
            actor=actor,
            entity_type="task",
            entity_id=task.id,
            details={"task_code": task.task_code, "assigned_to": task.assigned_to},
        )
        return task

    # ── Status ────────────────────────────────────────────────────────

    async def update_task_status(
        self, task_id: uuid.UUID, status: TaskStatus, actor: Actor
    ) -> Task:
        return await self.database.run_transaction(
            self._update_task_status, task_id, status, actor
        )

    async def _update_task_status(
        self, tx: AsyncSession, task_id: uuid.UUID, status: TaskStatus, actor: Actor
    ) -> Task:
        task = await get_task_for_update(tx, task_id)
        assert_task_transition(task.status, status)
        if task.status == status:
            return task

        old_status = task.status
        task.status = status
        await tx.flush()
        await AuditService(tx).log_update(
            actor=actor,
            entity_type="task",
            entity_id=task_id,
            details={"status": {"from": old_status.value, "to": status.value}},
        )
        return task

    # ── Per-sample outcomes ───────────────────────────────────────────

    async def record_sample_outcome(
        self,
        task_id: uuid.UUID,
        sample_id: uuid.UUID,
        outcome: SampleOutcome,
        actor: Actor,
    ) -> Task:
        """Record one sample's result within a task.

        The sample's own status is derived from the outcome. A successful
        outcome may carry a storage placement, which is claimed through the
        slot registry in the same transaction.
        """
        return await self.database.run_transaction(
            self._record_sample_outcome, task_id, sample_id, outcome, actor
        )

    async def _record_sample_outcome(
        self,
        tx: AsyncSession,
        task_id: uuid.UUID,
        sample_id: uuid.UUID,
        outcome: SampleOutcome,
        actor: Actor,
    ) -> Task:
        task = await get_task_for_update(tx, task_id)
        if str(sample_id) not in task.sample_ids:
            raise NotFoundError(
                "Sample",
                sample_id,
                message=f"Sample {sample_id} is not part of task {task.task_code}.",
            )

        placement = SlotAssignment.from_fields(
            outcome.storage_location_id, outcome.position_label
        )
        if placement is not None and not requires_storage(outcome.outcome):
            raise LabVaultError(
                f"Only a successful outcome can be stored, got '{outcome.outcome.value}'."
            )

        sample = await get_sample_for_update(tx, sample_id)
        next_status = derive_sample_status(outcome.outcome, has_storage=placement is not None)
        assert_sample_transition(sample.status, next_status)

        source = None
        if placement is not None:
            source = await relocate_sample(tx, sample, placement)
        sample.status = next_status
        sample.updated_by = actor.id

        task.sample_progress = {**task.sample_progress, str(sample_id): outcome.outcome.value}
        await tx.flush()

        audit = AuditService(tx)
        await audit.log_update(
            actor=actor,
            entity_type="task",
            entity_id=task_id,
            details={"sample_id": str(sample_id), "progress": outcome.outcome.value},
        )
        if placement is not None:
            await audit.log(
                actor=actor,
                action=AuditAction.MOVE,
                entity_type="sample",
                entity_id=sample_id,
                details={
                    "from_storage": str(source.storage_unit_id) if source else None,
                    "from_slot": source.position_label if source else None,
                    "to_storage": str(placement.storage_unit_id),
                    "to_slot": placement.position_label,
                },
            )
        return task
