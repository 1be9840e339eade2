"""Sample lifecycle service: atomic create, move, delete, and bulk import.

Each public operation runs as one transaction through
``Database.run_transaction``: every read (sample, storage unit, slot, barcode)
goes through the transaction, slot registry rows, unit counters, the sample
row, and the audit entry are written together, and any failure rolls all of
it back.
"""

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.config import settings
from labvault.core.exceptions import (
    BatchSizeExceeded,
    NotFoundError,
    SlotConflict,
    UniquenessViolation,
)
from labvault.database import Database
from labvault.models.enums import AuditAction, SampleStatus
from labvault.models.sample import Sample
from labvault.schemas import Actor
from labvault.schemas.sample import SampleCreate
from labvault.services.audit import AuditService
from labvault.services.slot_registry import (
    SlotAssignment,
    adjust_sample_count,
    get_live_unit,
    is_slot_occupied,
    place_sample,
    vacate_sample,
)
from labvault.services.status_machine import assert_sample_transition

logger = logging.getLogger(__name__)

BATCH_IMPORT_ENTITY_ID = "batch_import"

# Fields of SampleCreate that are written through the slot registry instead
LOCATION_FIELDS = {"storage_location_id", "position_label"}


# ── Transaction-scoped helpers (shared with task/DNA services) ────────

async def get_sample_for_update(tx: AsyncSession, sample_id: uuid.UUID) -> Sample:
    result = await tx.execute(
        select(Sample).where(Sample.id == sample_id).with_for_update()
    )
    sample = result.scalar_one_or_none()
    if sample is None:
        raise NotFoundError("Sample", sample_id)
    return sample


async def load_samples_or_fail(
    tx: AsyncSession, sample_ids: Sequence[uuid.UUID]
) -> list[Sample]:
    """Load every referenced sample, failing with the full list of missing ids."""
    if not sample_ids:
        return []
    result = await tx.execute(
        select(Sample).where(Sample.id.in_(sample_ids)).with_for_update()
    )
    samples = list(result.scalars().all())
    found = {s.id for s in samples}
    missing = [str(sid) for sid in sample_ids if sid not in found]
    if missing:
        raise NotFoundError(
            "Sample",
            missing,
            message=f"Invalid sample IDs provided: {', '.join(missing)}",
        )
    return samples


async def ensure_barcode_unused(tx: AsyncSession, barcode: str) -> None:
    result = await tx.execute(
        select(Sample.id).where(Sample.barcode == barcode).limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise UniquenessViolation(barcode)


async def claim_slot(tx: AsyncSession, assignment: SlotAssignment) -> None:
    """Confirm the target unit exists and the slot is free."""
    unit = await get_live_unit(tx, assignment.storage_unit_id)
    if unit is None:
        raise NotFoundError("Storage", assignment.storage_unit_id)
    if await is_slot_occupied(tx, assignment.storage_unit_id, assignment.position_label):
        raise SlotConflict(assignment.storage_unit_id, assignment.position_label)


async def relocate_sample(
    tx: AsyncSession, sample: Sample, target: SlotAssignment
) -> SlotAssignment | None:
    """Move ``sample`` into ``target``, keeping both unit counters in step.

    Returns the location the sample was moved out of, if any.
    """
    # Rejects the sample's own current slot as a target as well
    await claim_slot(tx, target)

    source = SlotAssignment.of(sample)
    if source is None:
        await adjust_sample_count(tx, target.storage_unit_id, 1)
    elif source.storage_unit_id == target.storage_unit_id:
        await vacate_sample(tx, sample)
    else:
        source_unit = await get_live_unit(tx, source.storage_unit_id)
        if source_unit is not None:
            await adjust_sample_count(tx, source.storage_unit_id, -1)
            await vacate_sample(tx, sample)
        else:
            logger.warning(
                "Source storage %s of sample %s no longer exists; skipping release",
                source.storage_unit_id,
                sample.id,
            )
            await vacate_sample(tx, sample, free_registry_row=False)
        await adjust_sample_count(tx, target.storage_unit_id, 1)

    await place_sample(tx, sample, target)
    return source


def _new_sample(sample_id: uuid.UUID, data: SampleCreate, actor: Actor) -> Sample:
    return Sample(
        id=sample_id,
        **data.model_dump(exclude=LOCATION_FIELDS),
        created_by=actor.email,
        created_by_id=actor.id,
    )


class SampleLifecycleService:
    def __init__(self, database: Database, import_limit: int | None = None):
        self.database = database
        self.import_limit = import_limit or settings.IMPORT_BATCH_LIMIT

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_sample(self, sample_id: uuid.UUID) -> Sample | None:
        async with self.database.session() as db:
            result = await db.execute(select(Sample).where(Sample.id == sample_id))
            return result.scalar_one_or_none()

    # ── Create ────────────────────────────────────────────────────────

    async def create_sample_atomic(self, data: SampleCreate, actor: Actor) -> uuid.UUID:
        """Create a sample, claiming its slot if a location is given."""
        return await self.database.run_transaction(self._create_sample, data, actor)

    async def _create_sample(
        self, tx: AsyncSession, data: SampleCreate, actor: Actor
    ) -> uuid.UUID:
        sample_id = uuid.uuid4()

        if data.barcode:
            await ensure_barcode_unused(tx, data.barcode)

        assignment = SlotAssignment.from_fields(data.storage_location_id, data.position_label)
        if assignment is not None:
            await claim_slot(tx, assignment)
            await adjust_sample_count(tx, assignment.storage_unit_id, 1)

        sample = _new_sample(sample_id, data, actor)
        tx.add(sample)
        if assignment is not None:
            await place_sample(tx, sample, assignment)

        await AuditService(tx).log_create(
            actor=actor,
            entity_type="sample",
            entity_id=sample_id,
            details={
                "sample_code": data.sample_code,
                "location": assignment.as_dict() if assignment else None,
            },
        )
        return sample_id

    # ── Move ──────────────────────────────────────────────────────────

    async def move_sample_atomic(
        self,
        sample_id: uuid.UUID,
        target_storage_id: uuid.UUID,
        target_slot_id: str,
        actor: Actor,
    ) -> None:
        """Move a sample to another slot, in the same unit or a different one."""
        await self.database.run_transaction(
            self._move_sample, sample_id, target_storage_id, target_slot_id, actor
        )

    async def _move_sample(
        self,
        tx: AsyncSession,
        sample_id: uuid.UUID,
        target_storage_id: uuid.UUID,
        target_slot_id: str,
        actor: Actor,
    ) -> None:
        sample = await get_sample_for_update(tx, sample_id)
        target = SlotAssignment(target_storage_id, target_slot_id)
        source = await relocate_sample(tx, sample, target)
        sample.updated_by = actor.id

        await AuditService(tx).log(
            actor=actor,
            action=AuditAction.MOVE,
            entity_type="sample",
            entity_id=sample_id,
            details={
                "from_storage": str(source.storage_unit_id) if source else None,
                "from_slot": source.position_label if source else None,
                "to_storage": str(target_storage_id),
                "to_slot": target_slot_id,
            },
        )

    # ── Delete ────────────────────────────────────────────────────────

    async def delete_sample_atomic(self, sample_id: uuid.UUID, actor: Actor) -> None:
        """Delete a sample and release its slot."""
        await self.database.run_transaction(self._delete_sample, sample_id, actor)

    async def _delete_sample(
        self, tx: AsyncSession, sample_id: uuid.UUID, actor: Actor
    ) -> None:
        sample = await get_sample_for_update(tx, sample_id)
        location = SlotAssignment.of(sample)

        if location is not None:
            unit = await get_live_unit(tx, location.storage_unit_id)
            if unit is not None:
                await adjust_sample_count(tx, unit.id, -1)
                await vacate_sample(tx, sample)

        await tx.delete(sample)

        await AuditService(tx).log_delete(
            actor=actor,
            entity_type="sample",
            entity_id=sample_id,
            details={
                "sample_code": sample.sample_code,
                "location": location.as_dict() if location else None,
            },
        )

    # ── Bulk import ───────────────────────────────────────────────────

    async def import_samples_atomic(
        self, samples: Sequence[SampleCreate], actor: Actor
    ) -> list[uuid.UUID]:
        """Create a batch of samples all-or-nothing.

        Raises BatchSizeExceeded before touching the database when the batch
        is larger than the import limit.
        """
        if len(samples) > self.import_limit:
            raise BatchSizeExceeded(len(samples), self.import_limit)
        return await self.database.run_transaction(self._import_samples, samples, actor)

    async def _import_samples(
        self, tx: AsyncSession, samples: Sequence[SampleCreate], actor: Actor
    ) -> list[uuid.UUID]:
        # 1. Barcodes: unique against the database and within the batch
        seen_barcodes: set[str] = set()
        for data in samples:
            if not data.barcode:
                continue
            if data.barcode in seen_barcodes:
                raise UniquenessViolation(data.barcode)
            seen_barcodes.add(data.barcode)
            await ensure_barcode_unused(tx, data.barcode)

        # 2. Per-unit slot plan: storage id -> {slot label: batch index}
        plan: dict[uuid.UUID, dict[str, int]] = {}
        for index, data in enumerate(samples):
            assignment = SlotAssignment.from_fields(
                data.storage_location_id, data.position_label
            )
            if assignment is None:
                continue
            slots = plan.setdefault(assignment.storage_unit_id, {})
            if assignment.position_label in slots:
                raise SlotConflict(assignment.storage_unit_id, assignment.position_label)
            slots[assignment.position_label] = index

        # 3. Every unit exists and every planned slot is free; one counter
        #    increment per unit for the whole batch
        for storage_id, slots in plan.items():
            if await get_live_unit(tx, storage_id) is None:
                raise NotFoundError("Storage", storage_id)
            for label in slots:
                if await is_slot_occupied(tx, storage_id, label):
                    raise SlotConflict(storage_id, label)
            await adjust_sample_count(tx, storage_id, len(slots))

        # 4. Samples, each placed through the slot registry
        sample_ids: list[uuid.UUID] = []
        for data in samples:
            sample = _new_sample(uuid.uuid4(), data, actor)
            tx.add(sample)
            assignment = SlotAssignment.from_fields(
                data.storage_location_id, data.position_label
            )
            if assignment is not None:
                await place_sample(tx, sample, assignment)
            sample_ids.append(sample.id)

        await AuditService(tx).log(
            actor=actor,
            action=AuditAction.IMPORT,
            entity_type="sample",
            entity_id=BATCH_IMPORT_ENTITY_ID,
            details={
                "count": len(samples),
                "storage_units": {str(k): len(v) for k, v in plan.items()},
            },
        )
        return sample_ids

    # ── Status ────────────────────────────────────────────────────────

    async def update_sample_status(
        self, sample_id: uuid.UUID, status: SampleStatus, actor: Actor
    ) -> SampleStatus:
        return await self.database.run_transaction(
            self._update_sample_status, sample_id, status, actor
        )

    async def _update_sample_status(
        self, tx: AsyncSession, sample_id: uuid.UUID, status: SampleStatus, actor: Actor
    ) -> SampleStatus:
        sample = await get_sample_for_update(tx, sample_id)
        assert_sample_transition(sample.status, status)
        if sample.status == status:
            return status

        old_status = sample.status
        sample.status = status
        sample.updated_by = actor.id

        await AuditService(tx).log_update(
            actor=actor,
            entity_type="sample",
            entity_id=sample_id,
            details={"status": {"from": old_status.value, "to": status.value}},
        )
        return status
