"""Slot registry: occupy, free, and check single storage slots.

Every function works on the caller's session inside an already-open
transaction and never begins or commits one. Errors propagate and abort the
enclosing transaction.

A slot row is a reverse index (slot -> sample) alongside the sample's own
forward reference (sample -> unit + label). ``place_sample`` and
``vacate_sample`` are the only writers that touch both sides, so the two can
never be updated one without the other.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.core.exceptions import SlotConflict
from labvault.models.sample import Sample
from labvault.models.storage import StorageSlot, StorageUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotAssignment:
    storage_unit_id: uuid.UUID
    position_label: str

    @classmethod
    def from_fields(
        cls, storage_unit_id: uuid.UUID | None, position_label: str | None
    ) -> "SlotAssignment | None":
        if storage_unit_id is None or not position_label:
            return None
        return cls(storage_unit_id, position_label)

    @classmethod
    def of(cls, sample: Sample) -> "SlotAssignment | None":
        return cls.from_fields(sample.storage_location_id, sample.position_label)

    def as_dict(self) -> dict:
        return {
            "storage_id": str(self.storage_unit_id),
            "slot": self.position_label,
        }


# ── Unit lookups ──────────────────────────────────────────────────────

async def get_live_unit(tx: AsyncSession, storage_id: uuid.UUID) -> StorageUnit | None:
    """Return the storage unit unless it is missing or soft-deleted."""
    result = await tx.execute(
        select(StorageUnit).where(
            StorageUnit.id == storage_id,
            StorageUnit.is_deleted == False,  # noqa: E712
        )
    )
    return result.scalar_one_or_none()


async def adjust_sample_count(
    tx: AsyncSession, storage_id: uuid.UUID, delta: int
) -> None:
    """Apply ``sample_count += delta`` as a single SQL update."""
    if delta == 0:
        return
    await tx.execute(
        update(StorageUnit)
        .where(StorageUnit.id == storage_id)
        .values(sample_count=StorageUnit.sample_count + delta)
    )


# ── Slot operations ───────────────────────────────────────────────────

async def is_slot_occupied(
    tx: AsyncSession, storage_id: uuid.UUID, slot_id: str
) -> bool:
    """Read the slot through the transaction, locking the row if it exists.

    A slot with no registry row has never been provisioned and is free.
    """
    # No skip_locked: a row held by another writer must block, not read as free
    result = await tx.execute(
        select(StorageSlot)
        .where(
            StorageSlot.storage_unit_id == storage_id,
            StorageSlot.slot_label == slot_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    slot = result.scalar_one_or_none()
    return slot is not None and slot.occupied


async def occupy_slot(
    tx: AsyncSession,
    storage_id: uuid.UUID,
    slot_id: str,
    occupant_id: uuid.UUID,
    occupant_label: str | None,
) -> None:
    """Upsert the slot row as occupied by ``occupant_id``.

    The caller must already have checked ``is_slot_occupied`` in the same
    transaction. A row that another sample has claimed since that check
    raises ``SlotConflict`` rather than being overwritten.
    """
    now = datetime.now(timezone.utc)
    slot = await tx.get(StorageSlot, (storage_id, slot_id))
    if slot is not None and slot.occupied and slot.sample_id != occupant_id:
        raise SlotConflict(storage_id, slot_id)
    if slot is None:
        tx.add(StorageSlot(
            storage_unit_id=storage_id,
            slot_label=slot_id,
            sample_id=occupant_id,
            sample_label=occupant_label,
            occupied=True,
            updated_at=now,
        ))
    else:
        slot.sample_id = occupant_id
        slot.sample_label = occupant_label
        slot.occupied = True
        slot.updated_at = now
    # Surface a concurrent insert of the same key now, inside the retry loop
    await tx.flush()


async def free_slot(tx: AsyncSession, storage_id: uuid.UUID, slot_id: str) -> None:
    """Clear the occupant and mark the slot free.

    Freeing a slot that has no registry row is a no-op.
    """
    slot = await tx.get(StorageSlot, (storage_id, slot_id))
    if slot is None:
        logger.warning(
            "Freeing slot %s in storage %s which has no registry row; treating as free",
            slot_id,
            storage_id,
        )
        return
    slot.sample_id = None
    slot.sample_label = None
    slot.occupied = False
    slot.updated_at = datetime.now(timezone.utc)
    await tx.flush()


# ── Dual-bookkeeping writers ──────────────────────────────────────────

async def place_sample(
    tx: AsyncSession, sample: Sample, assignment: SlotAssignment
) -> None:
    """Occupy the slot for the sample and point the sample at it."""
    await occupy_slot(
        tx,
        assignment.storage_unit_id,
        assignment.position_label,
        sample.id,
        sample.sample_code,
    )
    sample.storage_location_id = assignment.storage_unit_id
    sample.position_label = assignment.position_label


async def vacate_sample(
    tx: AsyncSession, sample: Sample, *, free_registry_row: bool = True
) -> None:
    """Free the sample's slot and clear its location fields.

    ``free_registry_row=False`` is for a source unit that no longer exists:
    its registry is left alone and only the sample side is cleared.
    """
    assignment = SlotAssignment.of(sample)
    if assignment is not None and free_registry_row:
        await free_slot(tx, assignment.storage_unit_id, assignment.position_label)
    sample.storage_location_id = None
    sample.position_label = None
