"""One-time migration: legacy inline occupancy maps -> storage_slot rows.

Storage units created before the slot registry kept occupancy in an inline
``occupied_slots`` JSON map ``{slot_label: sample_id}``. For every unit that
still has a non-empty map this script:

  1. upserts one ``storage_slot`` row per entry (occupied, ``migrated = true``)
  2. clears the legacy map
  3. resets ``sample_count`` from the occupied rows

An entry whose slot the registry already gives to a different sample is
skipped with a warning; the live placement is kept.

Each unit is migrated and recounted in one transaction, so a failure leaves
earlier units migrated and the failing unit untouched. Re-running is safe:
migrated units have an empty map and are skipped.

Usage:
  cd backend
  python -m labvault.scripts.migrate_slots [--dry-run]
"""

import argparse
import asyncio
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.database import Database
from labvault.models.storage import StorageSlot, StorageUnit
from labvault.schemas import Actor
from labvault.services.capacity import normalize_occupied_slots
from labvault.services.slot_registry import is_slot_occupied, occupy_slot
from labvault.services.storage import recount_unit

logger = logging.getLogger(__name__)

MIGRATION_ACTOR = Actor(id="system:migrate_slots")


@dataclass
class MigrationStats:
    units: int = 0
    slots: int = 0
    skipped: int = 0


def _parse_occupant(raw: object) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


async def migrate_unit_slots(tx: AsyncSession, unit_id: uuid.UUID) -> tuple[int, int]:
    """Move one unit's legacy map into its slot registry.

    Returns ``(written, skipped)``. An entry whose slot is already held by a
    different sample in the registry is skipped; the registry wins.
    """
    result = await tx.execute(
        select(StorageUnit).where(StorageUnit.id == unit_id).with_for_update()
    )
    unit = result.scalar_one()
    legacy = unit.occupied_slots or {}

    moved = skipped = 0
    for label in normalize_occupied_slots(legacy):
        raw = legacy[label]
        occupant = _parse_occupant(raw)
        if occupant is None:
            logger.warning(
                "Unit %s slot %s: occupant %r is not a sample id; keeping it as the label",
                unit.storage_id,
                label,
                raw,
            )
        if await is_slot_occupied(tx, unit.id, label):
            slot = await tx.get(StorageSlot, (unit.id, label))
            if occupant is None or slot.sample_id != occupant:
                logger.warning(
                    "Unit %s slot %s: registry already holds %s; skipping legacy occupant %r",
                    unit.storage_id,
                    label,
                    slot.sample_id or slot.sample_label,
                    raw,
                )
                skipped += 1
                continue
        await occupy_slot(tx, unit.id, label, occupant, str(raw))
        slot = await tx.get(StorageSlot, (unit.id, label))
        slot.migrated = True
        moved += 1

    unit.occupied_slots = None
    await tx.flush()
    await recount_unit(tx, unit.id, MIGRATION_ACTOR)
    return moved, skipped


async def run_migration(database: Database, dry_run: bool = False) -> MigrationStats:
    """Migrate every unit that still carries a legacy occupancy map."""
    async with database.session() as db:
        result = await db.execute(
            select(StorageUnit.id, StorageUnit.storage_id, StorageUnit.occupied_slots)
            .where(
                StorageUnit.occupied_slots.isnot(None),
                StorageUnit.is_deleted == False,  # noqa: E712
            )
            .order_by(StorageUnit.storage_id)
        )
        pending = [(uid, code, slots) for uid, code, slots in result.all() if slots]

    stats = MigrationStats()
    for unit_id, code, slots in pending:
        logger.info("Processing unit %s with %d slots...", code, len(slots))
        if dry_run:
            stats.units += 1
            stats.slots += len(slots)
            continue
        moved, skipped = await database.run_transaction(migrate_unit_slots, unit_id)
        stats.units += 1
        stats.slots += moved
        stats.skipped += skipped

    logger.info(
        "%s %d storage units, %d slots (%d skipped).",
        "Would migrate" if dry_run else "Migrated",
        stats.units,
        stats.slots,
        stats.skipped,
    )
    return stats


async def main(dry_run: bool) -> None:
    database = Database.from_settings()
    try:
        await run_migration(database, dry_run=dry_run)
    finally:
        await database.dispose()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    parser = argparse.ArgumentParser(
        description="Move legacy occupied_slots maps into the storage_slot registry."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be migrated without writing anything.",
    )
    args = parser.parse_args()
    asyncio.run(main(args.dry_run))
