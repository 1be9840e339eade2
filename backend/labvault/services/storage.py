"""Storage unit service: provisioning, capacity, and slot registry views."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from labvault.core.exceptions import DuplicateIdentifier, NotFoundError
from labvault.database import Database
from labvault.models.storage import StorageSlot, StorageUnit
from labvault.schemas import Actor
from labvault.schemas.storage import StorageUnitCreate, StorageUnitDetail
from labvault.services.audit import AuditService
from labvault.services.capacity import build_path_from_ancestors, derive_capacity_snapshot
from labvault.services.slot_registry import get_live_unit

logger = logging.getLogger(__name__)


async def recount_unit(tx: AsyncSession, storage_id: uuid.UUID, actor: Actor) -> int:
    """Reset one unit's ``sample_count`` to its occupied slot rows, inside ``tx``."""
    result = await tx.execute(
        select(StorageUnit)
        .where(
            StorageUnit.id == storage_id,
            StorageUnit.is_deleted == False,  # noqa: E712
        )
        .with_for_update()
    )
    unit = result.scalar_one_or_none()
    if unit is None:
        raise NotFoundError("Storage", storage_id)

    actual = (await tx.execute(
        select(func.count())
        .select_from(StorageSlot)
        .where(
            StorageSlot.storage_unit_id == storage_id,
            StorageSlot.occupied == True,  # noqa: E712
        )
    )).scalar_one()

    if unit.sample_count != actual:
        logger.warning(
            "Storage %s sample_count drifted: stored=%d actual=%d",
            unit.storage_id,
            unit.sample_count,
            actual,
        )
        await AuditService(tx).log_update(
            actor=actor,
            entity_type="storage_unit",
            entity_id=storage_id,
            details={"sample_count": {"from": unit.sample_count, "to": actual}},
        )
        unit.sample_count = actual
    return actual


class StorageService:
    def __init__(self, database: Database):
        self.database = database

    # ── Units ─────────────────────────────────────────────────────────

    async def create_storage_unit(
        self, data: StorageUnitCreate, actor: Actor
    ) -> StorageUnit:
        return await self.database.run_transaction(self._create_storage_unit, data, actor)

    async def _create_storage_unit(
        self, tx: AsyncSession, data: StorageUnitCreate, actor: Actor
    ) -> StorageUnit:
        existing = await tx.execute(
            select(StorageUnit.id).where(StorageUnit.storage_id == data.storage_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateIdentifier("Storage unit", data.storage_id)

        ancestors: list[str] = []
        lookup: dict[str, StorageUnit] = {}
        if data.parent_storage_id is not None:
            parent = await get_live_unit(tx, data.parent_storage_id)
            if parent is None:
                raise NotFoundError("Storage", data.parent_storage_id)
            ancestors = [*parent.ancestors, str(parent.id)]
            result = await tx.execute(
                select(StorageUnit).where(
                    StorageUnit.id.in_([uuid.UUID(a) for a in ancestors])
                )
            )
            lookup = {str(u.id): u for u in result.scalars().all()}

        unit = StorageUnit(
            id=uuid.uuid4(),
            storage_id=data.storage_id,
            name=data.name,
            unit_type=data.unit_type,
            description=data.description,
            parent_storage_id=data.parent_storage_id,
            ancestors=ancestors,
            capacity_mode=data.capacity_mode,
            capacity_slots=data.capacity_slots,
            grid_spec=data.grid_spec.model_dump(mode="json") if data.grid_spec else None,
            overrides=data.overrides.model_dump(mode="json") if data.overrides else None,
            custom_slots=(
                [s.model_dump(mode="json") for s in data.custom_slots]
                if data.custom_slots else None
            ),
            temperature_c=data.temperature_c,
            sample_count=0,
            created_by_id=actor.id,
        )
        # Flat/custom units are sized by their slot definitions when not given
        if unit.capacity_slots is None and data.custom_slots:
            unit.capacity_slots = sum(1 for s in data.custom_slots if not s.disabled)

        path = build_path_from_ancestors(unit, lookup)
        unit.path_ids = path.path_ids
        unit.path_names = path.path_names
        unit.full_path = path.full_path
        unit.depth = path.depth

        tx.add(unit)
        await tx.flush()

        await AuditService(tx).log_create(
            actor=actor,
            entity_type="storage_unit",
            entity_id=unit.id,
            details={"storage_id": unit.storage_id, "full_path": unit.full_path},
        )
        return unit

    async def get_storage_unit_detail(self, storage_id: uuid.UUID) -> StorageUnitDetail:
        """Unit with a capacity snapshot computed from its occupied slot rows."""
        async with self.database.session() as db:
            unit = await get_live_unit(db, storage_id)
            if unit is None:
                raise NotFoundError("Storage", storage_id)
            labels = await self._occupied_labels(db, storage_id)

        detail = StorageUnitDetail.model_validate(unit)
        detail.capacity = derive_capacity_snapshot(unit, labels)
        return detail

    # ── Slots ─────────────────────────────────────────────────────────

    async def list_slots(self, storage_id: uuid.UUID) -> list[StorageSlot]:
        async with self.database.session() as db:
            if await get_live_unit(db, storage_id) is None:
                raise NotFoundError("Storage", storage_id)
            result = await db.execute(
                select(StorageSlot)
                .where(StorageSlot.storage_unit_id == storage_id)
                .order_by(StorageSlot.slot_label)
            )
            return list(result.scalars().all())

    async def recount_samples(self, storage_id: uuid.UUID, actor: Actor) -> int:
        """Reset ``sample_count`` to the number of occupied slot rows."""
        return await self.database.run_transaction(recount_unit, storage_id, actor)

    @staticmethod
    async def _occupied_labels(db: AsyncSession, storage_id: uuid.UUID) -> list[str]:
        result = await db.execute(
            select(StorageSlot.slot_label).where(
                StorageSlot.storage_unit_id == storage_id,
                StorageSlot.occupied == True,  # noqa: E712
            )
        )
        return list(result.scalars().all())
