"""Atomic sample create / move / delete / import against the slot registry."""

import uuid

import pytest
from sqlalchemy import select

from labvault.core.exceptions import (
    BatchSizeExceeded,
    InvalidTransition,
    NotFoundError,
    SlotConflict,
    UniquenessViolation,
)
from labvault.database import Database
from labvault.models.audit import AuditLog
from labvault.models.enums import AuditAction, SampleStatus, SampleType
from labvault.models.sample import Sample
from labvault.models.storage import StorageUnit
from labvault.services.sample_lifecycle import BATCH_IMPORT_ENTITY_ID, SampleLifecycleService

from conftest import (
    audit_entries,
    count_rows,
    fetch,
    get_slot,
    make_sample,
    occupied_slot_count,
    sample_count,
)


@pytest.fixture()
def service(database) -> SampleLifecycleService:
    return SampleLifecycleService(database)


async def assert_counter_matches_registry(database: Database, storage_id: uuid.UUID):
    assert await sample_count(database, storage_id) == await occupied_slot_count(database, storage_id)


# ── Create ───────────────────────────────────────────────────────────────────

class TestCreate:
    @pytest.mark.asyncio
    async def test_create_without_location(self, database, service, actor):
        sample_id = await service.create_sample_atomic(make_sample(barcode="BC-1"), actor)

        sample = await fetch(database, Sample, sample_id)
        assert sample.barcode == "BC-1"
        assert sample.storage_location_id is None
        assert sample.status == SampleStatus.RECEIVED
        assert sample.created_by == actor.email
        assert sample.created_by_id == actor.id

        entries = await audit_entries(database, entity_id=str(sample_id))
        assert [e.action for e in entries] == [AuditAction.CREATE]

    @pytest.mark.asyncio
    async def test_create_claims_slot(self, database, service, actor, grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )

        slot = await get_slot(database, grid_unit.id, "A1")
        assert slot.occupied is True
        assert slot.sample_id == sample_id
        assert slot.sample_label == "S-001"

        sample = await fetch(database, Sample, sample_id)
        assert sample.storage_location_id == grid_unit.id
        assert sample.position_label == "A1"
        assert await sample_count(database, grid_unit.id) == 1

        entry = (await audit_entries(database, entity_id=str(sample_id)))[0]
        assert entry.actor == actor.id
        assert entry.details["location"] == {"storage_id": str(grid_unit.id), "slot": "A1"}

    @pytest.mark.asyncio
    async def test_second_sample_into_same_slot_conflicts(self, database, service, actor, grid_unit):
        first = await service.create_sample_atomic(
            make_sample("S-001", storage_id=grid_unit.id, slot="A1"), actor
        )
        with pytest.raises(SlotConflict):
            await service.create_sample_atomic(
                make_sample("S-002", storage_id=grid_unit.id, slot="A1"), actor
            )

        slot = await get_slot(database, grid_unit.id, "A1")
        assert slot.sample_id == first
        assert await sample_count(database, grid_unit.id) == 1
        assert await count_rows(database, Sample) == 1

    @pytest.mark.asyncio
    async def test_duplicate_barcode_has_no_side_effects(self, database, service, actor, grid_unit):
        await service.create_sample_atomic(make_sample("S-001", barcode="X"), actor)

        with pytest.raises(UniquenessViolation):
            await service.create_sample_atomic(
                make_sample("S-002", barcode="X", storage_id=grid_unit.id, slot="B2"), actor
            )

        assert await get_slot(database, grid_unit.id, "B2") is None
        assert await sample_count(database, grid_unit.id) == 0
        assert await count_rows(database, Sample) == 1
        assert await count_rows(database, AuditLog, AuditLog.entity_type == "sample") == 1

    @pytest.mark.asyncio
    async def test_unknown_storage_unit(self, database, service, actor):
        with pytest.raises(NotFoundError):
            await service.create_sample_atomic(
                make_sample(storage_id=uuid.uuid4(), slot="A1"), actor
            )
        assert await count_rows(database, Sample) == 0

    @pytest.mark.asyncio
    async def test_soft_deleted_storage_unit_no_longer_exists(self, database, service, actor, grid_unit):
        async def soft_delete(tx):
            unit = await tx.get(StorageUnit, grid_unit.id)
            unit.is_deleted = True

        await database.run_transaction(soft_delete)

        with pytest.raises(NotFoundError):
            await service.create_sample_atomic(
                make_sample(storage_id=grid_unit.id, slot="A1"), actor
            )


# ── Move ─────────────────────────────────────────────────────────────────────

class TestMove:
    @pytest.mark.asyncio
    async def test_cross_unit_move(self, database, service, actor, grid_unit, second_grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )

        await service.move_sample_atomic(sample_id, second_grid_unit.id, "B2", actor)

        assert (await get_slot(database, grid_unit.id, "A1")).occupied is False
        target = await get_slot(database, second_grid_unit.id, "B2")
        assert target.occupied and target.sample_id == sample_id
        assert await sample_count(database, grid_unit.id) == 0
        assert await sample_count(database, second_grid_unit.id) == 1

        sample = await fetch(database, Sample, sample_id)
        assert (sample.storage_location_id, sample.position_label) == (second_grid_unit.id, "B2")
        assert sample.updated_by == actor.id

        moves = await audit_entries(database, entity_id=str(sample_id), action=AuditAction.MOVE)
        assert len(moves) == 1
        assert moves[0].details == {
            "from_storage": str(grid_unit.id),
            "from_slot": "A1",
            "to_storage": str(second_grid_unit.id),
            "to_slot": "B2",
        }

    @pytest.mark.asyncio
    async def test_same_unit_move_keeps_count(self, database, service, actor, grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )

        await service.move_sample_atomic(sample_id, grid_unit.id, "H12", actor)

        assert (await get_slot(database, grid_unit.id, "A1")).occupied is False
        assert (await get_slot(database, grid_unit.id, "H12")).sample_id == sample_id
        assert await sample_count(database, grid_unit.id) == 1
        await assert_counter_matches_registry(database, grid_unit.id)

    @pytest.mark.asyncio
    async def test_move_unplaced_sample(self, database, service, actor, grid_unit):
        sample_id = await service.create_sample_atomic(make_sample(), actor)

        await service.move_sample_atomic(sample_id, grid_unit.id, "C3", actor)

        assert await sample_count(database, grid_unit.id) == 1
        move = (await audit_entries(database, action=AuditAction.MOVE))[0]
        assert move.details["from_storage"] is None
        assert move.details["from_slot"] is None

    @pytest.mark.asyncio
    async def test_move_into_occupied_slot_changes_nothing(
        self, database, service, actor, grid_unit, second_grid_unit
    ):
        mover = await service.create_sample_atomic(
            make_sample("S-001", storage_id=grid_unit.id, slot="A1"), actor
        )
        blocker = await service.create_sample_atomic(
            make_sample("S-002", storage_id=second_grid_unit.id, slot="B2"), actor
        )

        with pytest.raises(SlotConflict):
            await service.move_sample_atomic(mover, second_grid_unit.id, "B2", actor)

        assert (await get_slot(database, grid_unit.id, "A1")).sample_id == mover
        assert (await get_slot(database, second_grid_unit.id, "B2")).sample_id == blocker
        assert await sample_count(database, grid_unit.id) == 1
        assert await sample_count(database, second_grid_unit.id) == 1
        assert await audit_entries(database, action=AuditAction.MOVE) == []

    @pytest.mark.asyncio
    async def test_move_into_own_slot_conflicts(self, service, actor, grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )
        with pytest.raises(SlotConflict):
            await service.move_sample_atomic(sample_id, grid_unit.id, "A1", actor)

    @pytest.mark.asyncio
    async def test_move_out_of_deleted_unit(self, database, service, actor, grid_unit, second_grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )

        async def soft_delete(tx):
            unit = await tx.get(StorageUnit, grid_unit.id)
            unit.is_deleted = True

        await database.run_transaction(soft_delete)

        await service.move_sample_atomic(sample_id, second_grid_unit.id, "A1", actor)

        # The vanished source is left untouched; the target is claimed
        assert await sample_count(database, grid_unit.id) == 1
        assert await sample_count(database, second_grid_unit.id) == 1
        sample = await fetch(database, Sample, sample_id)
        assert sample.storage_location_id == second_grid_unit.id

    @pytest.mark.asyncio
    async def test_move_missing_sample(self, service, actor, grid_unit):
        with pytest.raises(NotFoundError):
            await service.move_sample_atomic(uuid.uuid4(), grid_unit.id, "A1", actor)


# ── Delete ───────────────────────────────────────────────────────────────────

class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_releases_slot(self, database, service, actor, grid_unit):
        sample_id = await service.create_sample_atomic(
            make_sample(storage_id=grid_unit.id, slot="A1"), actor
        )

        await service.delete_sample_atomic(sample_id, actor)

        assert await fetch(database, Sample, sample_id) is None
        slot = await get_slot(database, grid_unit.id, "A1")
        assert slot.occupied is False and slot.sample_id is None
        assert await sample_count(database, grid_unit.id) == 0

        deletes = await audit_entries(database, entity_id=str(sample_id), action=AuditAction.DELETE)
        assert len(deletes) == 1

    @pytest.mark.asyncio
    async def test_freed_slot_can_be_reused(self, database, service, actor, grid_unit):
        first = await service.create_sample_atomic(
            make_sample("S-001", storage_id=grid_unit.id, slot="A1"), actor
        )
        await service.delete_sample_atomic(first, actor)

        second = await service.create_sample_atomic(
            make_sample("S-002", storage_id=grid_unit.id, slot="A1"), actor
        )

        assert (await get_slot(database, grid_unit.id, "A1")).sample_id == second
        await assert_counter_matches_registry(database, grid_unit.id)

    @pytest.mark.asyncio
    async def test_delete_unplaced_sample(self, database, service, actor):
        sample_id = await service.create_sample_atomic(make_sample(), actor)
        await service.delete_sample_atomic(sample_id, actor)
        assert await count_rows(database, Sample) == 0

    @pytest.mark.asyncio
    async def test_delete_unit_without_label_keeps_counter(
        self, database, service, actor, grid_unit
    ):
        # Legacy row: unit set, label missing, so it never held a slot
        async def insert(tx):
            sample = Sample(
                sample_code="LEGACY-1",
                sample_type=SampleType.BLOOD,
                storage_location_id=grid_unit.id,
                position_label=None,
            )
            tx.add(sample)
            await tx.flush()
            return sample.id

        sample_id = await database.run_transaction(insert)

        await service.delete_sample_atomic(sample_id, actor)

        assert await fetch(database, Sample, sample_id) is None
        assert await sample_count(database, grid_unit.id) == 0

    @pytest.mark.asyncio
    async def test_delete_missing_sample(self, service, actor):
        with pytest.raises(NotFoundError):
            await service.delete_sample_atomic(uuid.uuid4(), actor)


# ── Import ───────────────────────────────────────────────────────────────────

class TestImport:
    @pytest.mark.asyncio
    async def test_import_batch(self, database, service, actor, grid_unit, second_grid_unit):
        batch = [
            make_sample("S-001", barcode="B1", storage_id=grid_unit.id, slot="A1"),
            make_sample("S-002", barcode="B2", storage_id=grid_unit.id, slot="A2"),
            make_sample("S-003", storage_id=second_grid_unit.id, slot="A1"),
            make_sample("S-004"),
        ]

        ids = await service.import_samples_atomic(batch, actor)

        assert len(ids) == 4
        assert await count_rows(database, Sample) == 4
        assert await sample_count(database, grid_unit.id) == 2
        assert await sample_count(database, second_grid_unit.id) == 1
        assert (await get_slot(database, grid_unit.id, "A2")).sample_id == ids[1]

        entries = await audit_entries(database, action=AuditAction.IMPORT)
        assert len(entries) == 1
        assert entries[0].entity_id == BATCH_IMPORT_ENTITY_ID
        assert entries[0].details["count"] == 4

    @pytest.mark.asyncio
    async def test_over_limit_rejected_without_writes(self, database, service, actor):
        batch = [make_sample(f"S-{i:03d}") for i in range(201)]

        with pytest.raises(BatchSizeExceeded):
            await service.import_samples_atomic(batch, actor)

        assert await count_rows(database, Sample) == 0
        assert await count_rows(database, AuditLog, AuditLog.entity_type == "sample") == 0

    @pytest.mark.asyncio
    async def test_limit_is_inclusive(self, database, actor):
        service = SampleLifecycleService(database, import_limit=3)
        await service.import_samples_atomic([make_sample(f"S-{i}") for i in range(3)], actor)
        with pytest.raises(BatchSizeExceeded):
            await service.import_samples_atomic([make_sample(f"T-{i}") for i in range(4)], actor)

    @pytest.mark.asyncio
    async def test_slot_collision_with_database_rolls_back_everything(
        self, database, service, actor, grid_unit
    ):
        await service.create_sample_atomic(
            make_sample("S-000", storage_id=grid_unit.id, slot="C3"), actor
        )
        batch = [
            make_sample("S-001", storage_id=grid_unit.id, slot="C1"),
            make_sample("S-002", storage_id=grid_unit.id, slot="C3"),
        ]

        with pytest.raises(SlotConflict):
            await service.import_samples_atomic(batch, actor)

        assert await count_rows(database, Sample) == 1
        assert await get_slot(database, grid_unit.id, "C1") is None
        assert await sample_count(database, grid_unit.id) == 1

    @pytest.mark.asyncio
    async def test_slot_collision_within_batch(self, database, service, actor, grid_unit):
        batch = [
            make_sample("S-001", storage_id=grid_unit.id, slot="D1"),
            make_sample("S-002", storage_id=grid_unit.id, slot="D1"),
        ]
        with pytest.raises(SlotConflict):
            await service.import_samples_atomic(batch, actor)
        assert await count_rows(database, Sample) == 0
        assert await sample_count(database, grid_unit.id) == 0

    @pytest.mark.asyncio
    async def test_duplicate_barcode_within_batch(self, database, service, actor):
        batch = [make_sample("S-001", barcode="DUP"), make_sample("S-002", barcode="DUP")]
        with pytest.raises(UniquenessViolation):
            await service.import_samples_atomic(batch, actor)
        assert await count_rows(database, Sample) == 0

    @pytest.mark.asyncio
    async def test_duplicate_barcode_against_database(self, database, service, actor):
        await service.create_sample_atomic(make_sample("S-000", barcode="TAKEN"), actor)
        batch = [make_sample("S-001", barcode="NEW"), make_sample("S-002", barcode="TAKEN")]
        with pytest.raises(UniquenessViolation):
            await service.import_samples_atomic(batch, actor)
        assert await count_rows(database, Sample) == 1

    @pytest.mark.asyncio
    async def test_missing_storage_unit(self, database, service, actor):
        with pytest.raises(NotFoundError):
            await service.import_samples_atomic(
                [make_sample(storage_id=uuid.uuid4(), slot="A1")], actor
            )
        assert await count_rows(database, Sample) == 0


# ── Status ───────────────────────────────────────────────────────────────────

class TestStatus:
    @pytest.mark.asyncio
    async def test_legal_transition_is_audited(self, database, service, actor):
        sample_id = await service.create_sample_atomic(make_sample(), actor)

        await service.update_sample_status(sample_id, SampleStatus.IN_STORAGE, actor)

        assert (await fetch(database, Sample, sample_id)).status == SampleStatus.IN_STORAGE
        updates = await audit_entries(database, entity_id=str(sample_id), action=AuditAction.UPDATE)
        assert updates[0].details == {"status": {"from": "received", "to": "in_storage"}}

    @pytest.mark.asyncio
    async def test_same_state_is_a_noop(self, database, service, actor):
        sample_id = await service.create_sample_atomic(make_sample(), actor)

        await service.update_sample_status(sample_id, SampleStatus.RECEIVED, actor)

        assert await audit_entries(database, action=AuditAction.UPDATE) == []

    @pytest.mark.asyncio
    async def test_terminal_state_is_locked(self, database, service, actor):
        sample_id = await service.create_sample_atomic(make_sample(), actor)
        await service.update_sample_status(sample_id, SampleStatus.DISPOSED, actor)

        with pytest.raises(InvalidTransition):
            await service.update_sample_status(sample_id, SampleStatus.IN_STORAGE, actor)

        assert (await fetch(database, Sample, sample_id)).status == SampleStatus.DISPOSED


@pytest.mark.asyncio
async def test_counters_track_registry_across_operations(database, service, actor, grid_unit, flat_unit):
    ids = await service.import_samples_atomic(
        [make_sample(f"S-{i}", storage_id=grid_unit.id, slot=f"A{i}") for i in range(1, 6)],
        actor,
    )
    await service.move_sample_atomic(ids[0], flat_unit.id, "1", actor)
    await service.move_sample_atomic(ids[1], grid_unit.id, "B1", actor)
    await service.delete_sample_atomic(ids[2], actor)

    await assert_counter_matches_registry(database, grid_unit.id)
    await assert_counter_matches_registry(database, flat_unit.id)
    assert await sample_count(database, grid_unit.id) == 3
    assert await sample_count(database, flat_unit.id) == 1

    async with database.session() as db:
        placed = (await db.execute(
            select(Sample).where(Sample.storage_location_id == grid_unit.id)
        )).scalars().all()
    assert sorted(s.position_label for s in placed) == ["A4", "A5", "B1"]
