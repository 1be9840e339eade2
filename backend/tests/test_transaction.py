"""Database.run_transaction: commit, rollback, conflict retries, and racing writers."""

import logging
import uuid

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError, OperationalError

from labvault.core.exceptions import SlotConflict, TransactionConflict
from labvault.database import Database, is_write_conflict
from labvault.models.audit import AuditLog
from labvault.models.enums import AuditAction
from labvault.models.sample import Sample
from labvault.models.storage import StorageUnit
from labvault.schemas.storage import GridSpec, StorageUnitCreate
from labvault.services.audit import AuditService
from labvault.services.sample_lifecycle import SampleLifecycleService
from labvault.services.slot_registry import is_slot_occupied, occupy_slot
from labvault.services.storage import StorageService

from conftest import audit_entries, count_rows, fetch, get_slot, make_sample, sample_count


class FakePgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


def unique_violation() -> IntegrityError:
    return IntegrityError(
        "INSERT INTO storage_slot ...", {}, Exception("UNIQUE constraint failed: storage_slot")
    )


class TestWriteConflictDetection:
    @pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
    def test_serialization_and_deadlock(self, sqlstate):
        assert is_write_conflict(OperationalError("SELECT", {}, FakePgError(sqlstate)))

    def test_pg_unique_violation(self):
        assert is_write_conflict(IntegrityError("INSERT", {}, FakePgError("23505")))

    def test_sqlite_unique_violation(self):
        assert is_write_conflict(unique_violation())

    def test_not_null_violation_is_not_retried(self):
        assert not is_write_conflict(IntegrityError("INSERT", {}, FakePgError("23502")))

    def test_other_operational_error(self):
        assert not is_write_conflict(OperationalError("SELECT", {}, FakePgError("08006")))


@pytest.mark.asyncio
async def test_retries_until_success(database, grid_unit):
    attempts = []

    async def rename(tx, name):
        attempts.append(1)
        unit = await tx.get(StorageUnit, grid_unit.id)
        unit.name = f"{name} #{len(attempts)}"
        if len(attempts) < 3:
            raise unique_violation()
        return len(attempts)

    assert await database.run_transaction(rename, "Renamed") == 3
    assert (await fetch(database, StorageUnit, grid_unit.id)).name == "Renamed #3"


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(database, grid_unit, caplog):
    attempts = []

    async def always_conflicts(tx):
        attempts.append(1)
        unit = await tx.get(StorageUnit, grid_unit.id)
        unit.name = "never committed"
        raise unique_violation()

    with pytest.raises(TransactionConflict) as exc_info:
        await database.run_transaction(always_conflicts)

    assert len(attempts) == database.max_attempts
    assert exc_info.value.attempts == database.max_attempts
    assert (await fetch(database, StorageUnit, grid_unit.id)).name == "Box 1"
    assert "gave up" in caplog.text


@pytest.mark.asyncio
async def test_domain_errors_are_not_retried(database, grid_unit):
    attempts = []

    async def conflicting(tx):
        attempts.append(1)
        tx.add(StorageUnit(storage_id="TMP", name="Temp"))
        raise SlotConflict(grid_unit.id, "A1")

    with pytest.raises(SlotConflict):
        await database.run_transaction(conflicting)

    assert len(attempts) == 1
    assert await count_rows(database, StorageUnit, StorageUnit.storage_id == "TMP") == 0


@pytest.mark.asyncio
async def test_staged_audit_is_logged_at_debug_only(database, grid_unit, actor, caplog):
    attempts = []

    async def audited_rename(tx):
        attempts.append(1)
        unit = await tx.get(StorageUnit, grid_unit.id)
        unit.name = "Renamed"
        await AuditService(tx).log_update(
            actor=actor, entity_type="storage_unit", entity_id=unit.id, details={"name": "Renamed"}
        )
        if len(attempts) == 1:
            raise unique_violation()

    caplog.set_level(logging.DEBUG, logger="labvault.services.audit")
    await database.run_transaction(audited_rename)

    audit_records = [r for r in caplog.records if r.name == "labvault.services.audit"]
    assert [r.levelno for r in audit_records] == [logging.DEBUG, logging.DEBUG]
    assert all(r.getMessage().startswith("AUDIT staged:") for r in audit_records)
    assert len(await audit_entries(database, action=AuditAction.UPDATE)) == 1


@pytest_asyncio.fixture()
async def shared_file_databases(tmp_path):
    """Two independent engines on one SQLite file, like two app workers."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'labvault.db'}"
    ours = Database(url, max_attempts=3, backoff_base=0.0, backoff_max=0.0)
    rival = Database(url, max_attempts=1)
    await ours.create_all()
    try:
        yield ours, rival
    finally:
        await ours.dispose()
        await rival.dispose()


@pytest.mark.asyncio
async def test_concurrent_claim_of_same_slot(shared_file_databases, actor, monkeypatch):
    ours, rival = shared_file_databases
    unit = await StorageService(ours).create_storage_unit(
        StorageUnitCreate(storage_id="BOX-R", name="Race box", grid_spec=GridSpec(rows=2, cols=2)),
        actor,
    )
    rival_sample = uuid.uuid4()
    checks = []

    async def check_then_lose_race(tx, storage_id, slot_id):
        occupied = await is_slot_occupied(tx, storage_id, slot_id)
        if not checks:
            # Another worker claims the slot after our read, before our writes
            await rival.run_transaction(occupy_slot, storage_id, slot_id, rival_sample, "RIVAL-1")
        checks.append(occupied)
        return occupied

    monkeypatch.setattr(
        "labvault.services.sample_lifecycle.is_slot_occupied", check_then_lose_race
    )

    with pytest.raises(SlotConflict):
        await SampleLifecycleService(ours).create_sample_atomic(
            make_sample(storage_id=unit.id, slot="A1"), actor
        )

    assert checks[0] is False
    slot = await get_slot(ours, unit.id, "A1")
    assert slot.occupied and slot.sample_id == rival_sample
    assert await sample_count(ours, unit.id) == 0
    assert await count_rows(ours, Sample) == 0
    assert await count_rows(ours, AuditLog, AuditLog.entity_type == "sample") == 0
