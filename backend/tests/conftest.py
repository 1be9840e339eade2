"""Shared fixtures for service and API tests.

Uses an in-memory SQLite database (aiosqlite) per test. Row locks
(``SELECT ... FOR UPDATE``) are not rendered by SQLite, so true concurrent
interleavings are only exercised against PostgreSQL; here the same scenarios
run sequentially.
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.pool import StaticPool

from labvault.database import Database
from labvault.models.audit import AuditLog
from labvault.models.enums import CapacityMode, SampleType
from labvault.models.storage import StorageSlot, StorageUnit
from labvault.schemas import Actor
from labvault.schemas.sample import SampleCreate
from labvault.schemas.storage import GridSpec, StorageUnitCreate
from labvault.services.storage import StorageService


# ── SQLite compatibility for PostgreSQL column types ──────────────────────

from sqlalchemy.dialects.sqlite.base import SQLiteTypeCompiler

if not hasattr(SQLiteTypeCompiler, "visit_JSONB"):
    SQLiteTypeCompiler.visit_JSONB = SQLiteTypeCompiler.visit_JSON
if not hasattr(SQLiteTypeCompiler, "visit_UUID"):
    SQLiteTypeCompiler.visit_UUID = lambda self, type_, **kw: "VARCHAR(36)"


# ── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture()
async def database():
    """A fresh in-memory database with every table created."""
    db = Database(
        "sqlite+aiosqlite://",
        max_attempts=3,
        backoff_base=0.0,
        backoff_max=0.0,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest_asyncio.fixture()
async def client(database):
    """HTTP client against an app wired to the test database."""
    from labvault.main import create_app

    app = create_app()
    app.state.database = database
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture()
def actor() -> Actor:
    return Actor(id="user-1", email="tech@lab.test")


@pytest.fixture()
def actor_headers(actor) -> dict:
    return {"X-Actor-Id": actor.id, "X-Actor-Email": actor.email}


# ── Seed data ────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture()
async def grid_unit(database, actor) -> StorageUnit:
    """An 8x12 alpha-numeric box (A1..H12)."""
    return await StorageService(database).create_storage_unit(
        StorageUnitCreate(
            storage_id="BOX-1",
            name="Box 1",
            unit_type="box",
            capacity_mode=CapacityMode.GRID,
            grid_spec=GridSpec(rows=8, cols=12),
        ),
        actor,
    )


@pytest_asyncio.fixture()
async def second_grid_unit(database, actor) -> StorageUnit:
    return await StorageService(database).create_storage_unit(
        StorageUnitCreate(
            storage_id="BOX-2",
            name="Box 2",
            unit_type="box",
            capacity_mode=CapacityMode.GRID,
            grid_spec=GridSpec(rows=9, cols=9),
        ),
        actor,
    )


@pytest_asyncio.fixture()
async def flat_unit(database, actor) -> StorageUnit:
    return await StorageService(database).create_storage_unit(
        StorageUnitCreate(
            storage_id="RACK-1",
            name="Rack 1",
            unit_type="rack",
            capacity_mode=CapacityMode.FLAT,
            capacity_slots=50,
        ),
        actor,
    )


def make_sample(
    code: str = "S-001",
    *,
    barcode: str | None = None,
    storage_id: uuid.UUID | None = None,
    slot: str | None = None,
    **extra,
) -> SampleCreate:
    return SampleCreate(
        sample_code=code,
        barcode=barcode,
        sample_type=extra.pop("sample_type", SampleType.BLOOD),
        storage_location_id=storage_id,
        position_label=slot,
        **extra,
    )


# ── Read helpers (fresh session, committed state only) ───────────────────────

async def fetch(database: Database, model, pk):
    async with database.session() as db:
        return await db.get(model, pk)


async def sample_count(database: Database, storage_id: uuid.UUID) -> int:
    unit = await fetch(database, StorageUnit, storage_id)
    return unit.sample_count


async def get_slot(database: Database, storage_id: uuid.UUID, label: str) -> StorageSlot | None:
    return await fetch(database, StorageSlot, (storage_id, label))


async def occupied_slot_count(database: Database, storage_id: uuid.UUID) -> int:
    async with database.session() as db:
        return (await db.execute(
            select(func.count())
            .select_from(StorageSlot)
            .where(
                StorageSlot.storage_unit_id == storage_id,
                StorageSlot.occupied == True,  # noqa: E712
            )
        )).scalar_one()


async def count_rows(database: Database, model, *criteria) -> int:
    async with database.session() as db:
        query = select(func.count()).select_from(model)
        if criteria:
            query = query.where(*criteria)
        return (await db.execute(query)).scalar_one()


async def audit_entries(database: Database, **filters) -> list[AuditLog]:
    async with database.session() as db:
        query = select(AuditLog).filter_by(**filters).order_by(AuditLog.timestamp)
        return list((await db.execute(query)).scalars().all())
