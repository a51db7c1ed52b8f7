import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.pool import NullPool, StaticPool

from fixflow.db.models import Base, FlowStateRecord
from fixflow.db.session import build_engine, build_sessionmaker
from fixflow.services.sql_flow_store import SQLFlowStore
from fixflow.workflow.engine import FlowEngine
from fixflow.workflow.errors import StorageFailure, VersionConflict


@pytest_asyncio.fixture
async def session_factory():
    db_engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield build_sessionmaker(db_engine)
    finally:
        await db_engine.dispose()


@pytest.fixture
def sql_store(session_factory):
    return SQLFlowStore(session_factory)


@pytest.fixture
def sql_engine(sql_store, clock):
    return FlowEngine(sql_store, clock=clock, ttl=timedelta(minutes=30))


@pytest.mark.asyncio
async def test_round_trip_through_table(sql_engine, sql_store, session_factory):
    await sql_engine.start_flow("42", "wo_new", {"facilityId": "7"})
    await sql_engine.advance_step("42", 2, {"typeOfWork": "repair"})

    loaded = await sql_store.get("42")
    assert loaded.current_step == 2
    assert loaded.data == {"facilityId": "7", "typeOfWork": "repair"}
    assert loaded.history[0].data == {"facilityId": "7"}

    async with session_factory() as session:
        record = (await session.execute(select(FlowStateRecord))).scalars().one()
    assert record.owner_id == "42"
    assert record.status == "active"
    assert record.current_step == 2
    assert record.version == 2


@pytest.mark.asyncio
async def test_missing_owner_reads_none(sql_store):
    assert await sql_store.get("nobody") is None


@pytest.mark.asyncio
async def test_compare_and_swap_rejects_stale_version(sql_engine, sql_store):
    await sql_engine.start_flow("42", "wo_new")
    stale = await sql_store.get("42")
    await sql_engine.update_data("42", {"note": "first"})

    stale.data = {"note": "second"}
    stale.version = 2
    with pytest.raises(VersionConflict) as excinfo:
        await sql_store.upsert("42", stale, expected_version=1)

    assert excinfo.value.actual == 2
    assert (await sql_store.get("42")).data == {"note": "first"}


@pytest.mark.asyncio
async def test_versioned_write_on_missing_row_conflicts(sql_engine, sql_store):
    session = await sql_engine.start_flow("42", "wo_new")
    await sql_store.delete("42")

    with pytest.raises(VersionConflict):
        await sql_store.upsert("42", session, expected_version=1)


@pytest.mark.asyncio
async def test_full_flow_and_expiry(sql_engine, sql_store, clock):
    await sql_engine.start_flow("42", "reg_fac")
    await sql_engine.advance_step("42", 2, {"name": "Plant A"})
    completed = await sql_engine.complete_flow("42", {"facilityId": 11})
    assert completed.status.value == "completed"

    clock.advance(minutes=31)
    assert await sql_engine.get_flow("42") is None
    assert await sql_store.get("42") is None


@pytest.mark.asyncio
async def test_reap_expired(sql_engine, sql_store, clock):
    await sql_engine.start_flow("old", "wo_new")
    clock.advance(hours=2)
    await sql_engine.start_flow("new", "wo_new")

    assert await sql_engine.reap_expired() == 1
    assert await sql_store.get("old") is None
    assert await sql_store.get("new") is not None


@pytest.mark.asyncio
async def test_database_errors_become_storage_failures(clock):
    db_engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    # No tables created
    store = SQLFlowStore(build_sessionmaker(db_engine))
    try:
        with pytest.raises(StorageFailure):
            await store.get("42")
    finally:
        await db_engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_first_start_never_fails(tmp_path, clock):
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'flows.db'}", poolclass=NullPool)
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    store = SQLFlowStore(build_sessionmaker(db_engine))
    flow_engine = FlowEngine(store, clock=clock)
    try:
        sessions = await asyncio.gather(*(flow_engine.start_flow("dup", "wo_new") for _ in range(5)))

        assert all(session.current_step == 1 for session in sessions)
        stored = await store.get("dup")
        assert stored.is_active
        assert stored.history == []
    finally:
        await db_engine.dispose()


@pytest.mark.asyncio
async def test_restart_replaces_row_in_place(sql_engine, sql_store, session_factory):
    await sql_engine.start_flow("42", "wo_new")
    await sql_engine.advance_step("42", 2, {"typeOfWork": "repair"})

    await sql_engine.start_flow("42", "reminder_new")

    async with session_factory() as session:
        records = (await session.execute(select(FlowStateRecord))).scalars().all()
    assert len(records) == 1
    assert records[0].flow_type == "reminder_new"
    assert records[0].version == 3
    assert records[0].current_step == 1


@pytest.mark.asyncio
async def test_conditional_delete(sql_engine, sql_store):
    await sql_engine.start_flow("42", "wo_new")
    await sql_engine.update_data("42", {"note": "x"})

    with pytest.raises(VersionConflict):
        await sql_store.delete("42", expected_version=1)
    assert await sql_store.get("42") is not None

    await sql_store.delete("42", expected_version=2)
    assert await sql_store.get("42") is None
    await sql_store.delete("42", expected_version=2)
