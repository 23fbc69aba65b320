import os
import pytest
import pytest_asyncio
import asyncpg
from datetime import date

from aurora.backend.core.exceptions import StoreError
from aurora.backend.db import tables
from aurora.backend.db.db_client import AsyncPostgresClient, apply_schema
from aurora.backend.services.directory_service import StaffDirectory
from aurora.backend.services.staff_attendance_service import MarkResult, StaffAttendanceService

# Point this at a disposable database, every test truncates the tables.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set.")


@pytest_asyncio.fixture(scope="function")
async def db_pool():
    """Creates a connection pool for each test and makes sure the schema exists."""
    pool = await asyncpg.create_pool(TEST_DATABASE_URL)
    try:
        await apply_schema(pool)
        async with pool.acquire() as connection:
            await connection.execute(
                "TRUNCATE TABLE staff_attendance_statuses, staff_attendance_days, student_attendances, "
                "students, staffs, users RESTART IDENTITY CASCADE;"
            )
        yield pool
    finally:
        await pool.close()


@pytest.mark.asyncio
async def test_insert_select_and_count(db_pool):
    client = AsyncPostgresClient(pool=db_pool)

    inserted = await client.insert(tables.STAFFS, [
        {"staff_id": "S2", "name": "Charles Babbage"},
        {"staff_id": "S1", "name": "Ada Lovelace"},
    ])

    assert len(inserted) == 2
    rows = await client.select(tables.STAFFS, order_by=["staff_id"])
    assert [r["staff_id"] for r in rows] == ["S1", "S2"]
    assert await client.count(tables.STAFFS) == 2
    assert (await client.select_one(tables.STAFFS, {"staff_id": "S2"}))["name"] == "Charles Babbage"
    assert len(await client.select(tables.STAFFS, {"staff_id": ["S1", "S2"]})) == 2


@pytest.mark.asyncio
async def test_insert_on_conflict_do_nothing_skips_existing(db_pool):
    client = AsyncPostgresClient(pool=db_pool)

    first = await client.insert(tables.STAFF_ATTENDANCE_DAYS, [{"date": date(2024, 3, 4)}], on_conflict_do_nothing=["date"])
    second = await client.insert(tables.STAFF_ATTENDANCE_DAYS, [{"date": date(2024, 3, 4)}], on_conflict_do_nothing=["date"])

    assert len(first) == 1
    assert second == []


@pytest.mark.asyncio
async def test_unique_violation_carries_sqlstate(db_pool):
    client = AsyncPostgresClient(pool=db_pool)
    await client.insert(tables.STUDENTS, [{"admission_number": "ADM001", "name": "Grace Hopper"}])
    row = {"admission_number": "ADM001", "date": date(2024, 3, 4), "status": "present"}
    await client.insert(tables.STUDENT_ATTENDANCES, [row])

    with pytest.raises(StoreError) as exc_info:
        await client.insert(tables.STUDENT_ATTENDANCES, [row])

    assert exc_info.value.is_unique_violation


@pytest.mark.asyncio
async def test_upsert_update_and_delete(db_pool):
    client = AsyncPostgresClient(pool=db_pool)
    await client.insert(tables.STAFF_ATTENDANCE_DAYS, [{"date": date(2024, 3, 4)}])
    key = {"date": date(2024, 3, 4), "staff_id": "S1"}

    await client.upsert(tables.STAFF_ATTENDANCE_STATUSES, [{**key, "status": "present"}], ["date", "staff_id"], ["status"])
    await client.upsert(tables.STAFF_ATTENDANCE_STATUSES, [{**key, "status": "absent"}], ["date", "staff_id"], ["status"])

    rows = await client.select(tables.STAFF_ATTENDANCE_STATUSES)
    assert len(rows) == 1
    assert rows[0]["status"] == "absent"

    updated = await client.update(tables.STAFF_ATTENDANCE_STATUSES, {"status": "present"}, key)
    assert updated[0]["status"] == "present"

    deleted = await client.delete(tables.STAFF_ATTENDANCE_STATUSES, key)
    assert len(deleted) == 1
    assert await client.count(tables.STAFF_ATTENDANCE_STATUSES) == 0


@pytest.mark.asyncio
async def test_delete_without_filters_is_refused(db_pool):
    client = AsyncPostgresClient(pool=db_pool)

    with pytest.raises(ValueError):
        await client.delete(tables.STAFFS, {})


@pytest.mark.asyncio
async def test_staff_marks_against_real_store(db_pool):
    client = AsyncPostgresClient(pool=db_pool)
    service = StaffAttendanceService(db_client=client, staff_directory=StaffDirectory(client))

    assert await service.mark_staff_attendance("S1", "2024-03-04", "present") == MarkResult.CREATED
    assert await service.mark_staff_attendance("S2", "2024-03-04", "absent") == MarkResult.UPDATED
    assert await service.mark_staff_attendance("S1", "2024-03-04", "absent") == MarkResult.UPDATED

    days = await service.load_days()
    assert len(days) == 1
    assert [(e.staff_id, e.status) for e in days[0].statuses] == [("S1", "absent"), ("S2", "absent")]


@pytest.mark.asyncio
async def test_transaction_rolls_back_when_a_statement_fails(db_pool):
    client = AsyncPostgresClient(pool=db_pool)
    await client.insert(tables.STAFFS, [{"staff_id": "S1", "name": "Ada Lovelace"}])

    with pytest.raises(StoreError):
        async with client.transaction() as tx:
            await tx.insert(tables.STAFF_ATTENDANCE_DAYS, [{"date": date(2024, 3, 4)}])
            await tx.insert(tables.STAFFS, [{"staff_id": "S1", "name": "Ada Lovelace"}])

    assert await client.count(tables.STAFF_ATTENDANCE_DAYS) == 0


@pytest.mark.asyncio
async def test_transaction_commits_both_statements(db_pool):
    client = AsyncPostgresClient(pool=db_pool)

    async with client.transaction() as tx:
        await tx.insert(tables.STAFF_ATTENDANCE_DAYS, [{"date": date(2024, 3, 4)}])
        async with tx.transaction() as nested:
            assert nested is tx
            await nested.insert(tables.STAFFS, [{"staff_id": "S1", "name": "Ada Lovelace"}])

    assert await client.count(tables.STAFF_ATTENDANCE_DAYS) == 1
    assert await client.count(tables.STAFFS) == 1
