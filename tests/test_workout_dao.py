import asyncio
import datetime
import os
import sys

import pytest
import pytest_asyncio

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import AppDatabase, WorkoutDao
from models import WorkoutModel, WorkoutSummaryModel


@pytest_asyncio.fixture
async def database():
    db = AppDatabase.in_memory()
    yield db
    await db.close()


@pytest.fixture
def dao(database):
    return WorkoutDao(database)


@pytest.fixture
def sample():
    return WorkoutModel(name="Morning Push Workout", created_on=datetime.datetime.now())


def _seconds_apart(a: datetime.datetime, b: datetime.datetime) -> float:
    return abs((a - b).total_seconds())


@pytest.mark.asyncio
async def test_insert_returns_new_id(dao, sample):
    workout_id = await dao.insert(sample)
    assert isinstance(workout_id, int)
    assert workout_id > 0
    stored = await dao.get_by_id(workout_id)
    assert stored is not None
    assert stored.name == "Morning Push Workout"


@pytest.mark.asyncio
async def test_insert_with_transaction(database, dao, sample):
    async with database.transaction() as txn:
        workout_id = await dao.insert_with_transaction(sample, txn)
    assert workout_id > 0
    stored = await dao.get_by_id(workout_id)
    assert stored.name == sample.name


@pytest.mark.asyncio
async def test_failed_transaction_rolls_back(database, dao, sample):
    with pytest.raises(RuntimeError):
        async with database.transaction() as txn:
            await dao.insert_with_transaction(sample, txn)
            raise RuntimeError("boom")
    assert await dao.get_all() == []


@pytest.mark.asyncio
async def test_insert_rejects_blank_name(dao):
    with pytest.raises(ValueError):
        await dao.insert(WorkoutModel(name="  ", created_on=datetime.datetime.now()))


@pytest.mark.asyncio
async def test_get_by_id_returns_model(dao, sample):
    workout_id = await dao.insert(sample)
    stored = await dao.get_by_id(workout_id)
    assert isinstance(stored, WorkoutModel)
    assert stored.id == workout_id
    assert stored.name == "Morning Push Workout"
    assert _seconds_apart(stored.created_on, sample.created_on) < 1


@pytest.mark.asyncio
async def test_get_summary_by_id(dao, sample):
    workout_id = await dao.insert(sample)
    summary = await dao.get_summary_by_id(workout_id)
    assert isinstance(summary, WorkoutSummaryModel)
    assert summary.id == workout_id
    assert summary.name == "Morning Push Workout"
    assert _seconds_apart(summary.created_on, sample.created_on) < 1


@pytest.mark.asyncio
async def test_missing_workout_returns_none(dao):
    assert await dao.get_by_id(99999) is None
    assert await dao.get_summary_by_id(99999) is None


@pytest.mark.asyncio
async def test_recent_summaries_exclude_old_workouts(dao, sample):
    now = datetime.datetime.now()
    await dao.insert(sample)
    await dao.insert(WorkoutModel(name="Old Workout", created_on=now - datetime.timedelta(days=120)))
    await dao.insert(WorkoutModel(name="Recent Workout", created_on=now - datetime.timedelta(days=30)))

    summaries = await dao.get_recent_summaries()
    names = [s.name for s in summaries]
    assert len(summaries) == 2
    assert "Morning Push Workout" in names
    assert "Recent Workout" in names
    assert "Old Workout" not in names


@pytest.mark.asyncio
async def test_recent_summaries_limit_newest_first(dao, sample):
    await dao.insert(sample)
    now = datetime.datetime.now()
    for i in range(5):
        await dao.insert(
            WorkoutModel(name=f"Workout {i}", created_on=now + datetime.timedelta(hours=i))
        )

    limited = await dao.get_recent_summaries(limit=3)
    assert [s.name for s in limited] == ["Workout 4", "Workout 3", "Workout 2"]


@pytest.mark.asyncio
async def test_recent_summaries_custom_window(dao):
    now = datetime.datetime.now()
    await dao.insert(WorkoutModel(name="Last week", created_on=now - datetime.timedelta(days=7)))
    await dao.insert(WorkoutModel(name="Yesterday", created_on=now - datetime.timedelta(days=1)))
    summaries = await dao.get_recent_summaries(max_days_ago=3)
    assert [s.name for s in summaries] == ["Yesterday"]


@pytest.mark.asyncio
async def test_recent_summaries_empty_when_all_old(dao):
    await dao.insert(
        WorkoutModel(
            name="Ancient Workout",
            created_on=datetime.datetime.now() - datetime.timedelta(days=200),
        )
    )
    assert await dao.get_recent_summaries() == []


@pytest.mark.asyncio
async def test_recent_summaries_reject_negative_limit(dao):
    with pytest.raises(ValueError):
        await dao.get_recent_summaries(limit=-1)


@pytest.mark.asyncio
async def test_aware_timestamps_sort_with_naive_ones(dao):
    now = datetime.datetime.now()
    await dao.insert(WorkoutModel(name="Naive", created_on=now - datetime.timedelta(hours=2)))
    aware = datetime.datetime.now(datetime.timezone.utc)
    await dao.insert(WorkoutModel(name="Aware", created_on=aware))
    summaries = await dao.get_recent_summaries()
    assert [s.name for s in summaries] == ["Aware", "Naive"]


@pytest.mark.asyncio
async def test_update_changes_name_and_keeps_timestamp(dao, sample):
    workout_id = await dao.insert(sample)
    existing = await dao.get_by_id(workout_id)

    rows = await dao.update(existing.copy_with(name="Updated Morning Workout"))
    assert rows == 1

    stored = await dao.get_by_id(workout_id)
    assert stored.name == "Updated Morning Workout"
    assert stored.created_on == existing.created_on


@pytest.mark.asyncio
async def test_update_missing_workout_returns_zero(dao):
    ghost = WorkoutModel(id=99999, name="Ghost Workout", created_on=datetime.datetime.now())
    assert await dao.update(ghost) == 0


@pytest.mark.asyncio
async def test_update_without_id_raises(dao, sample):
    with pytest.raises(ValueError):
        await dao.update(sample)


@pytest.mark.asyncio
async def test_delete_existing_workout(dao, sample):
    workout_id = await dao.insert(sample)
    assert await dao.delete(workout_id) == 1
    assert await dao.get_by_id(workout_id) is None


@pytest.mark.asyncio
async def test_delete_missing_workout_returns_zero(dao):
    assert await dao.delete(99999) == 0


@pytest.mark.asyncio
async def test_clear_table(dao, sample):
    original_id = await dao.insert(sample)
    for i in range(3):
        await dao.insert(WorkoutModel(name=f"Workout {i}", created_on=datetime.datetime.now()))

    assert await dao.clear_table() == 4
    assert await dao.get_recent_summaries() == []
    assert await dao.get_by_id(original_id) is None


@pytest.mark.asyncio
async def test_get_all_newest_first(dao):
    now = datetime.datetime.now()
    await dao.insert(WorkoutModel(name="First", created_on=now - datetime.timedelta(days=400)))
    await dao.insert(WorkoutModel(name="Second", created_on=now))
    rows = await dao.get_all()
    assert [w.name for w in rows] == ["Second", "First"]


@pytest.mark.asyncio
async def test_delete_inside_transaction_rolls_back(database, dao, sample):
    workout_id = await dao.insert(sample)
    with pytest.raises(RuntimeError):
        async with database.transaction() as txn:
            assert await dao.delete(workout_id, txn) == 1
            raise RuntimeError("boom")
    assert await dao.get_by_id(workout_id) is not None


@pytest.mark.asyncio
async def test_concurrent_opens_share_connection(database):
    connections = await asyncio.gather(*(database.database() for _ in range(5)))
    assert all(conn is connections[0] for conn in connections)


@pytest.mark.asyncio
async def test_plain_write_waits_for_open_transaction(database, dao):
    now = datetime.datetime.now()
    inside = asyncio.Event()

    async def failing_transaction():
        with pytest.raises(RuntimeError):
            async with database.transaction() as txn:
                await dao.insert_with_transaction(WorkoutModel(name="in txn", created_on=now), txn)
                inside.set()
                await asyncio.sleep(0.05)
                raise RuntimeError("boom")

    async def plain_write():
        await inside.wait()
        await dao.insert(WorkoutModel(name="plain", created_on=now))

    await asyncio.gather(failing_transaction(), plain_write())
    assert [w.name for w in await dao.get_all()] == ["plain"]


@pytest.mark.asyncio
async def test_cancelled_transaction_rolls_back(database, dao, sample):
    inside = asyncio.Event()

    async def stalled():
        async with database.transaction() as txn:
            await dao.insert_with_transaction(sample, txn)
            inside.set()
            await asyncio.sleep(10)

    task = asyncio.create_task(stalled())
    await inside.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await dao.get_all() == []
    async with database.transaction() as txn:
        workout_id = await dao.insert_with_transaction(sample, txn)
    assert (await dao.get_by_id(workout_id)).name == sample.name
