# tests/unit/test_sqlite_store.py
"""
Unit tests for SQLiteBatchStore persistence.

Tests CRUD operations, per-job saves, crash recovery, and serialization.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import aiosqlite
import pytest
import pytest_asyncio

from conftest import make_batch

from linework.models.jobs import INTERRUPTED_ERROR, BatchState, JobState, apply_job_update
from linework.models.schema import BATCHES_TABLE_SQL, JOBS_TABLE_SQL, SCHEMA_VERSION
from linework.models.sqlite_store import SQLiteBatchStore
from linework.models.store import InMemoryBatchStore


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> SQLiteBatchStore:
    """Create and initialize a test SQLite store."""
    db_path = str(tmp_path / "test_batches.db")
    store = SQLiteBatchStore(db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def sample_batch() -> BatchState:
    return make_batch(3)


@pytest.mark.asyncio
async def test_add_and_get_roundtrip(store: SQLiteBatchStore, sample_batch: BatchState):
    """Adding a batch and reading it back preserves every field."""
    await store.add(sample_batch)

    retrieved = await store.get(sample_batch.batch_id)

    assert retrieved is not None
    assert retrieved.batch_id == sample_batch.batch_id
    assert retrieved.topic == sample_batch.topic
    assert retrieved.target_age == "4-8"
    assert retrieved.aspect_ratio == "3:4"
    assert retrieved.metadata == sample_batch.metadata
    assert retrieved.dimensions == sample_batch.dimensions
    assert retrieved.jobs == sample_batch.jobs
    assert abs((retrieved.created_at - sample_batch.created_at).total_seconds()) < 1


@pytest.mark.asyncio
async def test_get_missing_returns_none(store: SQLiteBatchStore):
    assert await store.get("missing12345") is None


@pytest.mark.asyncio
async def test_add_duplicate_raises_error(store: SQLiteBatchStore, sample_batch: BatchState):
    await store.add(sample_batch)

    with pytest.raises(ValueError, match="already exists"):
        await store.add(sample_batch)


@pytest.mark.asyncio
async def test_save_jobs_updates_only_given_jobs(store: SQLiteBatchStore, sample_batch: BatchState):
    await store.add(sample_batch)
    first = sample_batch.pages[0].job_id
    batch = apply_job_update(sample_batch, first, JobState.GENERATING)
    batch = apply_job_update(batch, first, JobState.COMPLETED, result="data:image/png;base64,AA==")

    await store.save_jobs(batch.batch_id, [batch.get_job(first)])

    retrieved = await store.get(batch.batch_id)
    assert retrieved.get_job(first).state is JobState.COMPLETED
    assert retrieved.get_job(first).result == "data:image/png;base64,AA=="
    assert [j.state for j in retrieved.jobs if j.job_id != first] == [JobState.PENDING] * 3
    assert [j.job_id for j in retrieved.jobs] == [j.job_id for j in sample_batch.jobs]


@pytest.mark.asyncio
async def test_save_full_snapshot(store: SQLiteBatchStore, sample_batch: BatchState):
    await store.add(sample_batch)
    batch = sample_batch
    for job in sample_batch.jobs:
        batch = apply_job_update(batch, job.job_id, JobState.GENERATING)
        batch = apply_job_update(batch, job.job_id, JobState.FAILED, error="boom")

    await store.save(batch)

    retrieved = await store.get(batch.batch_id)
    assert all(j.state is JobState.FAILED and j.error == "boom" for j in retrieved.jobs)
    assert retrieved.is_done


@pytest.mark.asyncio
async def test_save_unknown_batch_raises(store: SQLiteBatchStore, sample_batch: BatchState):
    with pytest.raises(ValueError, match="not found"):
        await store.save(sample_batch)


@pytest.mark.asyncio
async def test_save_jobs_rejects_foreign_jobs(store: SQLiteBatchStore, sample_batch: BatchState):
    await store.add(sample_batch)
    other = make_batch(1)

    with pytest.raises(ValueError, match="do not belong"):
        await store.save_jobs(sample_batch.batch_id, [other.pages[0]])


@pytest.mark.asyncio
async def test_list_all_newest_first(store: SQLiteBatchStore):
    older = replace(make_batch(1), created_at=datetime.now(timezone.utc) - timedelta(hours=1))
    newer = make_batch(1)
    await store.add(older)
    await store.add(newer)

    batches = await store.list_all()

    assert [b.batch_id for b in batches] == [newer.batch_id, older.batch_id]


async def _store_with_generating_job(db_path: str, batch: BatchState) -> str:
    store = SQLiteBatchStore(db_path)
    await store.initialize()
    await store.add(batch)
    in_flight = batch.pages[1].job_id
    updated = apply_job_update(batch, in_flight, JobState.GENERATING)
    await store.save_jobs(updated.batch_id, [updated.get_job(in_flight)])
    return in_flight


@pytest.mark.asyncio
async def test_crash_recovery_marks_generating_failed(tmp_path: Path, sample_batch: BatchState):
    """A job left 'generating' by a dead process becomes failed and retryable."""
    db_path = str(tmp_path / "crash.db")
    in_flight = await _store_with_generating_job(db_path, sample_batch)

    # Simulate restart after the owning process died
    restarted = SQLiteBatchStore(db_path)
    with patch("linework.models.sqlite_store.psutil.pid_exists", return_value=False):
        await restarted.initialize()

    retrieved = await restarted.get(sample_batch.batch_id)
    job = retrieved.get_job(in_flight)
    assert job.state is JobState.FAILED
    assert job.error == INTERRUPTED_ERROR
    assert retrieved.pages[0].state is JobState.PENDING


@pytest.mark.asyncio
async def test_recovery_leaves_jobs_of_live_process(tmp_path: Path, sample_batch: BatchState):
    """A second store opened while a run is still generating must not fail its jobs."""
    db_path = str(tmp_path / "shared.db")
    in_flight = await _store_with_generating_job(db_path, sample_batch)

    other_terminal = SQLiteBatchStore(db_path)
    await other_terminal.initialize()

    job = (await other_terminal.get(sample_batch.batch_id)).get_job(in_flight)
    assert job.state is JobState.GENERATING
    assert job.error is None


@pytest.mark.asyncio
async def test_initialize_without_recovery(tmp_path: Path, sample_batch: BatchState):
    db_path = str(tmp_path / "readonly.db")
    in_flight = await _store_with_generating_job(db_path, sample_batch)

    reader = SQLiteBatchStore(db_path)
    with patch("linework.models.sqlite_store.psutil.pid_exists", return_value=False):
        await reader.initialize(recover=False)

    job = (await reader.get(sample_batch.batch_id)).get_job(in_flight)
    assert job.state is JobState.GENERATING


@pytest.mark.asyncio
async def test_migrates_v1_database(tmp_path: Path, sample_batch: BatchState):
    """A database created before owner tracking gains the column and keeps its rows."""
    db_path = str(tmp_path / "v1.db")
    async with aiosqlite.connect(db_path) as db:
        await db.execute(BATCHES_TABLE_SQL)
        await db.execute(JOBS_TABLE_SQL.replace(",\n    owner_pid INTEGER", ""))
        await db.execute("CREATE TABLE schema_version (version INTEGER)")
        await db.execute("INSERT INTO schema_version (version) VALUES (1)")
        await db.commit()

    store = SQLiteBatchStore(db_path)
    await store.initialize()
    await store.add(sample_batch)

    assert (await store.get(sample_batch.batch_id)).jobs == sample_batch.jobs
    async with aiosqlite.connect(db_path) as db:
        cursor = await db.execute("SELECT version FROM schema_version")
        assert (await cursor.fetchone())[0] == SCHEMA_VERSION


class TestInMemoryBatchStore:
    @pytest.mark.asyncio
    async def test_save_jobs_merges(self, sample_batch: BatchState):
        store = InMemoryBatchStore()
        await store.add(sample_batch)
        first = sample_batch.pages[0].job_id
        batch = apply_job_update(sample_batch, first, JobState.GENERATING)

        await store.save_jobs(batch.batch_id, [batch.get_job(first)])

        stored = await store.get(batch.batch_id)
        assert stored.get_job(first).state is JobState.GENERATING
        assert stored.cover.state is JobState.PENDING

    @pytest.mark.asyncio
    async def test_duplicate_and_missing(self, sample_batch: BatchState):
        store = InMemoryBatchStore()
        await store.add(sample_batch)

        with pytest.raises(ValueError, match="already exists"):
            await store.add(sample_batch)
        with pytest.raises(ValueError, match="not found"):
            await store.save_jobs("missing12345", [])
