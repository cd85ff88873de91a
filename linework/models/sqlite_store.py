# linework/models/sqlite_store.py
"""
SQLite-backed batch persistence.

Provides async CRUD operations with WAL mode and IMMEDIATE transactions so a
batch stopped mid-run (Ctrl+C, crash, quota) can be resumed later.
"""

import logging
import os
from datetime import datetime, timezone

import aiosqlite
import psutil

from linework.llm.types import BookDimensions, BookMetadata
from linework.models.jobs import (
    INTERRUPTED_ERROR,
    BatchState,
    GenerationJob,
    JobKind,
    JobState,
)
from linework.models.schema import init_db
from linework.models.store import BatchStore

logger = logging.getLogger(__name__)

_JOB_UPSERT_SQL = """
INSERT INTO jobs (
    id, batch_id, position, kind, title, prompt, saying, state, result, error, owner_pid
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    state = excluded.state,
    result = excluded.result,
    error = excluded.error,
    owner_pid = excluded.owner_pid
"""


class SQLiteBatchStore(BatchStore):
    """
    Async SQLite-backed batch storage.

    Features:
        - WAL mode for concurrent reads/writes
        - IMMEDIATE transactions for write safety
        - Crash recovery (generating -> failed on startup) for jobs whose
          owning process is gone
        - No persistent connections (avoids resource leaks)
    """

    def __init__(self, db_path: str) -> None:
        """
        Initialize SQLite batch store.

        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        logger.info(f"Created SQLiteBatchStore with path: {db_path}")

    async def initialize(self, recover: bool = True) -> None:
        """
        Initialize database schema and perform crash recovery.

        Crash recovery: a job still 'generating' whose owner process is no
        longer alive died mid-call, so it is marked 'failed' and becomes
        manually retryable. Jobs owned by a live process (another terminal's
        run) are left alone.

        Args:
            recover: Run crash recovery (read-only commands pass False)
        """
        await init_db(self._db_path)
        if not recover:
            return

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "SELECT id, owner_pid FROM jobs WHERE state = ?", (JobState.GENERATING.value,)
            )
            rows = await cursor.fetchall()
            orphaned = [job_id for job_id, pid in rows if pid is None or not psutil.pid_exists(pid)]
            await db.executemany(
                "UPDATE jobs SET state = ?, error = ?, result = NULL, owner_pid = NULL WHERE id = ?",
                [(JobState.FAILED.value, INTERRUPTED_ERROR, job_id) for job_id in orphaned],
            )
            await db.commit()

            if orphaned:
                logger.warning(
                    f"Crash recovery: marked {len(orphaned)} generating job(s) as failed"
                )
            if len(rows) > len(orphaned):
                logger.info(
                    f"Left {len(rows) - len(orphaned)} generating job(s) owned by running processes"
                )

    async def add(self, batch: BatchState) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute("SELECT id FROM batches WHERE id = ?", (batch.batch_id,))
                if await cursor.fetchone():
                    raise ValueError(f"Batch {batch.batch_id} already exists")

                updated_at = batch.updated_at or datetime.now(timezone.utc)
                await db.execute(
                    """
                    INSERT INTO batches (
                        id, topic, target_age, aspect_ratio, metadata_json,
                        dimensions_json, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        batch.batch_id,
                        batch.topic,
                        batch.target_age,
                        batch.aspect_ratio,
                        batch.metadata.model_dump_json(),
                        batch.dimensions.model_dump_json(),
                        batch.created_at.isoformat(),
                        updated_at.isoformat(),
                    ),
                )
                await self._write_jobs(db, batch.batch_id, batch.jobs)

                await db.commit()
                logger.info(f"Added batch {batch.batch_id} with {len(batch.jobs)} jobs")

            except Exception:
                await db.rollback()
                raise

    async def get(self, batch_id: str) -> BatchState | None:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM batches WHERE id = ?", (batch_id,))
            row = await cursor.fetchone()
            if not row:
                return None
            return await self._load(db, row)

    async def list_all(self) -> list[BatchState]:
        async with aiosqlite.connect(self._db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM batches ORDER BY created_at DESC")
            rows = await cursor.fetchall()
            return [await self._load(db, row) for row in rows]

    async def save(self, batch: BatchState) -> None:
        await self._update(batch.batch_id, list(batch.jobs))

    async def save_jobs(self, batch_id: str, jobs: list[GenerationJob]) -> None:
        if jobs:
            await self._update(batch_id, jobs)

    async def close(self) -> None:
        """
        Checkpoint WAL and close database.

        Truncates WAL file to avoid unbounded growth.
        """
        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                logger.info("WAL checkpoint completed")
        except Exception as e:
            logger.warning(f"WAL checkpoint failed: {e}")

    async def _update(self, batch_id: str, jobs: list[GenerationJob]) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("BEGIN IMMEDIATE")

            try:
                cursor = await db.execute("SELECT id FROM batches WHERE id = ?", (batch_id,))
                if not await cursor.fetchone():
                    raise ValueError(f"Batch {batch_id} not found")

                cursor = await db.execute(
                    "SELECT id FROM jobs WHERE batch_id = ? ORDER BY position", (batch_id,)
                )
                order = [row[0] for row in await cursor.fetchall()]
                positions = {job_id: i for i, job_id in enumerate(order)}
                unknown = [j.job_id for j in jobs if j.job_id not in positions]
                if unknown:
                    raise ValueError(f"Jobs {unknown} do not belong to batch {batch_id}")

                for job in jobs:
                    await db.execute(
                        _JOB_UPSERT_SQL, self._job_params(batch_id, positions[job.job_id], job)
                    )
                await db.execute(
                    "UPDATE batches SET updated_at = ? WHERE id = ?",
                    (datetime.now(timezone.utc).isoformat(), batch_id),
                )

                await db.commit()
                logger.debug(f"Saved {len(jobs)} job(s) for batch {batch_id}")

            except Exception:
                await db.rollback()
                raise

    async def _write_jobs(
        self, db: aiosqlite.Connection, batch_id: str, jobs: tuple[GenerationJob, ...]
    ) -> None:
        for position, job in enumerate(jobs):
            await db.execute(_JOB_UPSERT_SQL, self._job_params(batch_id, position, job))

    @staticmethod
    def _job_params(batch_id: str, position: int, job: GenerationJob) -> tuple:
        return (
            job.job_id,
            batch_id,
            position,
            job.kind.value,
            job.title,
            job.prompt,
            job.saying,
            job.state.value,
            job.result,
            job.error,
            os.getpid() if job.state is JobState.GENERATING else None,
        )

    async def _load(self, db: aiosqlite.Connection, row: aiosqlite.Row) -> BatchState:
        """Convert a batches row plus its job rows into a BatchState."""
        cursor = await db.execute(
            "SELECT * FROM jobs WHERE batch_id = ? ORDER BY position", (row["id"],)
        )
        job_rows = await cursor.fetchall()

        jobs = tuple(
            GenerationJob(
                job_id=j["id"],
                kind=JobKind(j["kind"]),
                title=j["title"],
                prompt=j["prompt"],
                state=JobState(j["state"]),
                result=j["result"],
                error=j["error"],
                saying=j["saying"] or "",
            )
            for j in job_rows
        )

        return BatchState(
            batch_id=row["id"],
            topic=row["topic"],
            aspect_ratio=row["aspect_ratio"],
            jobs=jobs,
            metadata=BookMetadata.model_validate_json(row["metadata_json"]),
            dimensions=BookDimensions.model_validate_json(row["dimensions_json"]),
            target_age=row["target_age"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
