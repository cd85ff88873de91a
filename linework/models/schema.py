# linework/models/schema.py
"""
Database schema definition for SQLite batch persistence.

Provides DDL for tables, indexes, and schema initialization.
"""

import logging

import aiosqlite

logger = logging.getLogger(__name__)

# Schema version for future migrations
SCHEMA_VERSION = 2

BATCHES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS batches (
    id TEXT PRIMARY KEY,
    topic TEXT NOT NULL,
    target_age TEXT,
    aspect_ratio TEXT NOT NULL,
    metadata_json TEXT NOT NULL,
    dimensions_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""

JOBS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    batch_id TEXT NOT NULL REFERENCES batches(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('page', 'cover')),
    title TEXT NOT NULL,
    prompt TEXT NOT NULL,
    saying TEXT NOT NULL DEFAULT '',
    state TEXT NOT NULL CHECK(state IN ('pending', 'generating', 'completed', 'failed')),
    result TEXT,
    error TEXT,
    owner_pid INTEGER
)
"""

# Index for loading a batch's jobs in display order
JOBS_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_jobs_batch_position ON jobs(batch_id, position)"


async def _get_schema_version(db: aiosqlite.Connection) -> int:
    """
    Get current schema version from database.

    Returns:
        Schema version (0 if no version table exists)
    """
    try:
        cursor = await db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        return row[0] if row else 0
    except aiosqlite.OperationalError:
        return 0


async def _set_schema_version(db: aiosqlite.Connection, version: int) -> None:
    await db.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER)")
    await db.execute("DELETE FROM schema_version")
    await db.execute("INSERT INTO schema_version (version) VALUES (?)", (version,))


async def init_db(db_path: str) -> None:
    """
    Initialize database schema with WAL mode and optimal settings.

    Args:
        db_path: Path to SQLite database file

    Settings:
        - WAL mode: Concurrent reads + writes
        - synchronous=NORMAL: Good durability/performance balance
        - busy_timeout=5000ms: Retry on SQLITE_BUSY
        - foreign_keys=ON: Enforce constraints
    """
    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA synchronous=NORMAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute("PRAGMA foreign_keys=ON")

        await db.execute(BATCHES_TABLE_SQL)
        await db.execute(JOBS_TABLE_SQL)
        await db.execute(JOBS_INDEX_SQL)

        current_version = await _get_schema_version(db)
        if current_version == 1:
            await db.execute("ALTER TABLE jobs ADD COLUMN owner_pid INTEGER")
            logger.info("Migrated database v1 -> v2 (jobs.owner_pid)")
        if current_version < SCHEMA_VERSION:
            await _set_schema_version(db, SCHEMA_VERSION)
            logger.info(f"Database schema set to v{SCHEMA_VERSION}")

        await db.commit()

        logger.info(f"Initialized database at {db_path} (schema v{SCHEMA_VERSION})")
