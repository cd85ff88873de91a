# linework/models/__init__.py
"""
Data models for linework.

Provides generation job and batch state, the pure reducers that move jobs
through their lifecycle, and batch persistence.
"""

from linework.models.jobs import (
    BatchState,
    GenerationJob,
    JobKind,
    JobState,
    apply_job_update,
    build_batch,
    generate_job_id,
    reset_job,
)
from linework.models.sqlite_store import SQLiteBatchStore
from linework.models.store import BatchStore, InMemoryBatchStore

__all__ = [
    "JobState",
    "JobKind",
    "GenerationJob",
    "BatchState",
    "apply_job_update",
    "reset_job",
    "build_batch",
    "generate_job_id",
    "BatchStore",
    "InMemoryBatchStore",
    "SQLiteBatchStore",
]
