# linework/models/store.py
"""
Batch store protocol definition and in-memory implementation.

Defines the abstract interface that both InMemoryBatchStore and SQLiteBatchStore implement.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linework.models.jobs import BatchState, GenerationJob

logger = logging.getLogger(__name__)


class BatchStore(ABC):
    """
    Abstract base class for batch storage implementations.

    Both in-memory and persistent (SQLite) stores implement this protocol.
    """

    async def initialize(self, recover: bool = True) -> None:
        """Prepare storage; `recover` enables crash recovery where supported (no-op by default)."""

    @abstractmethod
    async def add(self, batch: "BatchState") -> None:
        """
        Add a new batch.

        Args:
            batch: BatchState to add

        Raises:
            ValueError: If batch_id already exists
        """

    @abstractmethod
    async def get(self, batch_id: str) -> "BatchState | None":
        """
        Get a batch by ID.

        Returns:
            BatchState if found, None otherwise
        """

    @abstractmethod
    async def list_all(self) -> "list[BatchState]":
        """
        List all batches.

        Returns:
            List of all batches, ordered by creation time (newest first)
        """

    @abstractmethod
    async def save(self, batch: "BatchState") -> None:
        """
        Replace the stored snapshot of an existing batch.

        Raises:
            ValueError: If batch_id doesn't exist
        """

    @abstractmethod
    async def save_jobs(self, batch_id: str, jobs: "list[GenerationJob]") -> None:
        """
        Replace only the given jobs of an existing batch.

        Cheaper than save() for per-job progress updates.

        Raises:
            ValueError: If batch_id doesn't exist
        """

    async def close(self) -> None:
        """Release resources (no-op by default)."""


class InMemoryBatchStore(BatchStore):
    """
    Simple in-memory batch storage.

    Used by tests and by one-shot runs that don't need to resume.
    """

    def __init__(self) -> None:
        self._batches: dict[str, "BatchState"] = {}
        logger.info("Initialized InMemoryBatchStore")

    async def add(self, batch: "BatchState") -> None:
        if batch.batch_id in self._batches:
            raise ValueError(f"Batch {batch.batch_id} already exists")
        self._batches[batch.batch_id] = batch
        logger.info(f"Added batch {batch.batch_id} to store")

    async def get(self, batch_id: str) -> "BatchState | None":
        return self._batches.get(batch_id)

    async def list_all(self) -> "list[BatchState]":
        return sorted(self._batches.values(), key=lambda b: b.created_at, reverse=True)

    async def save(self, batch: "BatchState") -> None:
        if batch.batch_id not in self._batches:
            raise ValueError(f"Batch {batch.batch_id} not found")
        self._batches[batch.batch_id] = batch

    async def save_jobs(self, batch_id: str, jobs: "list[GenerationJob]") -> None:
        current = self._batches.get(batch_id)
        if current is None:
            raise ValueError(f"Batch {batch_id} not found")
        by_id = {job.job_id: job for job in jobs}
        self._batches[batch_id] = replace(
            current, jobs=tuple(by_id.get(j.job_id, j) for j in current.jobs)
        )
