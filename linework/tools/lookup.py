# linework/tools/lookup.py
"""Batch lookup shared by the tool implementations."""

from linework.errors import BatchNotFoundError
from linework.models.jobs import BatchState
from linework.models.store import BatchStore
from linework.validation.sanitize import sanitize_batch_id


async def load_batch(batch_id: str, store: BatchStore) -> BatchState:
    """
    Validate a batch ID and load the batch.

    Raises:
        ValidationError: If the ID format is invalid
        BatchNotFoundError: If no batch has this ID
    """
    sanitized_id = sanitize_batch_id(batch_id)
    batch = await store.get(sanitized_id)
    if batch is None:
        raise BatchNotFoundError(
            f"Batch '{sanitized_id}' not found. Use 'linework list' to see available batches."
        )
    return batch
