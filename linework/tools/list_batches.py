# linework/tools/list_batches.py
"""
list_batches tool implementation.

Lists all batches with status and job counts.
"""

import logging

from linework.models.jobs import JobState
from linework.models.responses import BatchSummary, ListBatchesResponse
from linework.models.store import BatchStore

logger = logging.getLogger(__name__)


async def list_batches(store: BatchStore) -> dict:
    """
    List all batches, newest first.

    Args:
        store: Batch storage instance

    Returns:
        ListBatchesResponse as dict
    """
    batches = await store.list_all()

    summaries = []
    for batch in batches:
        topic = batch.topic
        if len(topic) > 80:
            topic = topic[:77] + "..."

        summaries.append(
            BatchSummary(
                batch_id=batch.batch_id,
                title=batch.metadata.title or batch.topic,
                topic=topic,
                status=batch.status,
                completed=len(batch.in_state(JobState.COMPLETED)),
                failed=len(batch.in_state(JobState.FAILED)),
                total=len(batch.jobs),
                created_at=batch.created_at.isoformat(),
            )
        )

    response = ListBatchesResponse(batches=summaries, total=len(summaries))

    logger.info(f"Listed {len(summaries)} batches")
    return response.model_dump()
