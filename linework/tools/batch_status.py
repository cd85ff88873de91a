# linework/tools/batch_status.py
"""
batch_status tool implementation.

Reports per-job state for one batch.
"""

import logging

from linework.models.jobs import JobKind, JobState
from linework.models.responses import BatchStatusResponse, JobStatus
from linework.models.store import BatchStore
from linework.tools.lookup import load_batch

logger = logging.getLogger(__name__)


async def batch_status(batch_id: str, store: BatchStore) -> dict:
    """
    Check the status of a batch.

    Args:
        batch_id: Batch identifier
        store: Batch storage instance

    Returns:
        BatchStatusResponse as dict

    Raises:
        ValidationError: If batch_id is malformed
        BatchNotFoundError: If the batch does not exist
    """
    batch = await load_batch(batch_id, store)

    jobs = []
    page_number = 0
    for job in batch.jobs:
        if job.kind is JobKind.PAGE:
            page_number += 1
        jobs.append(
            JobStatus(
                position=page_number if job.kind is JobKind.PAGE else 0,
                job_id=job.job_id,
                kind=job.kind.value,
                title=job.title,
                saying=job.saying,
                state=job.state.value,
                error=job.error,
            )
        )

    # Human-readable next step
    status = batch.status
    if status == "planned":
        message = f"Run 'linework run {batch.batch_id}' to start generating"
    elif status == "partial":
        message = f"Run 'linework resume {batch.batch_id}' to continue"
    elif batch.in_state(JobState.FAILED):
        message = f"Retry failed pages with 'linework retry {batch.batch_id} PAGE', then export"
    elif status == "review":
        message = f"Ready: 'linework export {batch.batch_id}'"
    else:
        message = "Generation in progress"

    response = BatchStatusResponse(
        batch_id=batch.batch_id,
        title=batch.metadata.title or batch.topic,
        subtitle=batch.metadata.subtitle,
        topic=batch.topic,
        aspect_ratio=batch.aspect_ratio,
        status=status,
        progress=batch.progress,
        jobs=jobs,
        message=message,
    )

    return response.model_dump()
