# linework/tools/retry_page.py
"""
retry_page tool implementation.

Regenerates a single failed page (or the cover) immediately, without pacing.
"""

import logging

from linework.config.schema import LineworkConfig
from linework.errors import BatchNotFoundError, QuotaExhaustedError
from linework.llm.client import GenAIClient
from linework.models.jobs import BatchState, GenerationJob
from linework.models.store import BatchStore
from linework.tools.lookup import load_batch
from linework.tools.run_batch import build_orchestrator

logger = logging.getLogger(__name__)


def resolve_job(batch: BatchState, page: str | int) -> GenerationJob:
    """
    Find a job by 1-based page number, "cover", or job ID.

    Raises:
        BatchNotFoundError: If nothing matches
    """
    text = str(page).strip()
    if text.lower() in ("0", "cover"):
        if batch.cover is None:
            raise BatchNotFoundError(f"Batch {batch.batch_id} has no cover job")
        return batch.cover

    if text.isdigit():
        index = int(text)
        pages = batch.pages
        if not 1 <= index <= len(pages):
            raise BatchNotFoundError(
                f"Page {index} out of range; batch {batch.batch_id} has {len(pages)} pages"
            )
        return pages[index - 1]

    return batch.get_job(text)


async def retry_page(
    batch_id: str,
    page: str | int,
    *,
    client: GenAIClient,
    store: BatchStore,
    config: LineworkConfig,
) -> GenerationJob:
    """
    Retry one failed job of a batch.

    Args:
        batch_id: Batch identifier
        page: 1-based page number, "cover", or job ID
        client: Remote generation client
        store: Batch storage instance
        config: Configuration instance

    Returns:
        The job after the retry (completed or failed)

    Raises:
        BatchNotFoundError: If the batch or page does not exist
        InvalidTransitionError: If the job is not failed or pending
        QuotaExhaustedError: If the retry hit the quota; the failure is saved
    """
    batch = await load_batch(batch_id, store)
    job = resolve_job(batch, page)
    orchestrator = build_orchestrator(client, config)

    try:
        updated = await orchestrator.retry_job(batch, job.job_id)
    except QuotaExhaustedError as e:
        if e.batch is not None:
            await store.save_jobs(batch.batch_id, [e.batch.get_job(job.job_id)])
        raise

    result = updated.get_job(job.job_id)
    await store.save_jobs(batch.batch_id, [result])
    logger.info(f"Retried job {job.job_id} of batch {batch.batch_id}: {result.state.value}")
    return result
