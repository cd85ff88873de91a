# linework/tools/run_batch.py
"""
run_batch tool implementation.

Loads a stored batch, runs the orchestrator over its pending jobs, and keeps
the store in step with every progress event so an interrupted run resumes
where it stopped.
"""

import logging
from collections.abc import Callable
from typing import Any

from linework.config.schema import LineworkConfig
from linework.errors import QuotaExhaustedError
from linework.llm.client import GenAIClient
from linework.models.store import BatchStore
from linework.orchestration.cancellation import CancelToken
from linework.orchestration.orchestrator import (
    BatchOrchestrator,
    ProgressEvent,
    RunOutcome,
)
from linework.tools.lookup import load_batch

logger = logging.getLogger(__name__)


def build_orchestrator(
    client: GenAIClient,
    config: LineworkConfig,
    sleep: Callable[[float], Any] | None = None,
) -> BatchOrchestrator:
    """Create an orchestrator from the `queue` config section."""
    kwargs = {"sleep": sleep} if sleep is not None else {}
    return BatchOrchestrator(
        client,
        concurrency=config.queue.concurrency,
        pacing_delay=config.queue.pacing_delay,
        cover_delay=config.queue.cover_delay,
        **kwargs,
    )


async def run_batch(
    batch_id: str,
    *,
    client: GenAIClient,
    store: BatchStore,
    config: LineworkConfig,
    progress_callback: Callable[[ProgressEvent], Any] | None = None,
    cancel_token: CancelToken | None = None,
    sleep: Callable[[float], Any] | None = None,
) -> RunOutcome:
    """
    Generate every pending job of a stored batch.

    Completed and failed jobs are left alone; use retry_page for failures.

    Args:
        batch_id: Batch identifier from create_book
        client: Remote generation client
        store: Batch storage instance
        config: Configuration instance
        progress_callback: Called (sync or async) after each store write
        cancel_token: Stops dispatch at the next round boundary when cancelled
        sleep: Sleep coroutine override (tests)

    Returns:
        RunOutcome with the final batch snapshot

    Raises:
        ValidationError: If batch_id is malformed
        BatchNotFoundError: If the batch does not exist
        QuotaExhaustedError: If the quota ran out; progress so far is saved
    """
    batch = await load_batch(batch_id, store)
    orchestrator = build_orchestrator(client, config, sleep)

    async def _persist(event: ProgressEvent) -> None:
        jobs = [event.batch.get_job(job_id) for job_id in event.job_ids]
        await store.save_jobs(event.batch.batch_id, jobs)
        if progress_callback is not None:
            result = progress_callback(event)
            if hasattr(result, "__await__"):
                await result

    try:
        outcome = await orchestrator.run(
            batch, progress_callback=_persist, cancel_token=cancel_token
        )
    except QuotaExhaustedError as e:
        if e.batch is not None:
            await store.save(e.batch)
        logger.error(f"Batch {batch.batch_id} halted: {e}")
        raise
    except Exception:
        # Keep whatever settled before the failure
        if orchestrator.batch is not None:
            await store.save(orchestrator.batch)
        raise

    await store.save(outcome.batch)
    logger.info(
        f"Run of batch {batch.batch_id} finished: {outcome.completed_count} completed, "
        f"{outcome.failed_count} failed, {outcome.rounds} round(s), cancelled={outcome.cancelled}"
    )
    return outcome
