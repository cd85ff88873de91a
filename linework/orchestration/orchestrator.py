# linework/orchestration/orchestrator.py
"""
Batch orchestrator for page and cover generation.

Dispatches pending page jobs in rounds of `concurrency`, paces rounds apart,
runs the cover alongside as best-effort work, and stops the whole batch when
the remote quota is exhausted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from linework.errors import ErrorKind, InvalidTransitionError, QuotaExhaustedError
from linework.llm.retry import classify
from linework.models.jobs import (
    INTERRUPTED_ERROR,
    BatchState,
    GenerationJob,
    JobState,
    apply_job_update,
)
from linework.orchestration.cancellation import CancelToken

logger = logging.getLogger(__name__)

# Progress event kinds
ROUND_START = "round_start"
ROUND_END = "round_end"
JOB_START = "job_start"
JOB_SETTLED = "job_settled"
COVER_START = "cover_start"
COVER_SETTLED = "cover_settled"


class ImageSynthesizer(Protocol):
    """The one client operation the orchestrator depends on."""

    async def synthesize_image(self, prompt: str, aspect_ratio: str) -> str: ...


@dataclass(frozen=True)
class ProgressEvent:
    """
    Snapshot handed to progress callbacks after every state change.

    Attributes:
        kind: One of the event kind constants in this module
        batch: Batch snapshot after the change
        job_ids: Jobs whose state changed in this event
    """

    kind: str
    batch: BatchState
    job_ids: tuple[str, ...] = ()


ProgressCallback = Callable[[ProgressEvent], Any]


@dataclass(frozen=True)
class RunOutcome:
    """
    Result of one orchestrator run.

    Attributes:
        batch: Final batch snapshot
        done: Every job is completed or failed
        cancelled: The cancel token stopped dispatch early
        rounds: Number of page rounds dispatched
    """

    batch: BatchState
    done: bool
    cancelled: bool
    rounds: int

    @property
    def completed_count(self) -> int:
        return len(self.batch.in_state(JobState.COMPLETED))

    @property
    def failed_count(self) -> int:
        return len(self.batch.in_state(JobState.FAILED))


async def _maybe_await(value: Any) -> None:
    if hasattr(value, "__await__"):
        await value


async def _abandon(tasks: list[asyncio.Task]) -> None:
    """Cancel unfinished tasks and wait until every one of them has stopped."""
    for task in tasks:
        if not task.done():
            task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


class BatchOrchestrator:
    """
    Concurrency-limited, paced executor for one batch at a time.

    Features:
        - Rounds of `concurrency` pages; round N+1 starts only after every
          job of round N settled
        - `pacing_delay` seconds between rounds
        - Cover generated concurrently; its failure is logged and ignored
        - Per-job failure isolation
        - Circuit breaker: a rate-limited failure stops all further rounds
        - Cooperative cancellation checked before each round
    """

    def __init__(
        self,
        client: ImageSynthesizer,
        concurrency: int = 1,
        pacing_delay: float = 20.0,
        cover_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            client: Object providing synthesize_image (normally GenAIClient)
            concurrency: Pages per round (1 = fully serial)
            pacing_delay: Seconds between rounds
            cover_delay: Seconds to wait after starting the cover before the first round
            sleep: Sleep coroutine (tests inject a recorder)
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")

        self._client = client
        self._concurrency = concurrency
        self._pacing_delay = pacing_delay
        self._cover_delay = cover_delay
        self._sleep = sleep
        self._batch: BatchState | None = None
        self._progress_callback: ProgressCallback | None = None

        logger.info(
            f"Initialized BatchOrchestrator (concurrency={concurrency}, "
            f"pacing_delay={pacing_delay}s, cover_delay={cover_delay}s)"
        )

    @property
    def batch(self) -> BatchState | None:
        """Latest snapshot of the batch being processed (None before the first run)."""
        return self._batch

    def _apply(
        self,
        job_id: str,
        state: JobState,
        result: str | None = None,
        error: str | None = None,
    ) -> None:
        # No await between read and write: the swap is atomic on the event loop
        self._batch = apply_job_update(self._batch, job_id, state, result=result, error=error)

    async def _emit(self, kind: str, job_ids: list[str] | tuple[str, ...] = ()) -> None:
        if self._progress_callback is None:
            return
        await _maybe_await(
            self._progress_callback(ProgressEvent(kind, self._batch, tuple(job_ids)))
        )

    async def run(
        self,
        batch: BatchState,
        *,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
        on_complete: Callable[[BatchState], Any] | None = None,
    ) -> RunOutcome:
        """
        Generate every pending job of a batch.

        Failed and completed jobs are left untouched, so re-running a stopped
        batch resumes where it left off.

        Args:
            batch: Batch to process
            progress_callback: Called (sync or async) with a ProgressEvent after every change
            cancel_token: Polled before each round; set internally by the circuit breaker
            on_complete: Called once with the final batch if every job reached a terminal state

        Returns:
            RunOutcome with the final snapshot

        Raises:
            QuotaExhaustedError: If a page failed with a rate-limit error after
                all retries; remaining pending jobs stay pending
        """
        cancel_token = cancel_token or CancelToken()
        self._batch = batch
        self._progress_callback = progress_callback
        rounds = 0
        quota_error: BaseException | None = None

        logger.info(
            f"Starting batch {batch.batch_id}: {len(batch.in_state(JobState.PENDING))} pending job(s)"
        )

        pending = [job for job in batch.pages if job.state is JobState.PENDING]
        rounds_planned = [
            pending[i : i + self._concurrency]
            for i in range(0, len(pending), self._concurrency)
        ]

        cover_task: asyncio.Task | None = None
        in_flight: list[asyncio.Task] = []
        try:
            cover = batch.cover
            if cover is not None and cover.state is JobState.PENDING and not cancel_token.cancelled:
                self._apply(cover.job_id, JobState.GENERATING)
                await self._emit(COVER_START, [cover.job_id])
                cover_task = asyncio.create_task(self._generate_cover(cover))
                if self._cover_delay > 0:
                    await self._sleep(self._cover_delay)

            for index, group in enumerate(rounds_planned):
                if cancel_token.cancelled:
                    logger.info(
                        f"Batch {batch.batch_id} stopped before round {index + 1} "
                        f"(reason={cancel_token.reason})"
                    )
                    break

                job_ids = [job.job_id for job in group]
                for job_id in job_ids:
                    self._apply(job_id, JobState.GENERATING)
                rounds += 1
                logger.info(
                    f"Round {rounds}/{len(rounds_planned)}: dispatching {len(group)} page(s)"
                )
                await self._emit(ROUND_START, job_ids)

                in_flight = [asyncio.create_task(self._generate(job)) for job in group]
                await asyncio.wait(in_flight)
                # Every sibling has settled; now surface a progress callback failure
                failures = [t.exception() for t in in_flight if t.exception() is not None]
                if failures:
                    raise failures[0]
                errors = [t.result() for t in in_flight]
                in_flight = []
                await self._emit(ROUND_END, job_ids)

                quota_error = next(
                    (e for e in errors if e is not None and classify(e) is ErrorKind.RATE_LIMITED),
                    None,
                )
                if quota_error is not None:
                    logger.error(
                        f"Quota exhausted in round {rounds}, halting batch {batch.batch_id}"
                    )
                    cancel_token.cancel(reason="quota")
                    break

                if index + 1 < len(rounds_planned) and not cancel_token.cancelled:
                    await self._sleep(self._pacing_delay)

            if cover_task is not None:
                await cover_task

        except BaseException:
            await _abandon([*in_flight, *([cover_task] if cover_task else [])])
            for job in self._batch.in_state(JobState.GENERATING):
                self._apply(job.job_id, JobState.FAILED, error=INTERRUPTED_ERROR)
            raise

        if quota_error is not None:
            raise QuotaExhaustedError(
                f"Generation quota exhausted after retries: {quota_error}",
                batch=self._batch,
            ) from quota_error

        final = self._batch
        done = final.is_done
        if done:
            logger.info(
                f"Batch {final.batch_id} complete: "
                f"{len(final.in_state(JobState.COMPLETED))} completed, "
                f"{len(final.in_state(JobState.FAILED))} failed"
            )
            if on_complete is not None:
                await _maybe_await(on_complete(final))
        else:
            logger.info(f"Batch {final.batch_id} left incomplete ({final.progress:.0%} settled)")

        return RunOutcome(
            batch=final,
            done=done,
            cancelled=cancel_token.cancelled,
            rounds=rounds,
        )

    async def retry_job(
        self,
        batch: BatchState,
        job_id: str,
        *,
        progress_callback: ProgressCallback | None = None,
    ) -> BatchState:
        """
        Regenerate a single failed (or pending) job outside the round loop.

        No pacing and no batching; other jobs are never touched.

        Args:
            batch: Batch containing the job
            job_id: Job to regenerate
            progress_callback: Optional progress callback

        Returns:
            Batch snapshot with the job completed or failed

        Raises:
            InvalidTransitionError: If the job is generating or already completed
            QuotaExhaustedError: If the retry failed with a rate-limit error
        """
        job = batch.get_job(job_id)
        if job.state not in (JobState.FAILED, JobState.PENDING):
            raise InvalidTransitionError(
                f"Job {job_id} is '{job.state.value}'; only failed or pending jobs can be retried"
            )

        self._batch = batch
        self._progress_callback = progress_callback
        logger.info(f"Manual retry of job {job_id} ('{job.title}')")

        self._apply(job_id, JobState.GENERATING)
        await self._emit(JOB_START, [job_id])

        error = await self._generate(job)
        if error is not None and classify(error) is ErrorKind.RATE_LIMITED:
            raise QuotaExhaustedError(
                f"Generation quota exhausted after retries: {error}", batch=self._batch
            ) from error

        return self._batch

    async def _generate(self, job: GenerationJob) -> Exception | None:
        """
        Generate one job and record the outcome.

        Returns:
            The failure (already recorded on the job), or None on success
        """
        try:
            image = await self._client.synthesize_image(job.prompt, self._batch.aspect_ratio)
        except Exception as e:
            logger.error(f"Job {job.job_id} ('{job.title}') failed: {type(e).__name__}: {e}")
            self._apply(job.job_id, JobState.FAILED, error=f"{type(e).__name__}: {e}")
            await self._emit(JOB_SETTLED, [job.job_id])
            return e

        self._apply(job.job_id, JobState.COMPLETED, result=image)
        logger.info(f"Job {job.job_id} ('{job.title}') completed")
        await self._emit(JOB_SETTLED, [job.job_id])
        return None

    async def _generate_cover(self, job: GenerationJob) -> None:
        """Best-effort cover generation: failures are recorded and logged, never raised."""
        try:
            image = await self._client.synthesize_image(job.prompt, self._batch.aspect_ratio)
        except Exception as e:
            logger.warning(f"Cover generation failed, continuing without cover: {e}")
            self._apply(job.job_id, JobState.FAILED, error=f"{type(e).__name__}: {e}")
        else:
            self._apply(job.job_id, JobState.COMPLETED, result=image)
            logger.info("Cover completed")
        await self._emit(COVER_SETTLED, [job.job_id])
