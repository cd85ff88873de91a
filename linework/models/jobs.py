# linework/models/jobs.py
"""
Generation job and batch state models.

Jobs and batches are immutable: every state change produces a new
GenerationJob and a new BatchState via the reducer functions below, so a
progress reader never sees a half-updated job.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from linework.errors import BatchNotFoundError, InvalidTransitionError
from linework.llm.aspect import closest_aspect_ratio
from linework.llm.types import BookDimensions, BookMetadata, BookPlan

logger = logging.getLogger(__name__)

# Error recorded on a job whose remote call was abandoned mid-flight
INTERRUPTED_ERROR = "Interrupted before completion"


class JobState(Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class JobKind(Enum):
    """What a job produces."""

    PAGE = "page"
    COVER = "cover"


# (from, to) pairs the orchestrator and the manual retry path may apply
ALLOWED_TRANSITIONS: frozenset[tuple[JobState, JobState]] = frozenset(
    {
        (JobState.PENDING, JobState.GENERATING),
        (JobState.GENERATING, JobState.COMPLETED),
        (JobState.GENERATING, JobState.FAILED),
        (JobState.FAILED, JobState.PENDING),
        (JobState.FAILED, JobState.GENERATING),
    }
)


@dataclass(frozen=True)
class GenerationJob:
    """
    One unit of generation work (one illustration or the cover).

    `result` is present iff state is COMPLETED; `error` only when FAILED.
    """

    job_id: str
    kind: JobKind
    title: str
    prompt: str
    state: JobState = JobState.PENDING
    result: str | None = None
    error: str | None = None
    saying: str = ""


@dataclass(frozen=True)
class BatchState:
    """
    The full set of jobs created from one planning call.

    The job tuple is fixed-size once planning completes. Order matters only
    for display and file naming.
    """

    batch_id: str
    topic: str
    aspect_ratio: str
    jobs: tuple[GenerationJob, ...]
    metadata: BookMetadata = field(default_factory=BookMetadata)
    dimensions: BookDimensions = field(default_factory=BookDimensions)
    target_age: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None

    @property
    def pages(self) -> list[GenerationJob]:
        return [j for j in self.jobs if j.kind is JobKind.PAGE]

    @property
    def cover(self) -> GenerationJob | None:
        return next((j for j in self.jobs if j.kind is JobKind.COVER), None)

    def in_state(self, state: JobState) -> list[GenerationJob]:
        return [j for j in self.jobs if j.state is state]

    @property
    def is_done(self) -> bool:
        """True iff every job is completed or failed."""
        return all(j.state.terminal for j in self.jobs)

    @property
    def progress(self) -> float:
        """Fraction of jobs in a terminal state."""
        if not self.jobs:
            return 1.0
        return sum(1 for j in self.jobs if j.state.terminal) / len(self.jobs)

    @property
    def status(self) -> str:
        """
        Summary status for listings.

        Returns:
            "review" when done, "generating" while a job is in flight,
            "planned" before any job ran, "partial" otherwise (stopped early)
        """
        if self.is_done:
            return "review"
        if any(j.state is JobState.GENERATING for j in self.jobs):
            return "generating"
        if all(j.state is JobState.PENDING for j in self.jobs):
            return "planned"
        return "partial"

    def get_job(self, job_id: str) -> GenerationJob:
        for job in self.jobs:
            if job.job_id == job_id:
                return job
        raise BatchNotFoundError(f"Job {job_id} not found in batch {self.batch_id}")


def generate_job_id() -> str:
    """
    Generate a unique job ID.

    Returns:
        12-character hex string (UUID4 truncated)
    """
    return uuid4().hex[:12]


def apply_job_update(
    batch: BatchState,
    job_id: str,
    new_state: JobState,
    result: str | None = None,
    error: str | None = None,
) -> BatchState:
    """
    Return a new batch with one job moved to new_state.

    Args:
        batch: Current batch snapshot
        job_id: Job to update
        new_state: Target state
        result: Image payload (required for COMPLETED, ignored otherwise)
        error: Failure message (kept only for FAILED)

    Returns:
        New BatchState with the whole job replaced

    Raises:
        BatchNotFoundError: If job_id is not in the batch
        InvalidTransitionError: If the transition is not allowed, or
            COMPLETED is requested without a result
    """
    job = batch.get_job(job_id)

    if (job.state, new_state) not in ALLOWED_TRANSITIONS:
        raise InvalidTransitionError(
            f"Job {job_id}: cannot move from {job.state.value} to {new_state.value}"
        )
    if new_state is JobState.COMPLETED and not result:
        raise InvalidTransitionError(f"Job {job_id}: completed without a result")

    updated = replace(
        job,
        state=new_state,
        result=result if new_state is JobState.COMPLETED else None,
        error=error if new_state is JobState.FAILED else None,
    )
    jobs = tuple(updated if j.job_id == job_id else j for j in batch.jobs)
    return replace(batch, jobs=jobs, updated_at=datetime.now(timezone.utc))


def reset_job(batch: BatchState, job_id: str) -> BatchState:
    """Move a failed job back to pending so the next run picks it up."""
    return apply_job_update(batch, job_id, JobState.PENDING)


def build_batch(
    plan: BookPlan,
    topic: str,
    dimensions: BookDimensions,
    page_prompts: list[str],
    target_age: str | None = None,
    cover_prompt: str | None = None,
) -> BatchState:
    """
    Create a fresh batch: one pending page job per planned page, plus a cover.

    Args:
        plan: Result of the planning request
        topic: User topic
        dimensions: Requested trim size (fixes the aspect ratio)
        page_prompts: Final image prompt for each plan page, in plan order
        target_age: Reader age range
        cover_prompt: Cover image prompt (None = no cover job)

    Returns:
        BatchState with every job pending
    """
    if len(page_prompts) != len(plan.pages):
        raise ValueError(
            f"Got {len(page_prompts)} prompts for {len(plan.pages)} planned pages"
        )

    jobs = [
        GenerationJob(
            job_id=generate_job_id(),
            kind=JobKind.PAGE,
            title=page.title,
            prompt=prompt,
            saying=page.saying,
        )
        for page, prompt in zip(plan.pages, page_prompts)
    ]
    if cover_prompt is not None:
        jobs.insert(
            0,
            GenerationJob(
                job_id=generate_job_id(),
                kind=JobKind.COVER,
                title="Cover",
                prompt=cover_prompt,
            ),
        )

    batch = BatchState(
        batch_id=generate_job_id(),
        topic=topic,
        aspect_ratio=closest_aspect_ratio(dimensions.width, dimensions.height),
        jobs=tuple(jobs),
        metadata=plan.metadata,
        dimensions=dimensions,
        target_age=target_age,
    )
    logger.info(
        f"Built batch {batch.batch_id}: {len(batch.pages)} pages, "
        f"cover={'yes' if cover_prompt is not None else 'no'}, aspect={batch.aspect_ratio}"
    )
    return batch
