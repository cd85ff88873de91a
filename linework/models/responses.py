# linework/models/responses.py
"""
Pydantic response models for tool outputs.

The listing, status and export tools return these models as dicts so the CLI
(and any other front end) renders from one shape.
"""

from pydantic import BaseModel, Field


class BatchSummary(BaseModel):
    """Summary information for a single batch (used in list_batches)."""

    batch_id: str = Field(description="Batch identifier")
    title: str = Field(description="Planned book title (or the topic if untitled)")
    topic: str = Field(description="Topic truncated to 80 chars")
    status: str = Field(description="planned/generating/partial/review")
    completed: int = Field(ge=0, description="Completed jobs")
    failed: int = Field(ge=0, description="Failed jobs")
    total: int = Field(ge=0, description="Total jobs including the cover")
    created_at: str = Field(description="Creation timestamp (ISO format)")


class ListBatchesResponse(BaseModel):
    """Response from list_batches tool."""

    batches: list[BatchSummary] = Field(
        default_factory=list, description="All batches, newest first"
    )
    total: int = Field(description="Total number of batches")


class JobStatus(BaseModel):
    """State of one job inside a batch status report."""

    position: int = Field(description="1-based page number (0 for the cover)")
    job_id: str = Field(description="Job identifier")
    kind: str = Field(description="page or cover")
    title: str = Field(description="Page title")
    saying: str = Field(default="", description="Short caption printed under the page")
    state: str = Field(description="pending/generating/completed/failed")
    error: str | None = Field(default=None, description="Failure message if failed")


class BatchStatusResponse(BaseModel):
    """Response from batch_status tool."""

    batch_id: str = Field(description="Batch identifier")
    title: str = Field(description="Planned book title")
    subtitle: str = Field(default="", description="Planned book subtitle")
    topic: str = Field(description="User topic")
    aspect_ratio: str = Field(description="Image aspect-ratio bucket")
    status: str = Field(description="planned/generating/partial/review")
    progress: float = Field(
        ge=0.0, le=1.0, description="Fraction of jobs in a terminal state"
    )
    jobs: list[JobStatus] = Field(default_factory=list, description="Jobs in book order")
    message: str | None = Field(default=None, description="Human-readable next step")


class ExportResponse(BaseModel):
    """Response from export_batch tool."""

    batch_id: str = Field(description="Batch identifier")
    document_path: str | None = Field(default=None, description="Written PDF path")
    archive_path: str | None = Field(default=None, description="Written ZIP path")
    pages_exported: int = Field(ge=0, description="Completed pages included")
    pages_missing: int = Field(ge=0, description="Pages skipped because they are not completed")
