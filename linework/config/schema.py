# linework/config/schema.py
"""
Pydantic configuration models for linework.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GenAIConfig(BaseModel):
    """Remote generation service configuration."""

    model_config = ConfigDict(extra="ignore")

    api_key: str | None = Field(
        default=None,
        description="API key (None = read GEMINI_API_KEY or API_KEY from the environment)",
    )
    text_model: str = Field(
        default="gemini-3-flash-preview",
        description="Model used for structured planning requests",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Model used for image synthesis",
    )
    timeout: int = Field(
        default=120, ge=1, description="Per-request timeout in seconds"
    )


class RetryPolicy(BaseModel):
    """Backoff policy applied to every remote call."""

    model_config = ConfigDict(extra="ignore")

    max_retries: int = Field(
        default=12,
        ge=0,
        description="Total attempts per call (0 or 1 = no retries)",
    )
    base_delay: float = Field(
        default=6.0, ge=0.0, description="Delay before the first retry, in seconds"
    )
    growth_factor: float = Field(
        default=1.6,
        ge=1.5,
        le=2.0,
        description="Exponential growth of the delay per attempt",
    )
    max_jitter: float = Field(
        default=2.0,
        ge=0.5,
        le=2.0,
        description="Ceiling of the uniform random jitter added to each delay, in seconds",
    )


class QueueConfig(BaseModel):
    """Dispatch pacing for page generation."""

    model_config = ConfigDict(extra="ignore")

    concurrency: int = Field(
        default=1,
        ge=1,
        le=8,
        description="Pages generated concurrently per dispatch round",
    )
    pacing_delay: float = Field(
        default=20.0,
        ge=0.0,
        description="Seconds to wait between dispatch rounds",
    )
    cover_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds to hold the first page round after starting the cover",
    )


class BookConfig(BaseModel):
    """Defaults for new books."""

    model_config = ConfigDict(extra="ignore")

    page_count: int = Field(default=20, ge=1, le=100, description="Pages per book")
    target_age: str = Field(default="4-8", description="Target reader age range")
    width: float = Field(default=8.5, gt=0, description="Trim width")
    height: float = Field(default=11.0, gt=0, description="Trim height")
    unit: Literal["in", "px"] = Field(default="in", description="Unit of width/height")
    include_cover: bool = Field(default=True, description="Generate a front cover")


class OutputConfig(BaseModel):
    """Output and file path configuration."""

    model_config = ConfigDict(extra="ignore")

    exports_dir: str = Field(
        default="linework-exports",
        description="Directory for exported PDF/ZIP files (relative to cwd)",
    )
    verbosity: Literal["quiet", "normal", "verbose"] = Field(
        default="normal", description="Logging verbosity level"
    )
    json_logs: bool = Field(
        default=False, description="Log JSON lines to stderr instead of the human format"
    )


class LineworkConfig(BaseModel):
    """Root configuration for linework."""

    model_config = ConfigDict(extra="ignore")

    genai: GenAIConfig = Field(default_factory=GenAIConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    book: BookConfig = Field(default_factory=BookConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
