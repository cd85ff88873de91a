# linework/tools/create_book.py
"""
create_book tool implementation.

Validates inputs, plans the book with one structured request, and persists
the resulting batch with every job pending.
"""

import logging

from linework.config.schema import LineworkConfig
from linework.errors import (
    ErrorKind,
    LineworkError,
    PlanningError,
    QuotaExhaustedError,
)
from linework.llm.client import GenAIClient
from linework.llm.retry import classify
from linework.llm.types import BookDimensions
from linework.models.jobs import BatchState, build_batch
from linework.models.store import BatchStore
from linework.prompts import cover_prompt, page_prompt
from linework.validation.sanitize import sanitize_template_path, sanitize_topic

logger = logging.getLogger(__name__)


async def _dimensions_from_template(
    template_path: str, fallback: BookDimensions, client: GenAIClient
) -> BookDimensions:
    path, mime_type = sanitize_template_path(template_path)
    analysis = await client.analyze_template(path.read_bytes(), mime_type)
    if analysis.width and analysis.height and analysis.width > 0 and analysis.height > 0:
        logger.info(
            f"Using template dimensions {analysis.width}x{analysis.height} in "
            f"(spine={analysis.has_spine})"
        )
        return BookDimensions(width=analysis.width, height=analysis.height, unit="in")

    logger.warning("Template analysis returned no usable dimensions, keeping requested size")
    return fallback


async def create_book(
    topic: str,
    *,
    client: GenAIClient,
    store: BatchStore,
    config: LineworkConfig,
    target_age: str | None = None,
    dimensions: BookDimensions | None = None,
    page_count: int | None = None,
    include_cover: bool | None = None,
    template_path: str | None = None,
) -> BatchState:
    """
    Plan a new coloring book and store it as a batch of pending jobs.

    Unset options fall back to the `book` section of the config.

    Args:
        topic: What the book is about
        client: Remote generation client
        store: Batch storage instance
        config: Configuration instance
        target_age: Reader age range
        dimensions: Trim size (fixes the image aspect ratio)
        page_count: Number of pages to plan
        include_cover: Add a cover job
        template_path: Cover template image to read the trim size from

    Returns:
        The stored BatchState

    Raises:
        ValidationError: If the topic or template path is invalid
        QuotaExhaustedError: If planning hit the quota after all retries
        PlanningError: If planning failed for any other reason; nothing is stored
    """
    cleaned_topic = sanitize_topic(topic)
    book = config.book
    target_age = target_age or book.target_age
    page_count = page_count or book.page_count
    include_cover = book.include_cover if include_cover is None else include_cover
    dimensions = dimensions or BookDimensions(width=book.width, height=book.height, unit=book.unit)

    try:
        if template_path:
            dimensions = await _dimensions_from_template(template_path, dimensions, client)
        plan = await client.plan(cleaned_topic, target_age, page_count)
    except LineworkError:
        raise
    except Exception as e:
        if classify(e) is ErrorKind.RATE_LIMITED:
            raise QuotaExhaustedError(f"Planning quota exhausted after retries: {e}") from e
        raise PlanningError(f"Planning failed: {type(e).__name__}: {e}", kind=classify(e)) from e

    title = plan.metadata.title or cleaned_topic
    batch = build_batch(
        plan,
        cleaned_topic,
        dimensions,
        [page_prompt(page.prompt or page.title) for page in plan.pages],
        target_age=target_age,
        cover_prompt=(
            cover_prompt(cleaned_topic, title, plan.metadata.author_name) if include_cover else None
        ),
    )

    await store.add(batch)
    logger.info(f"Created batch {batch.batch_id} '{title}' for: {cleaned_topic[:80]}")
    return batch
