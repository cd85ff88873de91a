# linework/validation/sanitize.py
"""
Input sanitization and validation utilities.

Validates user-supplied topics, identifiers, trim sizes and template paths
before they reach the remote service or the store.
"""

import logging
import math
import re
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from linework.errors import ValidationError
from linework.llm.types import BookDimensions

logger = logging.getLogger(__name__)

TEMPLATE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


def sanitize_topic(text: str, max_length: int = 500) -> str:
    """
    Sanitize and validate a book topic.

    Strips whitespace and validates non-empty.
    Truncates to max_length if needed.

    Args:
        text: User-provided topic
        max_length: Maximum allowed length (default 500)

    Returns:
        Cleaned topic string

    Raises:
        ValidationError: If the topic is empty after stripping
    """
    cleaned = " ".join(text.split())

    if not cleaned:
        raise ValidationError("Topic cannot be empty")

    if len(cleaned) > max_length:
        logger.warning(f"Topic truncated from {len(cleaned)} to {max_length} characters")
        cleaned = cleaned[:max_length]

    return cleaned


def sanitize_batch_id(batch_id: str) -> str:
    """
    Sanitize and validate a batch or job ID.

    IDs must be alphanumeric with hyphens only, 8-64 characters.

    Raises:
        ValidationError: If the ID format is invalid
    """
    batch_id = batch_id.strip()
    pattern = r"^[a-zA-Z0-9-]{8,64}$"
    if not re.match(pattern, batch_id):
        raise ValidationError(
            f"Invalid ID '{batch_id}': must be 8-64 alphanumeric characters or hyphens"
        )

    return batch_id


def parse_dimensions(width: float, height: float, unit: str = "in") -> BookDimensions:
    """
    Validate a requested trim size.

    Args:
        width: Page width (positive, finite)
        height: Page height (positive, finite)
        unit: "in" or "px"

    Returns:
        BookDimensions

    Raises:
        ValidationError: If either side is not a positive finite number or
            the unit is unknown
    """
    for name, value in (("width", width), ("height", height)):
        if not math.isfinite(value) or value <= 0:
            raise ValidationError(f"Page {name} must be a positive number, got {value}")

    try:
        return BookDimensions(width=width, height=height, unit=unit)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid dimensions: unit must be 'in' or 'px', got '{unit}'") from e


def sanitize_template_path(user_path: str) -> tuple[Path, str]:
    """
    Validate a cover template image path.

    Args:
        user_path: User-provided path string

    Returns:
        (resolved path, MIME type)

    Raises:
        ValidationError: If the file is missing or not a supported image type
    """
    try:
        resolved = Path(user_path).expanduser().resolve()
    except (ValueError, OSError) as e:
        raise ValidationError(f"Invalid path '{user_path}': {e}") from e

    if not resolved.is_file():
        raise ValidationError(f"Template file does not exist: {resolved}")

    mime_type = TEMPLATE_MIME_TYPES.get(resolved.suffix.lower())
    if mime_type is None:
        raise ValidationError(
            f"Unsupported template type '{resolved.suffix}'; "
            f"expected one of {', '.join(sorted(TEMPLATE_MIME_TYPES))}"
        )

    logger.info(f"Sanitized template path: {resolved}")
    return resolved, mime_type
