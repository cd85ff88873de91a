# linework/validation/__init__.py
"""Input validation and sanitization utilities."""

from .sanitize import (
    parse_dimensions,
    sanitize_batch_id,
    sanitize_template_path,
    sanitize_topic,
)

__all__ = [
    "sanitize_topic",
    "sanitize_batch_id",
    "parse_dimensions",
    "sanitize_template_path",
]
