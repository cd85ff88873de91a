# linework/llm/__init__.py
"""Remote generation client, resilient call wrapper and aspect-ratio helpers."""

from .aspect import SUPPORTED_ASPECT_RATIOS, closest_aspect_ratio
from .client import GenAIClient
from .factory import create_genai_client
from .retry import classify, is_retryable, resilient_call
from .types import BookDimensions, BookMetadata, BookPlan, PageSpec, TemplateAnalysis

__all__ = [
    "GenAIClient",
    "create_genai_client",
    "classify",
    "is_retryable",
    "resilient_call",
    "closest_aspect_ratio",
    "SUPPORTED_ASPECT_RATIOS",
    "BookDimensions",
    "BookMetadata",
    "BookPlan",
    "PageSpec",
    "TemplateAnalysis",
]
