# linework/orchestration/__init__.py
"""Batch orchestration: paced page dispatch, cover generation, cancellation."""

from .cancellation import CancelToken
from .orchestrator import (
    BatchOrchestrator,
    ProgressCallback,
    ProgressEvent,
    RunOutcome,
)
from .signals import install_cancel_handlers

__all__ = [
    "BatchOrchestrator",
    "CancelToken",
    "ProgressCallback",
    "ProgressEvent",
    "RunOutcome",
    "install_cancel_handlers",
]
