# linework/tools/__init__.py
"""Service-layer operations used by the CLI."""

from .batch_status import batch_status
from .create_book import create_book
from .export_batch import export_batch
from .list_batches import list_batches
from .lookup import load_batch
from .retry_page import resolve_job, retry_page
from .run_batch import build_orchestrator, run_batch

__all__ = [
    "create_book",
    "run_batch",
    "retry_page",
    "resolve_job",
    "export_batch",
    "list_batches",
    "batch_status",
    "load_batch",
    "build_orchestrator",
]
