# linework/tools/export_batch.py
"""
export_batch tool implementation.

Writes the printable PDF interior and the image ZIP for a batch.
"""

import logging
from pathlib import Path

from linework.errors import ValidationError
from linework.export.archive import write_archive
from linework.export.document import write_document
from linework.models.jobs import JobState
from linework.models.responses import ExportResponse
from linework.models.store import BatchStore
from linework.tools.lookup import load_batch

logger = logging.getLogger(__name__)


async def export_batch(
    batch_id: str,
    out_dir: Path,
    *,
    store: BatchStore,
    pdf: bool = True,
    archive: bool = True,
) -> dict:
    """
    Export a batch's completed pages.

    Pages that are not completed are skipped, so a partial batch can still be
    exported for review.

    Args:
        batch_id: Batch identifier
        out_dir: Directory to write into (created if missing)
        store: Batch storage instance
        pdf: Write the PDF interior
        archive: Write the image ZIP

    Returns:
        ExportResponse as dict

    Raises:
        ValidationError: If both outputs are disabled or no page is completed
        BatchNotFoundError: If the batch does not exist
    """
    if not pdf and not archive:
        raise ValidationError("Nothing to export: both PDF and ZIP output are disabled")

    batch = await load_batch(batch_id, store)
    completed = [p for p in batch.pages if p.state is JobState.COMPLETED]
    if not completed:
        raise ValidationError(
            f"Batch '{batch.batch_id}' has no completed pages yet. Run it first."
        )

    document_path = write_document(batch, out_dir) if pdf else None
    archive_path = write_archive(batch, out_dir) if archive else None

    missing = len(batch.pages) - len(completed)
    if missing:
        logger.warning(f"Exported batch {batch.batch_id} with {missing} page(s) missing")

    response = ExportResponse(
        batch_id=batch.batch_id,
        document_path=str(document_path) if document_path else None,
        archive_path=str(archive_path) if archive_path else None,
        pages_exported=len(completed),
        pages_missing=missing,
    )
    return response.model_dump()
