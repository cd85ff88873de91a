# linework/export/archive.py
"""
ZIP export of generated images.

Layout:
    coloring_pages/00_Cover.png
    coloring_pages/01_<page title>.png
    ...
"""

import base64
import io
import logging
import re
import zipfile
from pathlib import Path

from linework.models.jobs import BatchState, GenerationJob, JobState

logger = logging.getLogger(__name__)

ARCHIVE_FOLDER = "coloring_pages"
COVER_ENTRY = "00_Cover.png"


def safe_filename(text: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return re.sub(r"[^a-zA-Z0-9]", "_", text)


def decode_image(data_uri: str) -> bytes:
    """
    Decode a `data:<mime>;base64,<payload>` URI (or a bare base64 string).

    Raises:
        ValueError: If the payload is not valid base64
    """
    payload = data_uri.split(",", 1)[1] if data_uri.startswith("data:") else data_uri
    try:
        return base64.b64decode(payload, validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid image payload: {e}") from e


def _completed(job: GenerationJob | None) -> bool:
    return job is not None and job.state is JobState.COMPLETED and bool(job.result)


def archive_name(batch: BatchState) -> str:
    title = batch.metadata.title or ""
    return f"{safe_filename(title) if title else 'coloring_book'}_images.zip"


def build_archive(batch: BatchState) -> bytes:
    """
    Build the image archive in memory.

    Pending and failed pages are skipped. Page files are numbered by their
    1-based position among the batch's pages, so gaps show which pages are missing.

    Args:
        batch: Batch to export

    Returns:
        ZIP file contents
    """
    buffer = io.BytesIO()
    written = 0

    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        if _completed(batch.cover):
            zf.writestr(f"{ARCHIVE_FOLDER}/{COVER_ENTRY}", decode_image(batch.cover.result))
            written += 1

        for index, page in enumerate(batch.pages, start=1):
            if not _completed(page):
                continue
            name = f"{index:02d}_{safe_filename(page.title)}.png"
            zf.writestr(f"{ARCHIVE_FOLDER}/{name}", decode_image(page.result))
            written += 1

    logger.info(f"Built archive for batch {batch.batch_id} with {written} image(s)")
    return buffer.getvalue()


def write_archive(batch: BatchState, out_dir: Path) -> Path:
    """Write the image archive into out_dir and return its path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / archive_name(batch)
    path.write_bytes(build_archive(batch))
    logger.info(f"Wrote archive: {path}")
    return path
