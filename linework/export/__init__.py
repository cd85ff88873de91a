# linework/export/__init__.py
"""Export of finished batches as an image archive and a printable document."""

from .archive import build_archive, decode_image, safe_filename, write_archive
from .document import build_document, page_size, write_document

__all__ = [
    "build_archive",
    "write_archive",
    "build_document",
    "write_document",
    "safe_filename",
    "decode_image",
    "page_size",
]
