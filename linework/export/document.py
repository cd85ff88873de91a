# linework/export/document.py
"""
Printable PDF interior built with reportlab.

Sections, in order: title page, optional full-bleed cover page, one page per
completed illustration, and a metadata sheet with the listing fields.
"""

import io
import logging
from pathlib import Path

from PIL import Image
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from linework.export.archive import decode_image, safe_filename
from linework.llm.types import BookDimensions
from linework.models.jobs import BatchState, JobState

logger = logging.getLogger(__name__)

# Pixel dimensions are laid out at 96 DPI
PX_TO_POINTS = 72.0 / 96.0

FOOTER_TEXT = "Generated with linework"


def page_size(dimensions: BookDimensions) -> tuple[float, float]:
    """Convert book dimensions to a reportlab page size in points."""
    scale = inch if dimensions.unit == "in" else PX_TO_POINTS
    return dimensions.width * scale, dimensions.height * scale


def document_name(batch: BatchState) -> str:
    title = batch.metadata.title or "coloring_book"
    return f"{safe_filename(title).lower()}_interior.pdf"


def _load_image(data_uri: str) -> Image.Image:
    image = Image.open(io.BytesIO(decode_image(data_uri)))
    image.load()
    return image


def _centered_lines(
    pdf: canvas.Canvas,
    text: str,
    y: float,
    width: float,
    font: str,
    size: float,
    max_width: float,
) -> float:
    """Draw wrapped, centered text starting at y; return the y below the last line."""
    pdf.setFont(font, size)
    for line in simpleSplit(text, font, size, max_width):
        pdf.drawCentredString(width / 2, y, line)
        y -= size * 1.2
    return y


def _draw_title_page(pdf: canvas.Canvas, batch: BatchState, width: float, height: float, margin: float) -> None:
    metadata = batch.metadata
    text_width = width - 2 * margin
    _centered_lines(
        pdf, metadata.title or batch.topic, height * 0.7, width, "Helvetica-Bold", 24, text_width
    )
    if metadata.subtitle:
        _centered_lines(pdf, metadata.subtitle, height * 0.55, width, "Helvetica", 16, text_width)
    pdf.setFont("Helvetica", 10)
    pdf.drawCentredString(width / 2, margin, FOOTER_TEXT)
    pdf.showPage()


def _draw_cover_page(pdf: canvas.Canvas, image: Image.Image, width: float, height: float) -> None:
    pdf.drawImage(ImageReader(image), 0, 0, width=width, height=height)
    pdf.showPage()


def _draw_illustration_page(
    pdf: canvas.Canvas,
    title: str,
    image: Image.Image,
    number: int,
    saying: str,
    width: float,
    height: float,
    margin: float,
) -> None:
    content_width = width - 2 * margin

    pdf.setFont("Helvetica-Bold", 14)
    pdf.setFillGray(60 / 255)
    title_y = height - margin - 14
    pdf.drawCentredString(width / 2, title_y, title)

    # Fit the image between the title and the page-number band, keeping its ratio
    top = title_y - 0.3 * inch
    caption_y = margin * 1.5
    bottom = caption_y + (0.35 * inch if saying else 0)
    available_height = top - bottom
    ratio = image.width / image.height
    print_width = content_width
    print_height = content_width / ratio
    if print_height > available_height:
        print_height = available_height
        print_width = print_height * ratio

    x = (width - print_width) / 2
    y = bottom + (available_height - print_height) / 2
    pdf.drawImage(ImageReader(image), x, y, width=print_width, height=print_height)

    if saying:
        pdf.setFont("Helvetica-Oblique", 11)
        pdf.setFillGray(90 / 255)
        pdf.drawCentredString(width / 2, caption_y, saying)

    pdf.setFont("Helvetica", 8)
    pdf.setFillGray(150 / 255)
    pdf.drawCentredString(width / 2, margin / 2, f"Page {number}")
    pdf.setFillGray(0)
    pdf.showPage()


def _draw_metadata_sheet(pdf: canvas.Canvas, batch: BatchState, width: float, height: float, margin: float) -> None:
    metadata = batch.metadata
    label_width = 1 * inch
    value_width = width - 2 * margin - label_width
    line_height = 16

    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawString(margin, height * 0.9, "Book Metadata (For KDP Upload)")

    y = height * 0.85
    for label, value in (
        ("Title:", metadata.title),
        ("Subtitle:", metadata.subtitle),
        ("Description:", metadata.description),
    ):
        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(margin, y, label)
        pdf.setFont("Helvetica", 12)
        lines = simpleSplit(value or "", "Helvetica", 12, value_width) or [""]
        for line in lines:
            pdf.drawString(margin + label_width, y, line)
            y -= line_height
        y -= line_height

    pdf.setFont("Helvetica-Bold", 12)
    pdf.drawString(margin, y, "Keywords:")
    pdf.setFont("Helvetica", 12)
    for keyword in metadata.keywords:
        y -= line_height
        pdf.drawString(margin + 0.5 * inch, y, f"• {keyword}")
    pdf.showPage()


def build_document(batch: BatchState) -> bytes:
    """
    Render the printable interior for a batch.

    Only completed pages are included; the cover page is added when the
    cover job completed. Page numbers follow the page's position in the book,
    so skipped pages leave a gap in the numbering.

    Args:
        batch: Batch to render

    Returns:
        PDF file contents
    """
    width, height = page_size(batch.dimensions)
    margin = 0.5 * inch if batch.dimensions.unit == "in" else 48 * PX_TO_POINTS

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(width, height))
    pdf.setTitle(batch.metadata.title or batch.topic)
    pdf.setAuthor(batch.metadata.author_name)
    pdf.setSubject(batch.metadata.subtitle)
    if batch.metadata.keywords:
        pdf.setKeywords(", ".join(batch.metadata.keywords))

    _draw_title_page(pdf, batch, width, height, margin)

    cover = batch.cover
    if cover is not None and cover.state is JobState.COMPLETED and cover.result:
        _draw_cover_page(pdf, _load_image(cover.result), width, height)

    included = 0
    for number, page in enumerate(batch.pages, start=1):
        if page.state is not JobState.COMPLETED or not page.result:
            continue
        _draw_illustration_page(
            pdf, page.title, _load_image(page.result), number, page.saying, width, height, margin
        )
        included += 1

    _draw_metadata_sheet(pdf, batch, width, height, margin)
    pdf.save()

    logger.info(f"Built document for batch {batch.batch_id} with {included} page(s)")
    return buffer.getvalue()


def write_document(batch: BatchState, out_dir: Path) -> Path:
    """Write the PDF interior into out_dir and return its path."""
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / document_name(batch)
    path.write_bytes(build_document(batch))
    logger.info(f"Wrote document: {path}")
    return path
