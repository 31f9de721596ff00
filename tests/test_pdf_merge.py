from __future__ import annotations

import io
import warnings

import pytest
from pypdf import PdfReader
from reportlab.pdfgen.canvas import Canvas

from invoicedoc.core.errors import DocumentOutputError
from invoicedoc.pdf.pdf_merge import stamp_pages


def _two_page_pdf() -> bytes:
    buf = io.BytesIO()
    c = Canvas(buf, pagesize=(300, 200))
    c.setTitle("Body Doc")
    for label in ("BODY-ONE", "BODY-TWO"):
        c.drawString(20, 150, label)
        c.showPage()
    c.save()
    return buf.getvalue()


def _number(canvas: Canvas, index: int, total: int) -> None:
    canvas.setFont("Helvetica", 8)
    canvas.drawString(20, 20, f"Stamp {index + 1}/{total}")


def test_stamp_pages_overlays_every_page() -> None:
    with warnings.catch_warnings():
        # Merging into pages the writer does not own is deprecated in pypdf
        warnings.simplefilter("error", DeprecationWarning)
        data = stamp_pages(_two_page_pdf(), _number)

    reader = PdfReader(io.BytesIO(data))
    texts = [p.extract_text() for p in reader.pages]
    assert len(texts) == 2
    assert "BODY-ONE" in texts[0] and "Stamp 1/2" in texts[0]
    assert "BODY-TWO" in texts[1] and "Stamp 2/2" in texts[1]
    assert reader.metadata.title == "Body Doc"
    assert float(reader.pages[1].mediabox.width) == pytest.approx(300)


def test_stamp_pages_rejects_garbage() -> None:
    with pytest.raises(DocumentOutputError):
        stamp_pages(b"not a pdf", _number)
