from __future__ import annotations

import io
import logging
from typing import Callable

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.pdfgen.canvas import Canvas

from invoicedoc.core.errors import DocumentOutputError

logger = logging.getLogger(__name__)

# Draws on the stamp canvas for one page: (canvas, page_index, page_total)
StampFn = Callable[[Canvas, int, int], None]


def stamp_pages(pdf_bytes: bytes, stamp: StampFn) -> bytes:
	"""
	Overlay per-page content (page numbers, repeated footers) onto a finished PDF.

	The stamp canvas gets one page per body page, sized to that page's mediabox, and
	each stamp page is merged on top of its body page. Document metadata is kept.
	"""
	try:
		body = PdfReader(io.BytesIO(pdf_bytes))
		total = len(body.pages)

		buf = io.BytesIO()
		c = Canvas(buf)
		for i, page in enumerate(body.pages):
			c.setPageSize((float(page.mediabox.width), float(page.mediabox.height)))
			stamp(c, i, total)
			c.showPage()
		c.save()
		overlay = PdfReader(io.BytesIO(buf.getvalue()))

		writer = PdfWriter(clone_from=body)
		# Merge into the writer's own pages without rasterizing; body content stays underneath
		for page, stamp_page in zip(writer.pages, overlay.pages):
			page.merge_page(stamp_page)
		if body.metadata:
			writer.add_metadata({k: str(v) for k, v in body.metadata.items()})

		out = io.BytesIO()
		writer.write(out)
	except (PyPdfError, OSError, ValueError) as e:
		raise DocumentOutputError(f"Could not stamp document pages: {e}") from e

	logger.debug("Stamped %d page(s)", total)
	return out.getvalue()
