from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Flowable

from invoicedoc.pdf.layout import LayoutCursor
from invoicedoc.pdf.resources import ResourceCache


def wrap_text(text: str, max_width: float, font_name: str, font_size: float) -> List[str]:
    """Word-wrap into lines no wider than max_width; explicit line breaks are kept.

    A single word wider than the line is cut and ends with an ellipsis.
    """
    width_fn = pdfmetrics.stringWidth
    lines: List[str] = []
    for paragraph in (text or "").replace("\r", "").split("\n"):
        line: List[str] = []
        for w in paragraph.split():
            trial = " ".join(line + [w])
            if width_fn(trial, font_name, font_size) <= max_width or not line:
                line.append(w)
            else:
                lines.append(" ".join(line))
                line = [w]
        lines.append(" ".join(line))

    out: List[str] = []
    for ln in lines:
        if width_fn(ln, font_name, font_size) <= max_width:
            out.append(ln)
            continue
        s = ln
        while s and width_fn(s + "…", font_name, font_size) > max_width:
            s = s[:-1]
        out.append((s + "…") if s else ln)
    return out


class DocumentHandle:
    """
    Drawing surface for section renderers.

    Coordinates are top-down (y grows towards the bottom of the page) to match the
    layout cursor. Inside ``measuring()`` every draw call is a no-op, which lets a
    renderer run once to learn how much height it needs.
    """

    def __init__(self, canvas: Canvas, cursor: LayoutCursor, cache: ResourceCache, background: Optional[colors.Color] = None) -> None:
        self.canvas = canvas
        self.cursor = cursor
        self.cache = cache
        self.background = background
        self._measuring = 0

    @property
    def is_measuring(self) -> bool:
        return self._measuring > 0

    @contextmanager
    def measuring(self) -> Iterator["DocumentHandle"]:
        self._measuring += 1
        try:
            yield self
        finally:
            self._measuring -= 1

    def _pdf_y(self, y: float) -> float:
        return self.cursor.page_height - y

    # ----- pages -----
    def paint_background(self) -> None:
        bg = self.background
        if bg is None or (bg.red, bg.green, bg.blue) == (1, 1, 1):
            return
        c = self.canvas
        c.saveState()
        c.setFillColor(bg)
        c.rect(0, 0, self.cursor.page_width, self.cursor.page_height, stroke=0, fill=1)
        c.restoreState()

    def next_page(self) -> None:
        """Emit the current page and prepare the next one (cursor callback)."""
        self.canvas.showPage()
        self.paint_background()

    # ----- measuring helpers -----
    @staticmethod
    def string_width(text: str, font_name: str, font_size: float) -> float:
        return pdfmetrics.stringWidth(text or "", font_name, font_size)

    @staticmethod
    def wrap(text: str, max_width: float, font_name: str, font_size: float) -> List[str]:
        return wrap_text(text, max_width, font_name, font_size)

    # ----- drawing -----
    def text(self, x: float, y: float, s: str, font_name: str, font_size: float, color: colors.Color, align: str = "left") -> None:
        if self.is_measuring or not s:
            return
        c = self.canvas
        c.setFont(font_name, font_size)
        c.setFillColor(color)
        py = self._pdf_y(y)
        if align == "right":
            c.drawRightString(x, py, s)
        elif align == "center":
            c.drawCentredString(x, py, s)
        else:
            c.drawString(x, py, s)

    def line(self, x1: float, y1: float, x2: float, y2: float, color: colors.Color, width: float = 0.5, dash: Optional[Sequence[float]] = None) -> None:
        if self.is_measuring:
            return
        c = self.canvas
        c.saveState()
        c.setStrokeColor(color)
        c.setLineWidth(width)
        if dash:
            c.setDash(list(dash))
        c.line(x1, self._pdf_y(y1), x2, self._pdf_y(y2))
        c.restoreState()

    def rect(
        self,
        x: float,
        y: float,
        w: float,
        h: float,
        fill: Optional[colors.Color] = None,
        stroke: Optional[colors.Color] = None,
        alpha: Optional[float] = None,
        width: float = 0.5,
    ) -> None:
        """Rectangle whose top-left corner is (x, y)."""
        if self.is_measuring:
            return
        c = self.canvas
        c.saveState()
        if fill is not None:
            c.setFillColor(fill, alpha=alpha)
        if stroke is not None:
            c.setStrokeColor(stroke)
            c.setLineWidth(width)
        c.rect(x, self._pdf_y(y + h), w, h, stroke=1 if stroke is not None else 0, fill=1 if fill is not None else 0)
        c.restoreState()

    def image(self, reader: ImageReader, x: float, y: float, w: float, h: float) -> None:
        """Image fitted into the w x h box whose top-left corner is (x, y)."""
        if self.is_measuring:
            return
        self.canvas.drawImage(reader, x, self._pdf_y(y + h), width=w, height=h, preserveAspectRatio=True, anchor="sw", mask="auto")

    def flowable(self, f: Flowable, x: float, y: float, avail_width: float, avail_height: float) -> float:
        """Draw a flowable with its top at y; returns its height."""
        _, h = f.wrap(avail_width, avail_height)
        if not self.is_measuring:
            f.drawOn(self.canvas, x, self._pdf_y(y + h))
        return h
