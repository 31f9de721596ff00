from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from reportlab.lib.units import mm

from invoicedoc.data.models import PageMargins

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Margins:
    """Page margins in points."""

    top: float
    right: float
    bottom: float
    left: float

    @classmethod
    def from_template(cls, m: PageMargins) -> "Margins":
        return cls(top=m.top * mm, right=m.right * mm, bottom=m.bottom * mm, left=m.left * mm)


class LayoutCursor:
    """
    Vertical write position across pages.

    ``y`` is measured from the top of the page (ReportLab measures from the bottom;
    use ``to_pdf_y`` when drawing). ``on_new_page`` is called whenever a page break
    happens so the owner can emit the page.

    ``bottom_reserve`` keeps a band above the bottom margin free for a footer.
    """

    def __init__(
        self,
        page_width: float,
        page_height: float,
        margins: Margins,
        on_new_page: Optional[Callable[[], None]] = None,
    ) -> None:
        self.page_width = page_width
        self.page_height = page_height
        self.margins = margins
        self.on_new_page = on_new_page
        self.bottom_reserve = 0.0
        self.page_index = 0
        self.y = margins.top

    @property
    def content_width(self) -> float:
        return self.page_width - self.margins.left - self.margins.right

    @property
    def page_count(self) -> int:
        return self.page_index + 1

    @property
    def bottom_limit(self) -> float:
        return self.page_height - self.margins.bottom - self.bottom_reserve

    def available_height(self) -> float:
        return self.bottom_limit - self.y

    def advance(self, h: float) -> None:
        self.y += h

    def to_pdf_y(self, y: Optional[float] = None) -> float:
        return self.page_height - (self.y if y is None else y)

    def new_page(self) -> None:
        if self.on_new_page is not None:
            self.on_new_page()
        self.page_index += 1
        self.y = self.margins.top
        logger.debug("Started page %d", self.page_count)

    def ensure_space(self, required: float, is_last: bool = False) -> bool:
        """Break to a new page when ``required`` does not fit, unless this is the last section."""
        if is_last or self.available_height() >= required:
            return False
        self.new_page()
        return True
