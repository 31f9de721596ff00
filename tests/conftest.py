from __future__ import annotations

import io
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest
from pypdf import PdfReader

from invoicedoc.data.models import (
    ContactBlock,
    Invoice,
    InvoiceTemplate,
    PageMargins,
    SectionKind,
    TemplateColors,
    TemplateFonts,
    TemplateSection,
    LineItem,
)
from invoicedoc.pdf.resources import ResourceCache


def _invoice(rows: int = 3, **changes) -> Invoice:
    items = [
        LineItem(description=f"Item {i}", quantity=1, unit_price=10.0, amount=10.0)
        for i in range(1, rows + 1)
    ]
    subtotal = 10.0 * rows
    data = dict(
        invoice_number="INV-1",
        recipient=ContactBlock(name="Test Customer", address="Line 1\nLine 2", email="billing@customer.test"),
        issue_date=date(2025, 8, 9),
        due_date=date(2025, 9, 8),
        items=items,
        subtotal=subtotal,
        tax_total=0.0,
        total=subtotal,
        balance_due=subtotal,
    )
    data.update(changes)
    return Invoice(**data)


SectionEntry = Tuple[SectionKind, int]


def _template(sections: Optional[Sequence[SectionEntry]] = None, hidden: Sequence[SectionKind] = (), **changes) -> InvoiceTemplate:
    specs = sections if sections is not None else [
        (SectionKind.HEADER, 1),
        (SectionKind.RECIPIENT_INFO, 2),
        (SectionKind.LINE_ITEMS, 3),
        (SectionKind.SUMMARY, 4),
    ]
    data = dict(
        id="test",
        name="Test",
        sections=[
            TemplateSection(id=kind.value, kind=kind, position=pos, is_visible=kind not in hidden)
            for kind, pos in specs
        ],
        colors=TemplateColors(),
        fonts=TemplateFonts(),
        margins=PageMargins(top=10, right=10, bottom=10, left=10),
        company_name="Test Co",
    )
    data.update(changes)
    return InvoiceTemplate(**data)


@pytest.fixture
def make_invoice() -> Callable[..., Invoice]:
    return _invoice


@pytest.fixture
def make_template() -> Callable[..., InvoiceTemplate]:
    return _template


@pytest.fixture
def cache(tmp_path) -> ResourceCache:
    # Fresh cache per test; an empty fonts dir keeps to the built-in fonts
    fonts = tmp_path / "fonts"
    fonts.mkdir()
    return ResourceCache(fonts_directory=fonts)


@pytest.fixture
def read_pdf() -> Callable[[bytes], PdfReader]:
    return lambda data: PdfReader(io.BytesIO(data))


@pytest.fixture
def page_texts() -> Callable[[bytes], List[str]]:
    def _texts(data: bytes) -> List[str]:
        reader = PdfReader(io.BytesIO(data))
        return [p.extract_text() or "" for p in reader.pages]

    return _texts


@pytest.fixture
def text_positions() -> Callable[[bytes, int], Dict[str, float]]:
    """Map of drawn text -> y position (PDF points) for one page."""

    def _positions(data: bytes, page: int = 0) -> Dict[str, float]:
        reader = PdfReader(io.BytesIO(data))
        out: Dict[str, float] = {}

        def visitor(text, cm, tm, font_dict, font_size):
            text = (text or "").strip()
            if text and text not in out:
                out[text] = tm[4] * cm[1] + tm[5] * cm[3] + cm[5]

        reader.pages[page].extract_text(visitor_text=visitor)
        return out

    return _positions
