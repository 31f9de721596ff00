from __future__ import annotations

import pytest
from reportlab.lib.units import mm

from invoicedoc.data.models import SectionKind
from invoicedoc.pdf.layout import LayoutCursor, Margins
from invoicedoc.pdf.pdf_draw import render_invoice_pdf


def _cursor(pages: list[int]) -> LayoutCursor:
    margins = Margins(top=10 * mm, right=10 * mm, bottom=10 * mm, left=10 * mm)
    return LayoutCursor(200 * mm, 100 * mm, margins, on_new_page=lambda: pages.append(1))


def test_cursor_available_height_and_advance() -> None:
    cur = _cursor([])
    assert cur.y == pytest.approx(10 * mm)
    assert cur.available_height() == pytest.approx(80 * mm)
    cur.advance(30 * mm)
    assert cur.available_height() == pytest.approx(50 * mm)
    assert cur.content_width == pytest.approx(180 * mm)
    # PDF y is measured from the bottom edge
    assert cur.to_pdf_y() == pytest.approx(60 * mm)


def test_advance_never_breaks_pages() -> None:
    pages: list[int] = []
    cur = _cursor(pages)
    cur.advance(500 * mm)
    assert pages == []
    assert cur.page_index == 0


def test_ensure_space_breaks_when_needed() -> None:
    pages: list[int] = []
    cur = _cursor(pages)
    cur.advance(70 * mm)

    assert cur.ensure_space(5 * mm) is False
    assert cur.ensure_space(20 * mm) is True
    assert pages == [1]
    assert cur.page_index == 1 and cur.page_count == 2
    assert cur.y == pytest.approx(10 * mm)


def test_last_section_never_breaks() -> None:
    pages: list[int] = []
    cur = _cursor(pages)
    cur.advance(75 * mm)
    assert cur.ensure_space(40 * mm, is_last=True) is False
    assert pages == []


def _scenario_template(make_template):
    tpl = make_template(
        sections=[
            (SectionKind.HEADER, 1),
            (SectionKind.ISSUER_INFO, 2),
            (SectionKind.RECIPIENT_INFO, 3),
            (SectionKind.INVOICE_INFO, 4),
            (SectionKind.LINE_ITEMS, 5),
            (SectionKind.SUMMARY, 6),
            (SectionKind.NOTES, 7),
        ],
        hidden=[SectionKind.ISSUER_INFO, SectionKind.RECIPIENT_INFO, SectionKind.INVOICE_INFO, SectionKind.NOTES],
    )
    assert tpl.page_size == "A4" and tpl.orientation == "portrait"
    return tpl


def test_sixty_rows_give_exactly_two_pages(make_template, make_invoice, cache, page_texts) -> None:
    texts = page_texts(render_invoice_pdf(_scenario_template(make_template), make_invoice(rows=60), cache=cache))
    assert len(texts) == 2

    first, second = texts
    assert first.lstrip().startswith("INVOICE")
    assert "Balance Due:" not in first

    # Continuation page opens with the repeated column header row
    assert second.lstrip().startswith("Description")
    assert "Item 60" in second
    assert second.index("Item 60") < second.index("Balance Due:")


def test_header_row_repeats_on_every_page(make_template, make_invoice, cache, page_texts) -> None:
    tpl = make_template(sections=[(SectionKind.LINE_ITEMS, 1)])
    texts = page_texts(render_invoice_pdf(tpl, make_invoice(rows=150), cache=cache))
    assert len(texts) >= 3
    for text in texts:
        assert text.lstrip().startswith("Description")
    joined = "\n".join(texts)
    assert "Item 75" in joined and "Item 150" in joined


def test_block_section_moves_to_next_page(make_template, make_invoice, cache, page_texts) -> None:
    # A tall notes box does not fit below the items; the signature after it keeps
    # notes from being the last section
    tpl = make_template(
        sections=[(SectionKind.LINE_ITEMS, 1), (SectionKind.NOTES, 2), (SectionKind.SIGNATURE, 3)],
    )
    notes = "\n".join(["Moved note"] + [f"note line {i}" for i in range(14)])
    inv = make_invoice(rows=30, notes=notes)
    texts = page_texts(render_invoice_pdf(tpl, inv, cache=cache))
    assert len(texts) == 2
    assert "Item 30" in texts[0]
    assert "Moved note" not in texts[0]
    assert "Moved note" in texts[1]
