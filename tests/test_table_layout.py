from __future__ import annotations

from datetime import date

import pytest
from reportlab.lib.units import mm

from invoicedoc.data.models import PaymentRecord, SectionKind, TemplateSection
from invoicedoc.pdf.styles import resolve_section_style
from invoicedoc.pdf.table_layout import (
    BORDER_DASHES,
    MIN_DESC_W,
    build_line_items_table,
    build_payments_table,
    column_widths,
)

WIDTH = 190 * mm


def _items_table(make_template, make_invoice, cache, rows=3, **style):
    section = TemplateSection(id="line-items", kind=SectionKind.LINE_ITEMS, position=1, style=style)
    resolved = resolve_section_style(section, make_template(), None, cache)
    return build_line_items_table(make_invoice(rows=rows), resolved, WIDTH)


def _grid(table):
    return [cmd for cmd in table._linecmds if cmd[0] in ("GRID", "BOX", "INNERGRID")]


def test_solid_border_draws_plain_grid(make_template, make_invoice, cache) -> None:
    grid = _grid(_items_table(make_template, make_invoice, cache, borderStyle="solid"))
    assert len(grid) == 1
    assert grid[0][6] is None


def test_no_border_emits_no_lines(make_template, make_invoice, cache) -> None:
    table = _items_table(make_template, make_invoice, cache, borderStyle="none")
    assert table._linecmds == []


@pytest.mark.parametrize("border", ["dashed", "dotted"])
def test_dashed_and_dotted_borders(make_template, make_invoice, cache, border) -> None:
    grid = _grid(_items_table(make_template, make_invoice, cache, borderStyle=border))
    assert len(grid) == 1
    assert list(grid[0][6]) == BORDER_DASHES[border]


def test_striping_adds_row_backgrounds(make_template, make_invoice, cache) -> None:
    plain = _items_table(make_template, make_invoice, cache)
    striped = _items_table(make_template, make_invoice, cache, striped="true")

    def ops(table):
        return [cmd[0] for cmd in table._bkgrndcmds]

    assert "ROWBACKGROUNDS" not in ops(plain)
    assert ops(striped).count("ROWBACKGROUNDS") == 1
    # Body rows only; the header keeps its own fill
    cmd = next(c for c in striped._bkgrndcmds if c[0] == "ROWBACKGROUNDS")
    assert cmd[1] == (0, 1)


def test_columns_follow_options(make_template, make_invoice, cache) -> None:
    table = _items_table(make_template, make_invoice, cache, showItemCode="true", showTax="true", showUnitPrice="false")
    header = table._cellvalues[0]
    assert header == ["Code", "Description", "Qty", "Tax", "Amount"]
    assert table._nrows == 4
    assert table.repeatRows == 1


def test_empty_invoice_spans_placeholder_row(make_template, make_invoice, cache) -> None:
    table = _items_table(make_template, make_invoice, cache, rows=0)
    assert table._cellvalues[1][0] == "No items"
    assert table._spanCmds[0][1:] == ((0, 1), (-1, 1))


def test_description_takes_remaining_width() -> None:
    widths = column_widths(("description", "quantity", "unit_price", "amount"), WIDTH)
    assert widths[0] == pytest.approx(WIDTH - 80 * mm)
    assert sum(widths) == pytest.approx(WIDTH)
    # Very narrow pages keep a usable description column
    assert column_widths(("description", "amount"), 50 * mm)[0] == MIN_DESC_W


def test_payments_table(make_template, cache) -> None:
    section = TemplateSection(id="summary", kind=SectionKind.SUMMARY, position=1)
    resolved = resolve_section_style(section, make_template(), None, cache)
    payments = [PaymentRecord(paid_on=date(2025, 8, 20), method="Card", reference="ch_1", amount=12.5)]
    table = build_payments_table(payments, "USD", resolved, WIDTH)

    assert table._cellvalues[0] == ["Date", "Method", "Reference", "Amount"]
    assert table._cellvalues[1] == ["Aug 20, 2025", "Card", "ch_1", "$12.50"]
    assert table.repeatRows == 1
