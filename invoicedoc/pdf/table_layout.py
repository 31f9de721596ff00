# invoicedoc/pdf/table_layout.py
from __future__ import annotations

from typing import Dict, List, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, Table, TableStyle

from invoicedoc.core.currency import fmt_money, fmt_percent, fmt_qty
from invoicedoc.data.models import Invoice, PaymentRecord
from invoicedoc.pdf.styles import LineItemsStyle, ResolvedStyle

# Fixed column widths; Description absorbs the remainder
COLUMN_WIDTHS: Dict[str, float] = {
    "code": 20 * mm,
    "quantity": 20 * mm,
    "unit_price": 30 * mm,
    "discount": 20 * mm,
    "tax": 20 * mm,
    "amount": 30 * mm,
}
MIN_DESC_W = 40 * mm

COLUMN_LABELS: Dict[str, str] = {
    "code": "Code",
    "description": "Description",
    "quantity": "Qty",
    "unit_price": "Unit Price",
    "discount": "Discount",
    "tax": "Tax",
    "amount": "Amount",
}
NUMERIC_COLUMNS = ("quantity", "unit_price", "discount", "tax", "amount")

W_GRID = 0.5
# Dash patterns (on, off) for the grid
BORDER_DASHES = {"dashed": [3, 2], "dotted": [1, 2]}

PADDING_V = (3, 3)   # top, bottom
PADDING_H = (4, 4)   # left, right


def column_widths(columns: Sequence[str], content_width: float) -> List[float]:
    fixed = sum(COLUMN_WIDTHS.get(c, 0.0) for c in columns)
    desc = max(MIN_DESC_W, content_width - fixed)
    return [COLUMN_WIDTHS.get(c, desc) for c in columns]


def _cell(column: str, item, currency: str, opts: LineItemsStyle, pstyle: ParagraphStyle):
    if column == "code":
        return item.code or ""
    if column == "description":
        return Paragraph(escape(item.description or ""), pstyle)
    if column == "quantity":
        return fmt_qty(item.quantity)
    if column == "unit_price":
        return fmt_money(item.unit_price, currency)
    if column == "discount":
        return fmt_percent(item.discount) if item.discount is not None else "-"
    if column == "tax":
        return fmt_percent(item.tax_rate if item.tax_rate is not None else opts.default_tax_rate)
    return fmt_money(item.amount, currency)


def _grid_commands(ts: TableStyle, border_style: str, color: colors.Color) -> None:
    if border_style == "none":
        return
    dash = BORDER_DASHES.get(border_style)
    if dash:
        ts.add("GRID", (0, 0), (-1, -1), W_GRID, color, None, dash)
    else:
        ts.add("GRID", (0, 0), (-1, -1), W_GRID, color)


def _base_style(style: ResolvedStyle, numeric: Sequence[int]) -> TableStyle:
    regular, bold = style.body_fonts
    ts = TableStyle()

    # Header
    ts.add("BACKGROUND", (0, 0), (-1, 0), style.primary)
    ts.add("TEXTCOLOR", (0, 0), (-1, 0), colors.white)
    ts.add("FONTNAME", (0, 0), (-1, 0), bold)

    # Body
    ts.add("FONTNAME", (0, 1), (-1, -1), regular)
    ts.add("TEXTCOLOR", (0, 1), (-1, -1), style.text)
    ts.add("FONTSIZE", (0, 0), (-1, -1), style.body_size)
    ts.add("LEADING", (0, 0), (-1, -1), style.body_size * 1.2)
    for i in numeric:
        ts.add("ALIGN", (i, 0), (i, -1), "RIGHT")

    ts.add("LEFTPADDING", (0, 0), (-1, -1), PADDING_H[0])
    ts.add("RIGHTPADDING", (0, 0), (-1, -1), PADDING_H[1])
    ts.add("TOPPADDING", (0, 0), (-1, -1), PADDING_V[0])
    ts.add("BOTTOMPADDING", (0, 0), (-1, -1), PADDING_V[1])
    ts.add("VALIGN", (0, 0), (-1, -1), "MIDDLE")
    return ts


def build_line_items_table(invoice: Invoice, style: ResolvedStyle, content_width: float) -> Table:
    """
    Line-items table with a repeating header row.

    Visible columns come from the section options; striping and the border style
    (solid, dashed, dotted, none) are applied through the TableStyle.
    """
    opts: LineItemsStyle = style.options  # type: ignore[assignment]
    columns = opts.columns()
    pstyle = ParagraphStyle(
        "item-description",
        fontName=style.body_fonts.regular,
        fontSize=style.body_size,
        leading=style.body_size * 1.2,
        textColor=style.text,
    )

    data: List[list] = [[COLUMN_LABELS[c] for c in columns]]
    for item in invoice.items:
        data.append([_cell(c, item, invoice.currency, opts, pstyle) for c in columns])
    if not invoice.items:
        data.append(["No items"] + [""] * (len(columns) - 1))

    t = Table(data, colWidths=column_widths(columns, content_width), repeatRows=1)

    numeric = [i for i, c in enumerate(columns) if c in NUMERIC_COLUMNS]
    ts = _base_style(style, numeric)
    if not invoice.items:
        ts.add("SPAN", (0, 1), (-1, 1))
    if opts.striped:
        ts.add("ROWBACKGROUNDS", (0, 1), (-1, -1), [style.background, style.secondary])
    _grid_commands(ts, opts.border_style, style.primary)

    t.setStyle(ts)
    return t


def build_payments_table(payments: Sequence[PaymentRecord], currency: str, style: ResolvedStyle, content_width: float) -> Table:
    """Date / Method / Reference / Amount rows for recorded payments."""
    data: List[list] = [["Date", "Method", "Reference", "Amount"]]
    for p in payments:
        data.append([
            p.paid_on.strftime("%b %d, %Y"),
            p.method or "",
            p.reference or "",
            fmt_money(p.amount, currency),
        ])
    fixed = 30 * mm + 30 * mm + 30 * mm
    widths = [30 * mm, 30 * mm, max(30 * mm, content_width - fixed), 30 * mm]

    t = Table(data, colWidths=widths, repeatRows=1)
    ts = _base_style(style, [3])
    ts.add("FONTSIZE", (0, 0), (-1, -1), max(6.0, style.body_size - 2))
    ts.add("LEADING", (0, 0), (-1, -1), max(6.0, style.body_size - 2) * 1.2)
    ts.add("LINEBELOW", (0, 0), (-1, -1), W_GRID, style.secondary)
    t.setStyle(ts)
    return t
