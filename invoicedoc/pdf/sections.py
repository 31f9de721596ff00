from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Dict, List, Tuple

from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.platypus import Table

from invoicedoc.core.currency import fmt_money, fmt_percent, is_nonzero
from invoicedoc.data.models import ContactBlock, Invoice, InvoiceStatus, SectionKind
from invoicedoc.pdf.document import DocumentHandle
from invoicedoc.pdf.layout import Margins
from invoicedoc.pdf.styles import (
    ContactStyle,
    FooterStyle,
    HeaderStyle,
    InvoiceInfoStyle,
    NotesStyle,
    PaymentQrStyle,
    ResolvedStyle,
    SignatureStyle,
    SummaryStyle,
)
from invoicedoc.pdf.table_layout import build_line_items_table, build_payments_table

logger = logging.getLogger(__name__)

# ===== Layout constants =====
LOGO_GAP = 5 * mm
HEADER_ADVANCE = 15 * mm
HEADER_ADVANCE_LOGO = 25 * mm
SUBTITLE_ADVANCE = 10 * mm

CONTACT_STEP = 5 * mm
INFO_STEP = 6 * mm
INFO_VALUE_OFFSET = 40 * mm

TABLE_GAP = 4 * mm

SUMMARY_WIDTH = 80 * mm
SUMMARY_STEP = 6 * mm
BALANCE_ADVANCE = 10 * mm

NOTES_MIN_BOX = 20 * mm
NOTES_PAD = 5 * mm
NOTES_STEP = 6 * mm

SIGNATURE_GAP = 15 * mm
SIGNATURE_RULE = 70 * mm
DATE_RULE = 50 * mm

THANK_YOU_OFFSET = 7 * mm

STATUS_COLORS = {
    InvoiceStatus.PAID: colors.HexColor("#00A86B"),
    InvoiceStatus.PENDING: colors.HexColor("#FFA500"),
    InvoiceStatus.OVERDUE: colors.HexColor("#FF0000"),
}

Renderer = Callable[[DocumentHandle, Invoice, ResolvedStyle, float, float, float], float]


def _fmt_date(val: date, fmt: str) -> str:
    try:
        return val.strftime(fmt)
    except (AttributeError, ValueError):
        return str(val) if val is not None else ""


def status_label(status: InvoiceStatus) -> str:
    return status.value.replace("_", " ").title()


# ===== Header =====
def render_header(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    """Title (with the logo to its left when one resolves) and optional subtitle."""
    opts: HeaderStyle = style.options  # type: ignore[assignment]
    t = style.template
    size = style.heading_size
    title = opts.title or t.header_title or "INVOICE"

    reader = doc.cache.logo(t.logo_url) if (opts.show_logo and t.logo_url) else None
    if reader is not None:
        lw, lh = opts.logo_width * mm, opts.logo_height * mm
        title_x = left + lw + LOGO_GAP
        block = max(HEADER_ADVANCE_LOGO, lh + LOGO_GAP)
    else:
        lw = lh = 0.0
        title_x = left
        block = HEADER_ADVANCE

    height = block + (SUBTITLE_ADVANCE if t.header_subtitle else 0.0)
    if opts.background:
        doc.rect(left, y, width, height, fill=style.header_background)
    if reader is not None:
        doc.image(reader, left, y, lw, lh)

    doc.text(title_x, y + size, title, style.heading_fonts.bold, size, style.primary)
    y += block

    if t.header_subtitle:
        sub_size = max(6.0, size - 4)
        doc.text(left, y, t.header_subtitle, style.heading_fonts.regular, sub_size, style.text)
        y += SUBTITLE_ADVANCE
    return y


# ===== Issuer / recipient =====
def _contact_lines(block: ContactBlock, opts: ContactStyle) -> List[str]:
    lines: List[str] = []
    if block.name:
        lines.append(block.name)
    for part in (block.address or "").replace("\r\n", "\n").split("\n"):
        if part.strip():
            lines.append(part.strip())
    if opts.show_contact and block.contact:
        lines.append(f"Attn: {block.contact}")
    if opts.show_phone and block.phone:
        lines.append(f"Phone: {block.phone}")
    if opts.show_email and block.email:
        lines.append(f"Email: {block.email}")
    if opts.show_website and block.website:
        lines.append(block.website)
    if opts.show_tax_id and block.tax_id:
        lines.append(f"Tax ID: {block.tax_id}")
    return lines


def _render_contact(doc: DocumentHandle, style: ResolvedStyle, block: ContactBlock, label: str, y: float, width: float, left: float) -> float:
    opts: ContactStyle = style.options  # type: ignore[assignment]
    regular, bold = style.body_fonts
    size = style.body_size

    doc.text(left, y + size, opts.label or label, bold, size, style.primary)
    y += CONTACT_STEP
    for line in _contact_lines(block, opts):
        for wrapped in doc.wrap(line, width, regular, size):
            doc.text(left, y + size, wrapped, regular, size, style.text)
            y += CONTACT_STEP
    return y + CONTACT_STEP


def issuer_block(invoice: Invoice, style: ResolvedStyle) -> ContactBlock:
    """Template branding first, then the invoice's issuer, then configured company info."""
    t = style.template
    s = style.settings
    issuer = invoice.issuer or ContactBlock()
    return ContactBlock(
        name=t.company_name or issuer.name or s.company_field("name"),
        address=t.company_address or issuer.address or s.company_field("address"),
        phone=t.company_phone or issuer.phone or s.company_field("phone"),
        email=t.company_email or issuer.email or s.company_field("email"),
        website=t.company_website or issuer.website or s.company_field("website"),
        tax_id=issuer.tax_id or s.company_field("tax_id"),
        contact=issuer.contact,
    )


def render_issuer_info(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    return _render_contact(doc, style, issuer_block(invoice, style), "From:", y, width, left)


def render_recipient_info(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    return _render_contact(doc, style, invoice.recipient, "Bill To:", y, width, left)


# ===== Invoice info =====
def render_invoice_info(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    opts: InvoiceInfoStyle = style.options  # type: ignore[assignment]
    regular, bold = style.body_fonts
    size = style.body_size
    x = left + width / 2
    value_x = x + INFO_VALUE_OFFSET

    rows: List[Tuple[str, str, colors.Color]] = [
        ("Invoice Number:", invoice.invoice_number, style.text),
        ("Issue Date:", _fmt_date(invoice.issue_date, opts.date_format), style.text),
        ("Due Date:", _fmt_date(invoice.due_date, opts.date_format), style.text),
    ]
    if opts.show_status:
        rows.append(("Status:", status_label(invoice.status), STATUS_COLORS.get(invoice.status, style.text)))
    if opts.show_reference and invoice.reference_number:
        rows.append(("Reference:", invoice.reference_number, style.text))
    if opts.show_po_number and invoice.po_number:
        rows.append(("PO Number:", invoice.po_number, style.text))

    for label, value, color in rows:
        doc.text(x, y + size, label, bold, size, style.text)
        doc.text(value_x, y + size, value, regular, size, color)
        y += INFO_STEP
    return y + INFO_STEP


# ===== Tables =====
def flow_table(doc: DocumentHandle, table: Table, width: float, left: float, what: str) -> None:
    """
    Draw ``table`` from the cursor down, splitting it across pages as needed.

    Each continuation page starts with the repeated header row; the cursor ends
    below the table on the page where it finishes.
    """
    cursor = doc.cursor
    remaining = table

    while True:
        avail = cursor.available_height()
        _, h = remaining.wrap(width, avail)
        if h <= avail:
            doc.flowable(remaining, left, cursor.y, width, avail)
            cursor.advance(h)
            return

        parts = remaining.split(width, avail)
        if len(parts) >= 2:
            first, remaining = parts[0], parts[1]
            doc.flowable(first, left, cursor.y, width, avail)
            cursor.new_page()
            continue

        if cursor.y > cursor.margins.top:
            # Not even the header and one row fit below the cursor
            cursor.new_page()
            continue

        # A single row taller than a full page; draw it and let it overflow
        logger.warning("%s row does not fit on a page; it will be clipped", what)
        doc.flowable(remaining, left, cursor.y, width, avail)
        cursor.advance(h)
        return


# ===== Line items =====
def render_line_items(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    """Items table split across pages; the returned y is on the page where it ends."""
    doc.cursor.y = y
    flow_table(doc, build_line_items_table(invoice, style, width), width, left, "Line item")
    return doc.cursor.y + TABLE_GAP


# ===== Summary =====
def render_summary(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    opts: SummaryStyle = style.options  # type: ignore[assignment]
    t = style.template
    regular, bold = style.body_fonts
    size = style.body_size
    cur = invoice.currency
    label_x = left + width - SUMMARY_WIDTH
    value_x = left + width

    rows: List[Tuple[str, str, bool, colors.Color]] = [("Subtotal:", fmt_money(invoice.subtotal, cur), False, style.text)]
    if opts.detailed_taxes and invoice.taxes:
        for tax in invoice.taxes:
            rows.append((f"{tax.name} ({fmt_percent(tax.rate)}):", fmt_money(tax.amount, cur), False, style.text))
    else:
        rows.append(("Tax:", fmt_money(invoice.tax_total, cur), False, style.text))
    if is_nonzero(invoice.discount_total):
        rows.append(("Discount:", fmt_money(-abs(invoice.discount_total), cur), False, style.text))
    if is_nonzero(invoice.shipping):
        rows.append(("Shipping:", fmt_money(invoice.shipping, cur), False, style.text))
    rows.append(("Total:", fmt_money(invoice.total, cur), True, style.text))
    if is_nonzero(invoice.amount_paid):
        rows.append(("Amount Paid:", fmt_money(invoice.amount_paid, cur), False, style.text))

    for label, value, strong, color in rows:
        if label == "Total:":
            doc.line(label_x, y, value_x, y, style.secondary)
        font = bold if strong else regular
        doc.text(label_x, y + size, label, font, size, color)
        doc.text(value_x, y + size, value, font, size, color, align="right")
        y += SUMMARY_STEP

    doc.text(label_x, y + size, "Balance Due:", bold, size, style.accent)
    doc.text(value_x, y + size, fmt_money(invoice.balance_due, cur), bold, size, style.accent, align="right")
    y += BALANCE_ADVANCE

    if opts.show_payment_history and invoice.payments:
        doc.text(left, y + size, "Payment History", bold, size, style.primary)
        y += SUMMARY_STEP
        table = build_payments_table(invoice.payments, cur, style, width)
        if doc.is_measuring:
            y += doc.flowable(table, left, y, width, doc.cursor.page_height) + TABLE_GAP
        else:
            # A long history continues on the next page
            doc.cursor.y = y
            flow_table(doc, table, width, left, "Payment history")
            y = doc.cursor.y + TABLE_GAP

    if opts.show_payment_methods:
        methods = t.payment_methods or style.settings.payment_methods
        if methods:
            doc.text(left, y + size, opts.payment_methods_label, bold, size, style.primary)
            y += CONTACT_STEP
            for line in doc.wrap(methods, width / 2, regular, size):
                doc.text(left, y + size, line, regular, size, style.text)
                y += CONTACT_STEP
            y += CONTACT_STEP
    return y


# ===== Notes and terms =====
def render_notes(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    opts: NotesStyle = style.options  # type: ignore[assignment]
    t = style.template
    regular, bold = style.body_fonts
    size = style.body_size

    notes = (invoice.notes or t.default_notes or "").strip()
    if notes:
        lines = doc.wrap(notes, width - 2 * NOTES_PAD, regular, size)
        box_h = max(NOTES_MIN_BOX, 2 * NOTES_PAD + size + len(lines) * NOTES_STEP)
        if opts.box:
            doc.rect(left, y, width, box_h, fill=style.primary, alpha=0.1)
        base = y + NOTES_PAD + size
        doc.text(left + NOTES_PAD, base, opts.label, bold, size, style.primary)
        for i, line in enumerate(lines, start=1):
            doc.text(left + NOTES_PAD, base + i * NOTES_STEP, line, regular, size, style.text)
        y += box_h + NOTES_PAD

    terms = (invoice.terms or t.default_payment_terms or "").strip()
    if opts.show_terms and terms:
        doc.text(left, y + size, opts.terms_label, bold, size, style.primary)
        y += NOTES_STEP
        for line in doc.wrap(terms, width, regular, size):
            doc.text(left, y + size, line, regular, size, style.text)
            y += CONTACT_STEP
        y += CONTACT_STEP
    return y


# ===== Signature =====
def render_signature(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    opts: SignatureStyle = style.options  # type: ignore[assignment]
    regular, _ = style.body_fonts
    size = style.body_size
    label = opts.label or style.template.signature_label or "Authorized Signature"

    y += SIGNATURE_GAP
    doc.line(left, y, left + SIGNATURE_RULE, y, style.text)
    doc.text(left, y + 5 * mm, label, regular, size, style.text)
    if opts.show_date:
        right = left + width
        doc.line(right - DATE_RULE, y, right, y, style.text)
        doc.text(right, y + 5 * mm, opts.date_label, regular, size, style.text, align="right")
    return y + 10 * mm


# ===== Payment QR =====
def render_payment_qr(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, y: float, width: float, left: float) -> float:
    """Bordered placeholder square with a cross; title above, instructions below."""
    opts: PaymentQrStyle = style.options  # type: ignore[assignment]
    regular, bold = style.body_fonts
    size = style.body_size
    box = opts.size * mm

    doc.text(left, y + size, opts.title, bold, size, style.primary)
    y += INFO_STEP
    doc.rect(left, y, box, box, stroke=style.text, width=1)
    doc.line(left, y, left + box, y + box, style.secondary)
    doc.line(left, y + box, left + box, y, style.secondary)

    small = max(6.0, size - 2)
    doc.text(left, y + box + 5 * mm, opts.instructions, regular, small, style.text)
    return y + box + 10 * mm


# ===== Footer =====
FOOTER_PAD = 2 * mm


def _footer_size(style: ResolvedStyle) -> float:
    return max(6.0, style.body_size - 2)


def footer_band_height(style: ResolvedStyle) -> float:
    """Height above the bottom margin that the footer occupies (text ascent plus padding)."""
    opts: FooterStyle = style.options  # type: ignore[assignment]
    thank_you = style.template.thank_you_message if opts.show_thank_you else ""
    if not (thank_you or style.template.footer_text or opts.background):
        return 0.0
    return (THANK_YOU_OFFSET if thank_you else 0.0) + _footer_size(style) + FOOTER_PAD


def render_footer(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle, page_height: float, width: float, margins: Margins) -> None:
    """Footer text and thank-you line anchored at the bottom margin; the cursor does not move."""
    opts: FooterStyle = style.options  # type: ignore[assignment]
    t = style.template
    regular, _ = style.body_fonts
    size = _footer_size(style)
    footer_y = page_height - margins.bottom
    center = margins.left + width / 2

    thank_you = t.thank_you_message if opts.show_thank_you else ""
    if opts.background:
        band_top = footer_y - footer_band_height(style)
        doc.rect(margins.left, band_top, width, footer_y + 3 * mm - band_top, fill=style.footer_background)
    if thank_you:
        doc.text(center, footer_y - THANK_YOU_OFFSET, thank_you, regular, size, style.text, align="center")
    if t.footer_text:
        doc.text(center, footer_y, t.footer_text, regular, size, style.text, align="center")


RENDERERS: Dict[SectionKind, Renderer] = {
    SectionKind.HEADER: render_header,
    SectionKind.ISSUER_INFO: render_issuer_info,
    SectionKind.RECIPIENT_INFO: render_recipient_info,
    SectionKind.INVOICE_INFO: render_invoice_info,
    SectionKind.LINE_ITEMS: render_line_items,
    SectionKind.SUMMARY: render_summary,
    SectionKind.NOTES: render_notes,
    SectionKind.SIGNATURE: render_signature,
    SectionKind.PAYMENT_QR: render_payment_qr,
}
