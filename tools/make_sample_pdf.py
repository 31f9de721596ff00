from __future__ import annotations

import logging
import sys
from datetime import date, timedelta
from pathlib import Path

from invoicedoc.core.settings import load_settings
from invoicedoc.data.models import ContactBlock, Invoice, InvoiceStatus, LineItem, PaymentRecord, TaxEntry
from invoicedoc.data.templates import DEFAULT_TEMPLATES, get_default_template
from invoicedoc.pdf.pdf_draw import build_invoice_pdf
from invoicedoc.pdf.resources import ResourceCache


def sample_invoice(rows: int = 12) -> Invoice:
    items = [
        LineItem(code=f"SKU-{i:03d}", description=f"Consulting block {i}", quantity=i % 3 + 1, unit_price=120.0, amount=(i % 3 + 1) * 120.0, tax_rate=8.5)
        for i in range(1, rows + 1)
    ]
    subtotal = sum(i.amount for i in items)
    tax = round(subtotal * 0.085, 2)
    total = subtotal + tax
    paid = 500.0
    today = date.today()
    return Invoice(
        invoice_number="INV-0001",
        recipient=ContactBlock(name="Acme Corp", address="1 Market St\nSpringfield", email="ap@acme.test", contact="Jane Roe"),
        issue_date=today,
        due_date=today + timedelta(days=30),
        items=items,
        subtotal=subtotal,
        tax_total=tax,
        taxes=[TaxEntry(name="Sales Tax", rate=8.5, amount=tax)],
        total=total,
        amount_paid=paid,
        balance_due=total - paid,
        status=InvoiceStatus.PARTIALLY_PAID,
        payments=[PaymentRecord(paid_on=today, method="Card", reference="ch_123", amount=paid)],
        po_number="PO-778",
    )


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = argv if argv is not None else sys.argv[1:]
    out_dir = Path(args[0]) if args else Path("out")
    rows = int(args[1]) if len(args) > 1 else 12

    settings = load_settings()
    invoice = sample_invoice(rows)
    cache = ResourceCache.from_settings(settings)
    for tpl in DEFAULT_TEMPLATES:
        out = build_invoice_pdf(out_dir / f"sample-{tpl.id}.pdf", tpl, invoice, cache=cache, settings=settings)
        print(f"Wrote {out}")
    default = get_default_template()
    print(f"Default template: {default.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
