from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class SectionKind(str, Enum):
	HEADER = "header"
	ISSUER_INFO = "issuer-info"
	RECIPIENT_INFO = "recipient-info"
	INVOICE_INFO = "invoice-info"
	LINE_ITEMS = "line-items"
	SUMMARY = "summary"
	NOTES = "notes"
	SIGNATURE = "signature"
	FOOTER = "footer"
	PAYMENT_QR = "payment-qr"


# Section type names used by older template exports
SECTION_KIND_ALIASES: Dict[str, SectionKind] = {
	"companyInfo": SectionKind.ISSUER_INFO,
	"clientInfo": SectionKind.RECIPIENT_INFO,
	"invoiceInfo": SectionKind.INVOICE_INFO,
	"items": SectionKind.LINE_ITEMS,
	"qrCode": SectionKind.PAYMENT_QR,
}


class InvoiceStatus(str, Enum):
	DRAFT = "draft"
	PENDING = "pending"
	PAID = "paid"
	OVERDUE = "overdue"
	CANCELLED = "cancelled"
	PARTIALLY_PAID = "partially_paid"


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------
class TemplateSection(SQLModel):
	id: str
	kind: SectionKind
	position: int = 0
	is_visible: bool = True
	# Per-section knobs (borderStyle, striped, marginTop, ...); values are strings
	style: Dict[str, str] = Field(default_factory=dict)

	@field_validator("kind", mode="before")
	@classmethod
	def _accept_legacy_kind(cls, value):
		if isinstance(value, str) and value in SECTION_KIND_ALIASES:
			return SECTION_KIND_ALIASES[value]
		return value


class TemplateColors(SQLModel):
	primary: str = "#3b82f6"
	secondary: str = "#f3f4f6"
	accent: str = "#f59e0b"
	text: str = "#1f2937"
	background: str = "#ffffff"
	header_background: str = "#ffffff"
	footer_background: str = "#f8fafc"


class TemplateFonts(SQLModel):
	heading_font: str = "Inter, sans-serif"
	body_font: str = "Inter, sans-serif"
	heading_size: str = "18px"
	body_size: str = "12px"


class PageMargins(SQLModel):
	# Millimetres
	top: float = 15.0
	right: float = 15.0
	bottom: float = 15.0
	left: float = 15.0


class InvoiceTemplate(SQLModel):
	id: str = ""
	name: str = "New Template"
	description: str = ""
	created_at: datetime = Field(default_factory=utcnow)
	updated_at: datetime = Field(default_factory=utcnow)
	is_default: bool = False

	sections: List[TemplateSection] = Field(default_factory=list)
	colors: TemplateColors
	fonts: TemplateFonts
	page_size: str = "A4"
	orientation: str = "portrait"
	margins: PageMargins = Field(default_factory=PageMargins)

	logo_url: str = ""
	company_name: str = ""
	company_address: str = ""
	company_phone: str = ""
	company_email: str = ""
	company_website: str = ""

	header_title: str = "INVOICE"
	header_subtitle: str = ""
	layout: str = "standard"

	default_payment_terms: str = ""
	default_notes: str = ""
	footer_text: str = ""
	signature_label: str = "Authorized Signature"
	# Freeform JSON style-override document; parsed leniently at render time
	custom_css: str = "{}"

	show_page_numbers: Optional[bool] = None
	payment_methods: str = ""
	thank_you_message: str = ""


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------
class ContactBlock(SQLModel):
	name: str = ""
	address: str = ""
	email: str = ""
	phone: str = ""
	tax_id: str = ""
	contact: str = ""
	website: str = ""


class LineItem(SQLModel):
	code: str = ""
	description: str = ""
	quantity: float = 1.0
	unit_price: float = 0.0
	amount: float = 0.0
	# Percentages
	discount: Optional[float] = None
	tax_rate: Optional[float] = None


class TaxEntry(SQLModel):
	name: str
	rate: float = 0.0
	amount: float = 0.0


class PaymentRecord(SQLModel):
	paid_on: date
	method: str = ""
	reference: str = ""
	amount: float = 0.0


class Invoice(SQLModel):
	invoice_number: str
	issuer: Optional[ContactBlock] = None
	recipient: ContactBlock = Field(default_factory=ContactBlock)
	issue_date: date
	due_date: date
	items: List[LineItem] = Field(default_factory=list)

	subtotal: float = 0.0
	tax_total: float = 0.0
	taxes: List[TaxEntry] = Field(default_factory=list)
	discount_total: float = 0.0
	shipping: float = 0.0
	total: float = 0.0
	amount_paid: float = 0.0
	balance_due: float = 0.0
	currency: str = "USD"

	notes: str = ""
	terms: str = ""
	status: InvoiceStatus = InvoiceStatus.DRAFT
	payments: List[PaymentRecord] = Field(default_factory=list)
	reference_number: str = ""
	po_number: str = ""
