from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError

from invoicedoc.core.errors import TemplateImportError
from invoicedoc.data.models import (
	InvoiceTemplate,
	PageMargins,
	SectionKind,
	TemplateColors,
	TemplateFonts,
	TemplateSection,
	utcnow,
)

# Keys an exported template must carry to be importable
REQUIRED_IMPORT_KEYS = ("name", "sections", "colors", "fonts")


def default_sections() -> List[TemplateSection]:
	order = [
		(SectionKind.HEADER, True),
		(SectionKind.ISSUER_INFO, True),
		(SectionKind.RECIPIENT_INFO, True),
		(SectionKind.INVOICE_INFO, True),
		(SectionKind.LINE_ITEMS, True),
		(SectionKind.SUMMARY, True),
		(SectionKind.NOTES, True),
		(SectionKind.SIGNATURE, True),
		(SectionKind.PAYMENT_QR, False),
		(SectionKind.FOOTER, True),
	]
	return [
		TemplateSection(id=kind.value, kind=kind, position=i, is_visible=visible)
		for i, (kind, visible) in enumerate(order, start=1)
	]


def create_default_template() -> InvoiceTemplate:
	"""A customizable template with sensible defaults (no id yet)."""
	return InvoiceTemplate(
		name="New Template",
		description="A customizable invoice template",
		sections=default_sections(),
		colors=TemplateColors(),
		fonts=TemplateFonts(),
		margins=PageMargins(),
		company_name="Your Company Name",
		company_address="123 Business Street, City, Country",
		company_phone="+1 (555) 123-4567",
		company_email="billing@yourcompany.com",
		company_website="www.yourcompany.com",
		header_title="INVOICE",
		header_subtitle="For services rendered",
		default_payment_terms="Payment due within 30 days of receipt. Late payments subject to a 2% monthly fee.",
		default_notes="Thank you for your business!",
		footer_text="© Your Company Name. All rights reserved.",
		signature_label="Authorized Signature",
	)


def _preset(template_id: str, name: str, description: str, **changes: Any) -> InvoiceTemplate:
	base = create_default_template()
	return base.model_copy(update={"id": template_id, "name": name, "description": description, **changes})


DEFAULT_TEMPLATES: List[InvoiceTemplate] = [
	_preset(
		"classic",
		"Classic",
		"A professional, clean design with minimal styling",
		is_default=True,
		colors=TemplateColors(
			primary="#1a56db", secondary="#e2e8f0", accent="#f59e0b", text="#1f2937",
			background="#ffffff", header_background="#f8fafc", footer_background="#f8fafc",
		),
		fonts=TemplateFonts(heading_font="Arial, sans-serif", body_font="Arial, sans-serif", heading_size="18px", body_size="12px"),
		layout="standard",
	),
	_preset(
		"modern",
		"Modern",
		"A sleek, modern design with bold colors",
		colors=TemplateColors(
			primary="#6366f1", secondary="#c7d2fe", accent="#ef4444", text="#111827",
			background="#ffffff", header_background="#6366f1", footer_background="#c7d2fe",
		),
		fonts=TemplateFonts(heading_font="Helvetica, sans-serif", body_font="Helvetica, sans-serif", heading_size="20px", body_size="12px"),
		layout="modern",
	),
	_preset(
		"minimal",
		"Minimal",
		"A minimalist design focusing on essential information",
		colors=TemplateColors(
			primary="#000000", secondary="#f3f4f6", accent="#000000", text="#333333",
			background="#ffffff", header_background="#ffffff", footer_background="#f3f4f6",
		),
		fonts=TemplateFonts(heading_font="Roboto, sans-serif", body_font="Roboto, sans-serif", heading_size="18px", body_size="11px"),
		sections=[
			s.model_copy(update={"is_visible": s.kind not in (SectionKind.NOTES, SectionKind.SIGNATURE, SectionKind.PAYMENT_QR)})
			for s in default_sections()
		],
		layout="compact",
	),
]


def get_default_template(templates: List[InvoiceTemplate] | None = None) -> InvoiceTemplate:
	"""The template flagged as default, else the first one."""
	pool = templates if templates is not None else DEFAULT_TEMPLATES
	for t in pool:
		if t.is_default:
			return t
	return pool[0]


def ordered_sections(template: InvoiceTemplate, visible_only: bool = True) -> List[TemplateSection]:
	"""Sections sorted by position; ties keep their input order (sorted() is stable)."""
	sections = [s for s in template.sections if s.is_visible or not visible_only]
	return sorted(sections, key=lambda s: s.position)


def update_section_at(template: InvoiceTemplate, index: int, patch: Mapping[str, Any]) -> InvoiceTemplate:
	"""
	Return a copy of ``template`` with the section at ``index`` patched.

	Keys in ``patch`` replace section fields, except ``style`` whose entries are
	merged over the existing style map. The input template is left untouched.
	"""
	sections = list(template.sections)
	if not 0 <= index < len(sections):
		raise IndexError(f"Section index out of range: {index}")

	unknown = set(patch) - set(TemplateSection.model_fields)
	if unknown:
		raise ValueError(f"Unknown section fields: {', '.join(sorted(unknown))}")

	current = sections[index]
	data: Dict[str, Any] = current.model_dump()
	for key, value in patch.items():
		if key == "style":
			data["style"] = {**current.style, **dict(value or {})}
		else:
			data[key] = value
	sections[index] = TemplateSection.model_validate(data)
	return template.model_copy(update={"sections": sections, "updated_at": utcnow()})


def export_template(template: InvoiceTemplate) -> str:
	"""Serialize the full template record to JSON text."""
	return template.model_dump_json(indent=2)


def import_template(payload: Union[str, bytes, Mapping[str, Any]], as_new: bool = False) -> InvoiceTemplate:
	"""
	Rebuild a template from ``export_template`` output.

	- Rejects payloads missing name, sections, colors or fonts.
	- Always refreshes updated_at.
	- With as_new=True a fresh id and created_at are assigned instead of reusing them.
	"""
	if isinstance(payload, (str, bytes)):
		try:
			data = json.loads(payload)
		except json.JSONDecodeError as e:
			raise TemplateImportError(f"Template payload is not valid JSON: {e}") from e
	else:
		data = dict(payload)

	if not isinstance(data, dict):
		raise TemplateImportError("Template payload must be a JSON object")

	missing = [k for k in REQUIRED_IMPORT_KEYS if data.get(k) is None]
	if missing:
		raise TemplateImportError(f"Template payload is missing required fields: {', '.join(missing)}")

	now = utcnow()
	data = {**data, "updated_at": now}
	if as_new:
		data["id"] = f"template_{int(time.time() * 1000)}"
		data["created_at"] = now

	try:
		return InvoiceTemplate.model_validate(data)
	except ValidationError as e:
		raise TemplateImportError(f"Template payload is invalid: {e}") from e
