from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

from reportlab.lib import colors
from reportlab.lib.units import cm, inch, mm

from invoicedoc.core.settings import EngineSettings
from invoicedoc.data.models import InvoiceTemplate, SectionKind, TemplateSection
from invoicedoc.pdf.resources import FontPair, ResourceCache, shared_cache

logger = logging.getLogger(__name__)

# Known length units; "px" is treated as a point
UNIT_SCALE = {"px": 1.0, "pt": 1.0, "mm": mm, "cm": cm, "in": inch}

_MEASURE_RE = re.compile(r"^(-?\d+(?:\.\d+)?|-?\.\d+)\s*([a-z%]*)$")
_HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Keys handled by the resolver itself rather than by a section sub-schema
COMMON_KEYS = frozenset({
    "marginTop", "marginBottom", "margin-before", "margin-after",
    "fontFamily", "fontSize", "color",
})


# ===== Primitive parsers =====
def parse_measure(raw: Any, unit: str, default: float) -> float:
    """
    Parse a numeric value carrying an optional unit suffix.

    "10mm" with unit="mm" -> 10.0. A different known unit is taken literally with a
    warning ("10px" with unit="mm" -> 10.0). Anything unparseable returns ``default``.
    """
    if raw is None:
        return default
    if isinstance(raw, bool):
        logger.warning("Ignoring boolean where a %s value was expected", unit)
        return default
    if isinstance(raw, (int, float)):
        return float(raw)
    text = str(raw).strip().lower()
    if not text:
        return default
    m = _MEASURE_RE.match(text)
    if not m:
        logger.warning("Could not parse %r as a %s value, using %s", raw, unit, default)
        return default
    value, suffix = float(m.group(1)), m.group(2)
    if suffix and suffix != unit:
        if suffix not in UNIT_SCALE:
            logger.warning("Unknown unit in %r, using %s%s", raw, default, unit)
            return default
        logger.warning("Unit mismatch in %r (expected %s), using the number as-is", raw, unit)
    return value


def to_points(value: float, unit: str) -> float:
    return value * UNIT_SCALE.get(unit, 1.0)


def parse_color(value: str) -> colors.Color:
    """'#rgb' or '#rrggbb' to a ReportLab color; anything else raises ValueError."""
    text = (value or "").strip()
    m = _HEX_RE.match(text)
    if not m:
        raise ValueError(f"Malformed color: {value!r}")
    digits = m.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return colors.HexColor("#" + digits)


def rgb(color: colors.Color) -> Tuple[float, float, float]:
    return (color.red, color.green, color.blue)


def parse_bool(raw: Any) -> bool:
    return str(raw).strip().lower() in ("true", "1", "yes", "on")


def _measure(default: float, unit: str = "mm") -> Callable[[Any], float]:
    return lambda raw: parse_measure(raw, unit, default)


def _opt(default: Any, *keys: str, conv: Callable[[Any], Any] = str) -> Any:
    return field(default=default, metadata={"keys": keys, "conv": conv})


# ===== Footer placement =====
class FooterPlacement(str, Enum):
    ONCE = "once"
    EVERY_PAGE = "every-page"


def parse_placement(raw: Any) -> Optional[FooterPlacement]:
    try:
        return FooterPlacement(str(raw).strip().lower())
    except ValueError:
        logger.warning("Unknown footer placement %r, using the configured default", raw)
        return None


# ===== Per-kind sub-schemas =====
@dataclass
class SectionOptions:
    """Typed view over a section's string style map."""

    @classmethod
    def parse(cls, style: Mapping[str, str]) -> Tuple["SectionOptions", Dict[str, str]]:
        by_key: Dict[str, Any] = {}
        for f in fields(cls):
            for key in f.metadata.get("keys", ()):
                by_key[key] = f
        values: Dict[str, Any] = {}
        extra: Dict[str, str] = {}
        for key, raw in style.items():
            f = by_key.get(key)
            if f is None:
                extra[key] = raw
                continue
            values[f.name] = f.metadata["conv"](raw)
        return cls(**values), extra


@dataclass
class HeaderStyle(SectionOptions):
    title: Optional[str] = _opt(None, "title")
    show_logo: bool = _opt(True, "showLogo", conv=parse_bool)
    logo_width: float = _opt(40.0, "logoWidth", conv=_measure(40.0))
    logo_height: float = _opt(20.0, "logoHeight", conv=_measure(20.0))
    background: bool = _opt(False, "backgroundColor", conv=parse_bool)


@dataclass
class ContactStyle(SectionOptions):
    label: Optional[str] = _opt(None, "label")
    show_contact: bool = _opt(True, "showContact", conv=parse_bool)
    show_phone: bool = _opt(True, "showPhone", conv=parse_bool)
    show_email: bool = _opt(True, "showEmail", conv=parse_bool)
    show_website: bool = _opt(True, "showWebsite", conv=parse_bool)
    show_tax_id: bool = _opt(True, "showTaxId", conv=parse_bool)


@dataclass
class InvoiceInfoStyle(SectionOptions):
    date_format: str = _opt("%B %d, %Y", "dateFormat")
    show_status: bool = _opt(True, "showStatus", conv=parse_bool)
    show_reference: bool = _opt(True, "showReference", conv=parse_bool)
    show_po_number: bool = _opt(True, "showPoNumber", conv=parse_bool)


@dataclass
class LineItemsStyle(SectionOptions):
    border_style: str = _opt("solid", "borderStyle", conv=lambda raw: str(raw).strip().lower())
    striped: bool = _opt(False, "striped", conv=parse_bool)
    show_code: bool = _opt(False, "showItemCode", conv=parse_bool)
    show_quantity: bool = _opt(True, "showQuantity", conv=parse_bool)
    show_unit_price: bool = _opt(True, "showUnitPrice", conv=parse_bool)
    show_discount: bool = _opt(False, "showDiscount", conv=parse_bool)
    show_tax: bool = _opt(False, "showTax", conv=parse_bool)
    default_tax_rate: float = _opt(0.0, "defaultTaxRate", conv=_measure(0.0, "%"))

    def columns(self) -> Tuple[str, ...]:
        cols = []
        if self.show_code:
            cols.append("code")
        cols.append("description")
        if self.show_quantity:
            cols.append("quantity")
        if self.show_unit_price:
            cols.append("unit_price")
        if self.show_discount:
            cols.append("discount")
        if self.show_tax:
            cols.append("tax")
        cols.append("amount")
        return tuple(cols)


@dataclass
class SummaryStyle(SectionOptions):
    detailed_taxes: bool = _opt(False, "detailedTaxes", conv=parse_bool)
    show_payment_history: bool = _opt(False, "showPaymentHistory", conv=parse_bool)
    show_payment_methods: bool = _opt(False, "showPaymentMethods", conv=parse_bool)
    payment_methods_label: str = _opt("Payment Methods", "paymentMethodsLabel")


@dataclass
class NotesStyle(SectionOptions):
    label: str = _opt("Notes", "label")
    terms_label: str = _opt("Payment Terms", "termsLabel")
    show_terms: bool = _opt(True, "showTerms", conv=parse_bool)
    box: bool = _opt(True, "showBox", conv=parse_bool)


@dataclass
class SignatureStyle(SectionOptions):
    label: Optional[str] = _opt(None, "label")
    show_date: bool = _opt(False, "showDate", conv=parse_bool)
    date_label: str = _opt("Date", "dateLabel")


@dataclass
class FooterStyle(SectionOptions):
    background: bool = _opt(False, "backgroundColor", conv=parse_bool)
    placement: Optional[FooterPlacement] = _opt(None, "placement", conv=parse_placement)
    show_thank_you: bool = _opt(True, "showThankYou", conv=parse_bool)


@dataclass
class PaymentQrStyle(SectionOptions):
    title: str = _opt("Scan to Pay", "title")
    instructions: str = _opt("Scan this code with your banking app to pay", "instructions")
    size: float = _opt(30.0, "size", conv=_measure(30.0))


SECTION_OPTIONS: Dict[SectionKind, Type[SectionOptions]] = {
    SectionKind.HEADER: HeaderStyle,
    SectionKind.ISSUER_INFO: ContactStyle,
    SectionKind.RECIPIENT_INFO: ContactStyle,
    SectionKind.INVOICE_INFO: InvoiceInfoStyle,
    SectionKind.LINE_ITEMS: LineItemsStyle,
    SectionKind.SUMMARY: SummaryStyle,
    SectionKind.NOTES: NotesStyle,
    SectionKind.SIGNATURE: SignatureStyle,
    SectionKind.FOOTER: FooterStyle,
    SectionKind.PAYMENT_QR: PaymentQrStyle,
}


# ===== Resolved style =====
@dataclass
class ResolvedStyle:
    """Concrete rendering parameters for one section (sizes in points)."""

    kind: SectionKind
    section_id: str
    template: InvoiceTemplate
    settings: EngineSettings
    heading_fonts: FontPair
    body_fonts: FontPair
    heading_size: float
    body_size: float
    primary: colors.Color
    secondary: colors.Color
    accent: colors.Color
    text: colors.Color
    background: colors.Color
    header_background: colors.Color
    footer_background: colors.Color
    margin_before: float = 0.0
    margin_after: float = 0.0
    options: SectionOptions = field(default_factory=SectionOptions)
    extra: Dict[str, str] = field(default_factory=dict)


def parse_style_overrides(raw: Optional[str]) -> Dict[str, Dict[str, str]]:
    """
    Parse the template's style-override document.

    The document is a JSON object mapping a section kind or id (or "document" for
    template-wide typography) to a map of style keys. Any failure logs one warning
    and yields no overrides.
    """
    text = (raw or "").strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed style overrides: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring style overrides: expected a JSON object, got %s", type(data).__name__)
        return {}

    out: Dict[str, Dict[str, str]] = {}
    for target, entries in data.items():
        if not isinstance(entries, dict):
            logger.debug("Skipping style override %r: not an object", target)
            continue
        out[str(target)] = {str(k): str(v) for k, v in entries.items() if v is not None}
    return out


def _margin(style: Mapping[str, str], *keys: str) -> float:
    for key in keys:
        if key in style:
            return parse_measure(style[key], "mm", 0.0) * mm
    return 0.0


def resolve_section_style(
    section: TemplateSection,
    template: InvoiceTemplate,
    overrides: Optional[Mapping[str, Mapping[str, str]]] = None,
    fonts: Optional[ResourceCache] = None,
    settings: Optional[EngineSettings] = None,
) -> ResolvedStyle:
    """
    Merge, highest first: the section's own style map, override-document entries
    for the section (by id, then by kind), template palette and typography
    (adjusted by the override document's "document" block), built-in defaults.
    """
    overrides = overrides or {}
    cache = fonts or shared_cache(settings)
    document = overrides.get("document", {})

    merged: Dict[str, str] = dict(overrides.get(section.kind.value, {}))
    if section.id != section.kind.value:
        merged.update(overrides.get(section.id, {}))
    merged.update(section.style)

    tf = template.fonts
    heading_family = document.get("headingFont", tf.heading_font)
    body_family = merged.get("fontFamily", document.get("fontFamily", tf.body_font))
    heading_size = parse_measure(document.get("headingSize", tf.heading_size), "px", 18.0)
    body_size = parse_measure(merged.get("fontSize", document.get("fontSize", tf.body_size)), "px", 12.0)

    tc = template.colors
    options_cls = SECTION_OPTIONS.get(section.kind, SectionOptions)
    options, extra = options_cls.parse({k: v for k, v in merged.items() if k not in COMMON_KEYS})
    if extra:
        logger.debug("Unused style keys for section %s: %s", section.id, ", ".join(sorted(extra)))

    return ResolvedStyle(
        kind=section.kind,
        section_id=section.id,
        template=template,
        settings=settings or EngineSettings(),
        heading_fonts=cache.font_pair(heading_family),
        body_fonts=cache.font_pair(body_family),
        heading_size=to_points(heading_size, "px"),
        body_size=to_points(body_size, "px"),
        primary=parse_color(tc.primary),
        secondary=parse_color(tc.secondary),
        accent=parse_color(tc.accent),
        text=parse_color(merged.get("color", document.get("color", tc.text))),
        background=parse_color(tc.background),
        header_background=parse_color(tc.header_background),
        footer_background=parse_color(tc.footer_background),
        margin_before=_margin(merged, "marginTop", "margin-before"),
        margin_after=_margin(merged, "marginBottom", "margin-after"),
        options=options,
        extra=extra,
    )
