from __future__ import annotations

import io
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LEGAL, LETTER, landscape, portrait
from reportlab.lib.units import mm
from reportlab.pdfgen.canvas import Canvas

from invoicedoc.core.errors import DocumentOutputError, InvoiceRenderError, TemplateConfigError
from invoicedoc.core.settings import EngineSettings
from invoicedoc.data.models import Invoice, InvoiceTemplate, SectionKind, TemplateSection
from invoicedoc.data.templates import ordered_sections
from invoicedoc.pdf.document import DocumentHandle
from invoicedoc.pdf.layout import LayoutCursor, Margins
from invoicedoc.pdf.pdf_merge import stamp_pages
from invoicedoc.pdf.resources import ResourceCache, shared_cache, shared_caches
from invoicedoc.pdf.sections import RENDERERS, footer_band_height, render_footer
from invoicedoc.pdf.styles import (
    FooterPlacement,
    FooterStyle,
    ResolvedStyle,
    parse_color,
    parse_style_overrides,
    resolve_section_style,
)

logger = logging.getLogger(__name__)

TemplateInput = Union[InvoiceTemplate, Mapping[str, Any]]
InvoiceInput = Union[Invoice, Mapping[str, Any]]

# ===== Layout constants =====
PAGE_SIZES = {"a4": A4, "letter": LETTER, "legal": LEGAL}

PAGE_NUMBER_FONT = "Helvetica"
PAGE_NUMBER_SIZE = 8
PAGE_NUMBER_Y = 5 * mm
PAGE_NUMBER_COLOR = colors.gray


# ===== Input checks =====
def _coerce_template(template: Optional[TemplateInput]) -> InvoiceTemplate:
    if template is None:
        raise TemplateConfigError("No template was provided")
    if isinstance(template, InvoiceTemplate):
        tpl = template
    elif isinstance(template, Mapping):
        try:
            tpl = InvoiceTemplate.model_validate(dict(template))
        except ValidationError as e:
            raise TemplateConfigError(f"Invalid template: {e}") from e
    else:
        raise TemplateConfigError(f"Unsupported template type: {type(template).__name__}")

    if tpl.colors is None or tpl.fonts is None:
        raise TemplateConfigError("Template is missing its colors or fonts block")
    if not tpl.sections:
        raise TemplateConfigError("Template has no sections")
    if tpl.page_size.strip().lower() not in PAGE_SIZES:
        raise TemplateConfigError(f"Unknown page size: {tpl.page_size!r}")
    if tpl.orientation.strip().lower() not in ("portrait", "landscape"):
        raise TemplateConfigError(f"Unknown orientation: {tpl.orientation!r}")
    return tpl


def _coerce_invoice(invoice: InvoiceInput) -> Invoice:
    if isinstance(invoice, Invoice):
        return invoice
    try:
        return Invoice.model_validate(dict(invoice))
    except (ValidationError, TypeError) as e:
        raise InvoiceRenderError(f"Invalid invoice: {e}") from e


def page_dimensions(template: InvoiceTemplate) -> Tuple[float, float]:
    size = PAGE_SIZES[template.page_size.strip().lower()]
    if template.orientation.strip().lower() == "landscape":
        return landscape(size)
    return portrait(size)


def _page_background(template: InvoiceTemplate) -> Optional[colors.Color]:
    try:
        return parse_color(template.colors.background)
    except ValueError:
        logger.warning("Ignoring malformed page background %r", template.colors.background)
        return None


def _author(template: InvoiceTemplate, settings: EngineSettings) -> str:
    return template.company_name or settings.company_field("name")


# ===== Section dispatch =====
def _flow_sections(sections: List[TemplateSection]) -> List[TemplateSection]:
    return [s for s in sections if s.kind != SectionKind.FOOTER]


def _render_section(
    doc: DocumentHandle,
    invoice: Invoice,
    section: TemplateSection,
    template: InvoiceTemplate,
    overrides: Dict[str, Dict[str, str]],
    settings: EngineSettings,
    is_last: bool,
) -> None:
    cursor = doc.cursor
    start_page, start_y = cursor.page_index, cursor.y
    width, left = cursor.content_width, cursor.margins.left
    broke = False
    try:
        style = resolve_section_style(section, template, overrides, doc.cache, settings)
        renderer = RENDERERS[section.kind]

        # The items table paginates itself; everything else moves as one block
        if section.kind != SectionKind.LINE_ITEMS:
            with doc.measuring():
                needed = renderer(doc, invoice, style, cursor.y, width, left) - cursor.y
            broke = cursor.ensure_space(style.margin_before + needed, is_last)

        cursor.advance(style.margin_before)
        cursor.y = renderer(doc, invoice, style, cursor.y, width, left)
        cursor.advance(style.margin_after)
    except Exception:
        logger.exception("Section %r (%s) failed to render; skipping it", section.id, section.kind.value)
        if cursor.page_index == start_page:
            cursor.y = start_y
        elif broke and cursor.page_index == start_page + 1:
            # The page break this section asked for stays; later sections start at its top
            cursor.y = cursor.margins.top


def _footer_style(
    section: TemplateSection,
    template: InvoiceTemplate,
    overrides: Dict[str, Dict[str, str]],
    cache: ResourceCache,
    settings: EngineSettings,
) -> Optional[ResolvedStyle]:
    try:
        return resolve_section_style(section, template, overrides, cache, settings)
    except Exception:
        logger.exception("Footer section %r could not be resolved; skipping it", section.id)
        return None


def footer_placement(style: ResolvedStyle, settings: EngineSettings) -> FooterPlacement:
    opts: FooterStyle = style.options  # type: ignore[assignment]
    if opts.placement is not None:
        return opts.placement
    try:
        return FooterPlacement(settings.footer_placement)
    except ValueError:
        logger.warning("Unknown footer placement %r in settings, using 'once'", settings.footer_placement)
        return FooterPlacement.ONCE


def _draw_footer(doc: DocumentHandle, invoice: Invoice, style: ResolvedStyle) -> None:
    cursor = doc.cursor
    try:
        render_footer(doc, invoice, style, cursor.page_height, cursor.content_width, cursor.margins)
    except Exception:
        logger.exception("Footer failed to render; skipping it")


# ===== Public API =====
def render_invoice_pdf(
    template: Optional[TemplateInput],
    invoice: InvoiceInput,
    *,
    cache: Optional[ResourceCache] = None,
    settings: Optional[EngineSettings] = None,
) -> bytes:
    """
    Render ``invoice`` with ``template`` and return the PDF bytes.

    Visible sections are drawn in ascending position order. A section that fails is
    logged and skipped; template configuration and output errors are raised.
    """
    started = time.perf_counter()
    tpl = _coerce_template(template)
    inv = _coerce_invoice(invoice)
    settings = settings or EngineSettings()
    cache = cache or shared_cache(settings)

    page_w, page_h = page_dimensions(tpl)
    margins = Margins.from_template(tpl.margins)

    buf = io.BytesIO()
    c = Canvas(buf, pagesize=(page_w, page_h))
    c.setTitle(f"Invoice - {inv.invoice_number}")
    c.setAuthor(_author(tpl, settings))
    c.setSubject(f"Invoice for {inv.recipient.name}")
    c.setCreator(settings.creator)

    cursor = LayoutCursor(page_w, page_h, margins)
    doc = DocumentHandle(c, cursor, cache, background=_page_background(tpl))
    cursor.on_new_page = doc.next_page
    doc.paint_background()

    # Warm the font cache for the template typography
    cache.font_available(tpl.fonts.heading_font)
    cache.font_available(tpl.fonts.body_font)

    overrides = parse_style_overrides(tpl.custom_css)
    visible = ordered_sections(tpl)
    flow = _flow_sections(visible)
    last_flow = flow[-1] if flow else None

    # Footers are resolved first so flowing sections stop above their band
    footers: Dict[int, ResolvedStyle] = {}
    for i, section in enumerate(visible):
        if section.kind == SectionKind.FOOTER:
            style = _footer_style(section, tpl, overrides, cache, settings)
            if style is not None:
                footers[i] = style
    if footers:
        cursor.bottom_reserve = max(footer_band_height(s) for s in footers.values())

    every_page_footer: Optional[ResolvedStyle] = None
    for i, section in enumerate(visible):
        if section.kind == SectionKind.FOOTER:
            style = footers.get(i)
            if style is None:
                continue
            if footer_placement(style, settings) == FooterPlacement.EVERY_PAGE:
                every_page_footer = style
            else:
                _draw_footer(doc, inv, style)
            continue
        _render_section(doc, inv, section, tpl, overrides, settings, section is last_flow)

    try:
        c.showPage()
        c.save()
    except Exception as e:
        raise DocumentOutputError(f"Could not write PDF: {e}") from e
    data = buf.getvalue()

    show_numbers = tpl.show_page_numbers if tpl.show_page_numbers is not None else settings.show_page_numbers
    if show_numbers or every_page_footer is not None:

        def stamp(canvas: Canvas, index: int, total: int) -> None:
            if every_page_footer is not None:
                sdoc = DocumentHandle(canvas, LayoutCursor(page_w, page_h, margins), cache)
                _draw_footer(sdoc, inv, every_page_footer)
            if show_numbers:
                canvas.setFont(PAGE_NUMBER_FONT, PAGE_NUMBER_SIZE)
                canvas.setFillColor(PAGE_NUMBER_COLOR)
                canvas.drawCentredString(page_w / 2, PAGE_NUMBER_Y, f"Page {index + 1} of {total}")

        data = stamp_pages(data, stamp)

    logger.info(
        "Rendered invoice %s: %d page(s) in %.1f ms",
        inv.invoice_number,
        cursor.page_count,
        (time.perf_counter() - started) * 1000,
    )
    return data


def build_invoice_pdf(
    out_path: Union[str, Path],
    template: Optional[TemplateInput],
    invoice: InvoiceInput,
    *,
    cache: Optional[ResourceCache] = None,
    settings: Optional[EngineSettings] = None,
) -> Path:
    """Render and write the PDF to ``out_path`` (parent directories are created)."""
    data = render_invoice_pdf(template, invoice, cache=cache, settings=settings)
    out = Path(out_path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(data)
    except OSError as e:
        raise DocumentOutputError(f"Could not write {out}: {e}") from e
    return out


def render_batch(
    jobs: Iterable[Tuple[Optional[TemplateInput], InvoiceInput]],
    *,
    cache: Optional[ResourceCache] = None,
    settings: Optional[EngineSettings] = None,
    max_workers: int = 4,
) -> List[bytes]:
    """
    Render several (template, invoice) pairs on a thread pool sharing one cache.

    Results keep the input order. The first failing job's exception is raised.
    """
    shared = cache or shared_cache(settings)
    job_list = list(jobs)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [
            executor.submit(render_invoice_pdf, tpl, inv, cache=shared, settings=settings)
            for tpl, inv in job_list
        ]
        return [f.result() for f in futures]


def clear_caches() -> None:
    """Drop every cached font outcome and logo from the process-wide caches."""
    for cache in shared_caches():
        cache.clear_all()


def cache_stats() -> Dict[str, int]:
    """Entry counts summed over the process-wide caches."""
    totals = {"fonts": 0, "logos": 0}
    for cache in shared_caches():
        for key, n in cache.stats().items():
            totals[key] += n
    return totals
