from __future__ import annotations


class InvoiceRenderError(Exception):
    """Base class for fatal failures surfaced to the caller of a render."""


class TemplateConfigError(InvoiceRenderError, ValueError):
    """No usable template, or the template is missing required style blocks."""


class TemplateImportError(TemplateConfigError):
    """An exported template payload was rejected on import."""


class DocumentOutputError(InvoiceRenderError, RuntimeError):
    """The finished document could not be serialized."""
