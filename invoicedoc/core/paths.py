from __future__ import annotations

import os
from pathlib import Path


HOME_ENV = "INVOICEDOC_HOME"


def base_path() -> Path:
    """Return the root used for bundled resources (fonts, logos, settings).

    - When INVOICEDOC_HOME is set, that directory wins.
    - Otherwise use the project root (…/invoicedoc/..).
    """
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path(__file__).resolve().parents[2]


def resource_path(rel: str | Path) -> Path:
    """Resolve a resource path (e.g. 'assets/logo.png') against the resource root."""
    rel = Path(rel)
    if rel.is_absolute():
        return rel
    return base_path() / rel


def fonts_dir(configured: str | None = None) -> Path:
    """Directory searched for TrueType files; defaults to assets/fonts."""
    return resource_path(configured or "assets/fonts")


def settings_path() -> Path:
    """Location for settings.json that is readable and writable."""
    return base_path() / "settings.json"
