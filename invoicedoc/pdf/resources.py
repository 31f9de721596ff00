from __future__ import annotations

import base64
import io
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, NamedTuple, Optional, Tuple, TypeVar
from urllib.parse import unquote_to_bytes

import httpx
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from invoicedoc.core.paths import fonts_dir, resource_path
from invoicedoc.core.settings import EngineSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FontPair(NamedTuple):
    regular: str
    bold: str


DEFAULT_FONTS = FontPair("Helvetica", "Helvetica-Bold")

# Standard PDF fonts that need no registration
BUILTIN_FONTS: Dict[str, FontPair] = {
    "helvetica": DEFAULT_FONTS,
    "times": FontPair("Times-Roman", "Times-Bold"),
    "courier": FontPair("Courier", "Courier-Bold"),
}

# Web font names mapped to the closest standard PDF font
FONT_ALIASES: Dict[str, str] = {
    "arial": "helvetica",
    "inter": "helvetica",
    "roboto": "helvetica",
    "open sans": "helvetica",
    "verdana": "helvetica",
    "system-ui": "helvetica",
    "sans-serif": "helvetica",
    "times new roman": "times",
    "times-roman": "times",
    "georgia": "times",
    "serif": "times",
    "courier new": "courier",
    "monospace": "courier",
}


def normalize_family(stack: str) -> str:
    """First family of a CSS-like stack: "'Inter', sans-serif" -> "Inter"."""
    first = (stack or "").split(",")[0]
    return first.replace("'", "").replace('"', "").strip() or "Helvetica"


def _ttf_name(family: str) -> str:
    return "".join(family.split())


def _builtin_key(family: str) -> Optional[str]:
    key = family.strip().lower()
    key = FONT_ALIASES.get(key, key)
    return key if key in BUILTIN_FONTS else None


class EntryState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class CacheEntry(Generic[T]):
    state: EntryState = EntryState.PENDING
    value: Optional[T] = None
    ready: threading.Event = field(default_factory=threading.Event, repr=False)


class ResourceCache:
    """
    Memoizes font registration outcomes and decoded logos across renders.

    - fonts: family name -> bool (registered/usable)
    - logos: reference -> ImageReader, or None when the logo could not be loaded

    Negative results are cached as well. The first caller for a key populates the
    entry while later callers for the same key wait on it, so one instance can be
    shared by concurrent renders.
    """

    def __init__(
        self,
        fonts_directory: str | Path | None = None,
        logo_timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.fonts_directory = Path(fonts_directory) if fonts_directory else fonts_dir()
        self.logo_timeout = logo_timeout
        self._client = client
        self._lock = threading.Lock()
        self._fonts: Dict[str, CacheEntry[bool]] = {}
        self._logos: Dict[str, CacheEntry[ImageReader]] = {}

    @classmethod
    def from_settings(cls, settings: EngineSettings, client: httpx.Client | None = None) -> "ResourceCache":
        return cls(fonts_dir(settings.fonts_dir), settings.logo_timeout, client)

    # ----- generic get-or-populate -----
    def _get_or_populate(self, table: Dict[str, CacheEntry[Any]], key: str, loader: Callable[[str], Any], what: str) -> CacheEntry[Any]:
        with self._lock:
            entry = table.get(key)
            owner = entry is None
            if owner:
                entry = CacheEntry()
                table[key] = entry
        if not owner:
            entry.ready.wait()
            return entry

        try:
            value = loader(key)
        except Exception as e:
            logger.warning("Could not load %s %r: %s", what, key, e)
            entry.state = EntryState.FAILED
        else:
            entry.value = value
            entry.state = EntryState.RESOLVED if value else EntryState.FAILED
        finally:
            entry.ready.set()
        return entry

    # ----- fonts -----
    def _register_font(self, family: str) -> bool:
        name = _ttf_name(family)
        regular = None
        for cand in (f"{name}-Regular.ttf", f"{name}.ttf"):
            p = self.fonts_directory / cand
            if p.exists():
                regular = p
                break
        if regular is not None:
            pdfmetrics.registerFont(TTFont(name, str(regular)))
            bold = self.fonts_directory / f"{name}-Bold.ttf"
            if bold.exists():
                pdfmetrics.registerFont(TTFont(f"{name}-Bold", str(bold)))
            logger.debug("Registered TrueType font %s from %s", name, regular)
            return True
        if _builtin_key(family):
            return True
        logger.warning("Font %r is not available, using Helvetica", family)
        return False

    def font_available(self, family: str) -> bool:
        return bool(self._get_or_populate(self._fonts, normalize_family(family), self._register_font, "font").value)

    def font_pair(self, family: str) -> FontPair:
        """Regular/bold ReportLab font names for a family, Helvetica when unavailable."""
        fam = normalize_family(family)
        if not self.font_available(fam):
            return DEFAULT_FONTS
        name = _ttf_name(fam)
        registered = set(pdfmetrics.getRegisteredFontNames())
        if name in registered:
            bold = f"{name}-Bold"
            return FontPair(name, bold if bold in registered else name)
        return BUILTIN_FONTS[_builtin_key(fam) or "helvetica"]

    # ----- logos -----
    def _fetch(self, url: str) -> bytes:
        if self._client is not None:
            resp = self._client.get(url, timeout=self.logo_timeout, follow_redirects=True)
        else:
            resp = httpx.get(url, timeout=self.logo_timeout, follow_redirects=True)
        resp.raise_for_status()
        return resp.content

    def _load_logo(self, ref: str) -> ImageReader:
        if ref.startswith(("http://", "https://")):
            data = self._fetch(ref)
        elif ref.startswith("data:"):
            header, _, payload = ref.partition(",")
            data = base64.b64decode(payload) if ";base64" in header else unquote_to_bytes(payload)
        else:
            p = Path(ref)
            if not p.exists():
                p = resource_path(ref)
            data = p.read_bytes()
        reader = ImageReader(io.BytesIO(data))
        # Force decoding now so a broken image fails here, not while drawing
        reader.getSize()
        return reader

    def logo(self, ref: str) -> Optional[ImageReader]:
        ref = (ref or "").strip()
        if not ref:
            return None
        return self._get_or_populate(self._logos, ref, self._load_logo, "logo").value

    # ----- operational control -----
    def clear_all(self) -> None:
        with self._lock:
            self._fonts.clear()
            self._logos.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"fonts": len(self._fonts), "logos": len(self._logos)}


# Process-wide cache used when a render is not given one
DEFAULT_CACHE = ResourceCache()

# Process-wide caches for settings that differ from DEFAULT_CACHE's configuration
_shared_lock = threading.Lock()
_SHARED: Dict[Tuple[Path, float], ResourceCache] = {}


def shared_cache(settings: Optional[EngineSettings] = None) -> ResourceCache:
    """
    Process-wide cache honoring ``settings.fonts_dir`` and ``settings.logo_timeout``.

    Settings matching the default configuration share ``DEFAULT_CACHE``; any other
    combination gets one cache per (fonts directory, timeout) for the process lifetime.
    """
    if settings is None:
        return DEFAULT_CACHE
    key = (fonts_dir(settings.fonts_dir), float(settings.logo_timeout))
    if key == (DEFAULT_CACHE.fonts_directory, DEFAULT_CACHE.logo_timeout):
        return DEFAULT_CACHE
    with _shared_lock:
        cache = _SHARED.get(key)
        if cache is None:
            cache = _SHARED[key] = ResourceCache(key[0], key[1])
            logger.debug("Created resource cache for fonts in %s (logo timeout %.1fs)", key[0], key[1])
        return cache


def shared_caches() -> List[ResourceCache]:
    with _shared_lock:
        return [DEFAULT_CACHE, *_SHARED.values()]
