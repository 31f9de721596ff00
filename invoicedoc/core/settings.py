from __future__ import annotations

from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import logging

from invoicedoc.core.paths import settings_path

logger = logging.getLogger(__name__)

# Path to the settings.json (INVOICEDOC_HOME-aware)
SETTINGS_PATH = settings_path()

FOOTER_PLACEMENTS = ("once", "every-page")


@dataclass
class EngineSettings:
	# Directory with <Family>-Regular.ttf / <Family>-Bold.ttf files; None means assets/fonts
	fonts_dir: Optional[str] = None
	# Seconds to wait for a remote logo before falling back to a text-only header
	logo_timeout: float = 5.0
	# Used when a template does not say whether to stamp "Page i of N"
	show_page_numbers: bool = False
	# "once" draws the footer where the section loop reaches it; "every-page" repeats it
	footer_placement: str = "once"
	# Shown by the summary section when a template has no payment methods text
	payment_methods: str = "Bank Transfer, Credit Card"
	# Company info used for issuer fields the template leaves blank
	company: Dict[str, str] = field(default_factory=dict)
	creator: str = "invoicedoc"

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "EngineSettings":
		# Merge provided values over defaults, ignore unknown keys
		defaults = asdict(cls())
		merged: Dict[str, Any] = {**defaults, **{k: v for k, v in data.items() if k in defaults}}
		if merged["footer_placement"] not in FOOTER_PLACEMENTS:
			logger.warning("Unknown footer_placement %r, using 'once'", merged["footer_placement"])
			merged["footer_placement"] = "once"
		if not isinstance(merged["company"], dict):
			merged["company"] = {}
		return cls(**merged)

	def to_dict(self) -> Dict[str, Any]:
		return asdict(self)

	def company_field(self, key: str) -> str:
		return str(self.company.get(key) or "").strip()


def _coerce_path(path: Optional[Union[str, Path]]) -> Path:
	return Path(path) if path is not None else SETTINGS_PATH


def load_settings(path: Optional[Union[str, Path]] = None) -> EngineSettings:
	"""
	Load settings from JSON (UTF-8). If the file is missing, write defaults and return them.
	"""
	p = _coerce_path(path)
	if not p.exists():
		settings = EngineSettings()
		save_settings(settings, p)
		return settings

	try:
		with p.open("r", encoding="utf-8") as f:
			raw: Dict[str, Any] = json.load(f)
	except (json.JSONDecodeError, OSError):
		# If unreadable/corrupt, fall back to defaults (do not overwrite automatically)
		logger.warning("Could not read settings from %s, using defaults", p)
		return EngineSettings()

	return EngineSettings.from_dict(raw if isinstance(raw, dict) else {})


def save_settings(settings: EngineSettings, path: Optional[Union[str, Path]] = None) -> None:
	"""Save settings to JSON (UTF-8), creating parent dirs if needed."""
	p = _coerce_path(path)
	p.parent.mkdir(parents=True, exist_ok=True)
	tmp = p.with_suffix(p.suffix + ".tmp")
	with tmp.open("w", encoding="utf-8", newline="\n") as f:
		json.dump(settings.to_dict(), f, indent=2, ensure_ascii=False)
		f.write("\n")
	tmp.replace(p)
