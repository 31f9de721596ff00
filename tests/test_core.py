from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path

import pytest

from invoicedoc.core import paths
from invoicedoc.core.currency import fmt_money, fmt_percent, fmt_qty, is_nonzero, round_money_dec
from invoicedoc.core.settings import EngineSettings, load_settings, save_settings


@pytest.mark.parametrize(
    "amount, currency, expected",
    [
        (1234.5, "USD", "$1,234.50"),
        (-5, "USD", "-$5.00"),
        (1, "eur", "€1.00"),
        (2.5, "GBP", "£2.50"),
        (1234, "CHF", "CHF 1,234.00"),
        (0, "", "$0.00"),
    ],
)
def test_fmt_money(amount, currency, expected) -> None:
    assert fmt_money(amount, currency) == expected


def test_rounding_is_half_even() -> None:
    assert round_money_dec(0.125) == Decimal("0.12")
    assert round_money_dec(0.135) == Decimal("0.14")
    assert is_nonzero(0.004) is False
    assert is_nonzero(0.01) is True
    assert is_nonzero(None) is False


def test_fmt_percent_and_qty() -> None:
    assert fmt_percent(8.5) == "8.5%"
    assert fmt_percent(10) == "10%"
    assert fmt_percent(None) == "0%"
    assert fmt_qty(2.0) == "2"
    assert fmt_qty(1.25) == "1.25"


def test_settings_first_load_writes_defaults(tmp_path: Path) -> None:
    p = tmp_path / "cfg" / "settings.json"
    settings = load_settings(p)
    assert settings == EngineSettings()
    assert json.loads(p.read_text(encoding="utf-8"))["footer_placement"] == "once"


def test_settings_round_trip(tmp_path: Path) -> None:
    p = tmp_path / "settings.json"
    settings = EngineSettings(show_page_numbers=True, footer_placement="every-page", company={"name": "Acme"})
    save_settings(settings, p)
    loaded = load_settings(p)
    assert loaded == settings
    assert loaded.company_field("name") == "Acme"
    assert loaded.company_field("phone") == ""


def test_corrupt_settings_fall_back(tmp_path: Path, caplog) -> None:
    p = tmp_path / "settings.json"
    p.write_text("{oops", encoding="utf-8")
    caplog.set_level(logging.WARNING, logger="invoicedoc")
    assert load_settings(p) == EngineSettings()
    assert p.read_text(encoding="utf-8") == "{oops"
    assert len(caplog.records) == 1


def test_settings_from_dict_validates(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="invoicedoc")
    s = EngineSettings.from_dict({"footer_placement": "sometimes", "company": "nope", "unknown": 1, "logo_timeout": 2})
    assert s.footer_placement == "once"
    assert s.company == {}
    assert s.logo_timeout == 2
    assert len(caplog.records) == 1


def test_paths_follow_home_override(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv(paths.HOME_ENV, str(tmp_path))
    assert paths.base_path() == tmp_path
    assert paths.resource_path("assets/logo.png") == tmp_path / "assets" / "logo.png"
    assert paths.fonts_dir() == tmp_path / "assets" / "fonts"
    assert paths.settings_path() == tmp_path / "settings.json"
    absolute = tmp_path / "elsewhere.png"
    assert paths.resource_path(absolute) == absolute
