from __future__ import annotations

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation


# Symbols drawable with the standard PDF fonts; other codes render as "CHF 10.00"
CURRENCY_SYMBOLS = {
	"USD": "$",
	"EUR": "€",
	"GBP": "£",
	"JPY": "¥",
	"CAD": "CA$",
	"AUD": "A$",
}


def to_decimal(x: object) -> Decimal:
	"""Best-effort conversion to Decimal via str to avoid binary float artifacts."""
	try:
		return Decimal(str(x))
	except (InvalidOperation, ValueError, TypeError):
		return Decimal("0")


def round_money_dec(x: float | Decimal) -> Decimal:
	"""Round to 2 decimals (round-half-to-even) and return Decimal."""
	d = to_decimal(x)
	return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)


def is_nonzero(x: float | Decimal | None) -> bool:
	return x is not None and round_money_dec(x) != 0


def fmt_money(x: float | Decimal, currency: str = "USD") -> str:
	"""Format an amount like '$1,234.50'; negatives as '-$1,234.50'."""
	q = round_money_dec(x)
	code = (currency or "USD").strip().upper()
	body = f"{abs(q):,.2f}"
	symbol = CURRENCY_SYMBOLS.get(code)
	text = f"{symbol}{body}" if symbol else f"{code} {body}"
	return f"-{text}" if q < 0 else text


def fmt_percent(x: float | Decimal | None) -> str:
	"""Format a rate as '8.5%' ('0%' when missing)."""
	d = to_decimal(x if x is not None else 0).normalize()
	return f"{d:f}%"


def fmt_qty(qty: float | Decimal) -> str:
	"""Format quantity with up to 3 decimals, no trailing zeros."""
	s = f"{to_decimal(qty):.3f}".rstrip("0").rstrip(".")
	return s if s and s != "-0" else "0"
