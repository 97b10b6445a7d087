"""
Amount and date normalization for bank statement cells.

Pure functions, ZERO I/O.  Amounts are always parsed to ``Decimal``; a
cell that does not reduce to a finite decimal raises ``InvalidAmountError``.
Dates are parsed with one explicit layout per mapping, or probed against a
fixed list of common layouts when the layout is unknown.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from banking_kernel.exceptions import InvalidAmountError, InvalidDateError

DEFAULT_CURRENCY_SYMBOLS = "€$£"

# Tried in order by probe_date(); first layout that parses wins.
PROBE_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d-%m-%Y",
    "%m-%d-%Y",
)


def _strip_pattern(currency_symbols: str) -> re.Pattern[str]:
    return re.compile(f"[{re.escape(currency_symbols)}\\s]") if currency_symbols else re.compile(r"\s")


def parse_amount(
    raw: str,
    decimal_separator: str = ".",
    thousands_separator: str = ",",
    currency_symbols: str = DEFAULT_CURRENCY_SYMBOLS,
) -> Decimal:
    """
    Parse a locale-formatted amount cell.

    Whitespace and currency glyphs are removed, the thousands separator is
    dropped, the decimal separator becomes ``.``, and an amount wrapped in
    parentheses is negative: ``"(1 234,50 €)"`` with ``,``/space -> ``-1234.50``.

    Raises:
        InvalidAmountError: If the cleaned text is not a finite decimal.
    """
    cleaned = _strip_pattern(currency_symbols).sub("", raw.strip())
    if thousands_separator:
        cleaned = cleaned.replace(thousands_separator, "")
    if decimal_separator != ".":
        cleaned = cleaned.replace(decimal_separator, ".")
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    if not cleaned:
        raise InvalidAmountError(raw, "empty amount")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise InvalidAmountError(raw, f"can't convert {cleaned} to decimal") from None
    if not value.is_finite():
        raise InvalidAmountError(raw, f"{cleaned} is not a finite amount")
    return value


def parse_date(raw: str, date_format: str) -> date:
    """
    Parse ``raw`` with the ``strptime`` layout ``date_format``.

    Raises:
        InvalidDateError: If the text does not match the layout.
    """
    text = raw.strip()
    try:
        return datetime.strptime(text, date_format).date()
    except ValueError as exc:
        raise InvalidDateError(raw, str(exc)) from None


def probe_date(raw: str) -> date:
    """
    Parse a date of unknown layout.

    Tries ``PROBE_DATE_FORMATS`` in order, then an RFC 3339 timestamp.
    Ambiguous day/month values resolve to the first layout that accepts
    them (US ``%m/%d/%Y`` before European ``%d/%m/%Y``).

    Raises:
        InvalidDateError: If no layout accepts the text.
    """
    text = raw.strip()
    for fmt in PROBE_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    if "T" in text:
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            pass
    raise InvalidDateError(raw, f"unable to parse date: {text}")


def format_amount(amount: Decimal, decimals: int = 2) -> str:
    """Fixed-point text with ``,`` thousands grouping: ``-1234567.891`` -> ``-1,234,567.89``."""
    quantum = Decimal(1).scaleb(-decimals)
    rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{abs(rounded):,.{decimals}f}"
