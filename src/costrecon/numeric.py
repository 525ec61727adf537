"""Numeric and month parsing helpers shared by the import boundary."""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")

_MONTH_FORMATS = (
    "%b-%y",
    "%B-%y",
    "%b %y",
    "%B %y",
    "%b-%Y",
    "%B-%Y",
    "%b %Y",
    "%B %Y",
    "%m/%Y",
    "%Y-%m",
    "%Y-%m-%d",
)


class InvalidNumericValue(ValueError):
    """Raised when a cell cannot be interpreted as a number."""


def is_blank(value: object | None) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() == ""


def clean_text(value: object | None) -> str:
    if is_blank(value):
        return ""
    return str(value).strip()


def clean_numeric(value: object | None) -> str:
    """Strip currency decorations from ``value`` and return the bare number text.

    Blank cells read as ``"0"``. Spreadsheet error values such as ``#REF!``
    or ``#DIV/0!`` raise :class:`InvalidNumericValue`.
    """

    text = clean_text(value)
    if not text:
        return "0"
    if text.startswith("#"):
        raise InvalidNumericValue(f"spreadsheet error value found: {text}")
    for token in ("$", ",", " ", "%"):
        text = text.replace(token, "")
    return text or "0"


def to_decimal(value: object | None) -> Decimal:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidNumericValue(f"non-finite number: {value}")
        return value
    text = clean_numeric(value)
    try:
        number = Decimal(text)
    except InvalidOperation as exc:
        raise InvalidNumericValue(f"not a number: {text!r}") from exc
    if not number.is_finite():
        raise InvalidNumericValue(f"non-finite number: {text!r}")
    return number


def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def parse_month(value: object) -> date:
    """Normalize ``value`` to the first day of its month.

    Accepts ``date``/``datetime`` objects and headers such as ``Dec-25``,
    ``December 2025``, ``12/2025`` or ``2025-12``.
    """

    if isinstance(value, datetime):
        return month_start(value.date())
    if isinstance(value, date):
        return month_start(value)
    if hasattr(value, "to_pydatetime"):
        return month_start(value.to_pydatetime().date())

    text = clean_text(value)
    if not text:
        raise ValueError("empty month value")
    for fmt in _MONTH_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return month_start(parsed.date())
    try:
        return month_start(datetime.fromisoformat(text).date())
    except ValueError:
        raise ValueError(f"unable to parse month: {text!r}") from None


def format_month(value: date) -> str:
    return value.strftime("%b-%Y")


def fixed(value: Decimal, places: int = 2) -> str:
    quantum = Decimal(1).scaleb(-places)
    return str(value.quantize(quantum))


__all__ = [
    "TOLERANCE",
    "ZERO",
    "InvalidNumericValue",
    "clean_numeric",
    "clean_text",
    "fixed",
    "format_month",
    "is_blank",
    "month_start",
    "parse_month",
    "to_decimal",
]
