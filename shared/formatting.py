"""Display formatting for amounts and dates (en-US conventions)."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


_MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_usd(amount: Decimal | int | float | None) -> str:
    """Format an amount as en-US currency text, e.g. `$1,234.50` or `-$3.00`."""

    value = Decimal(str(amount)) if amount is not None else Decimal("0")
    quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    return f"{sign}${abs(quantized):,.2f}"


def format_calendar_date(value: datetime | date | None) -> str:
    """Format a date as `Jan 5, 2025`; empty string when absent."""

    if value is None:
        return ""
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return f"{_MONTH_ABBREVIATIONS[value.month - 1]} {value.day}, {value.year}"
