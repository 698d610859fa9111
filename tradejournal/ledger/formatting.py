"""Currency and date helpers.

Amounts are never rounded in storage; rounding happens here, at display time.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

# currency -> (symbol, thousands separator, decimal separator, gap after symbol)
_CURRENCY_STYLE = {
    "USD": ("$", ",", ".", ""),
    "BRL": ("R$", ".", ",", "\xa0"),
}

_DATE_PATTERNS = {
    "DD/MM/YYYY": "%d/%m/%Y",
    "MM/DD/YYYY": "%m/%d/%Y",
}


def format_currency(value: float, currency: str = "USD") -> str:
    """Format an amount the way en-US (USD) or pt-BR (BRL) locales render it."""
    symbol, thousands, decimal, gap = _CURRENCY_STYLE.get(currency, (currency, ",", ".", " "))
    body = f"{abs(value):,.2f}"
    if thousands != ",":
        body = body.replace(",", "\0").replace(".", decimal).replace("\0", thousands)
    # -0.004 renders as $0.00, not -$0.00
    sign = "-" if value < 0 and f"{abs(value):.2f}" != "0.00" else ""
    return f"{sign}{symbol}{gap}{body}"


def to_date(value: date | datetime | str) -> date:
    """Calendar date of a trade timestamp, plan key or date object."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date()


def format_date(value: date | datetime | str, date_format: str = "DD/MM/YYYY") -> str:
    return to_date(value).strftime(_DATE_PATTERNS[date_format])


def week_start_key(value: date | datetime | str) -> str:
    """ISO date of the Monday that opens the value's week. Sunday belongs to the week before."""
    d = to_date(value)
    return (d - timedelta(days=d.weekday())).isoformat()


def month_key(value: date | datetime | str) -> str:
    return to_date(value).strftime("%Y-%m")


def week_history_keys(today: date, count: int = 4) -> list[str]:
    """Week-start keys for the current week and the `count - 1` weeks before it, newest first."""
    return [week_start_key(today - timedelta(weeks=i)) for i in range(count)]


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def first_weekday_of_month(year: int, month: int) -> int:
    """Column of the 1st in a Sunday-first calendar (0 = Sunday)."""
    return (date(year, month, 1).weekday() + 1) % 7
