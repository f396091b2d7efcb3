"""Date keys, weekday indices and fiscal-year helpers."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple

from .models import Center, ExceptionDate

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Fiscal years run from 1 February to 31 January.
FISCAL_YEAR_START_MONTH = 2

REGIONAL_HOLIDAYS = [
    (1, 1, "Any Nou"),
    (1, 6, "Reis"),
    (5, 1, "Festa del Treball"),
    (6, 24, "Sant Joan"),
    (8, 15, "Assumpció"),
    (9, 11, "Diada de Catalunya"),
    (9, 24, "La Mercè"),
    (10, 12, "Hispanitat"),
    (11, 1, "Tots Sants"),
    (12, 6, "Constitució"),
    (12, 8, "Immaculada"),
    (12, 25, "Nadal"),
    (12, 26, "Sant Esteve"),
]


def parse_date_key(value: object) -> Optional[date]:
    """Parse a canonical ``YYYY-MM-DD`` key, returning None when malformed."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_KEY_RE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def date_key(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def as_date(value: date | str) -> date:
    parsed = parse_date_key(value)
    if parsed is None:
        raise ValueError(f"Invalid date key: {value!r}")
    return parsed


def weekday_index(d: date) -> int:
    """Monday=1 ... Sunday=7."""
    return d.isoweekday()


def iter_days(start: date, end: date) -> Iterator[date]:
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def fiscal_year(d: date) -> int:
    return d.year - 1 if d.month < FISCAL_YEAR_START_MONTH else d.year


def work_year_range(fy: int) -> Tuple[date, date]:
    return date(fy, FISCAL_YEAR_START_MONTH, 1), date(fy + 1, 1, 31)


def fiscal_years_range(start: int, end: int) -> List[int]:
    return list(range(start, end + 1))


def easter_sunday(year: int) -> date:
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


def official_holidays(fy: int, centers: Iterable[Center] = ()) -> List[ExceptionDate]:
    """Generate the official holidays that fall inside a fiscal work year.

    Covers the fixed regional list, Good Friday, Easter Monday and every
    active center's local festivities. The first reason registered for a
    date is kept.
    """
    start, end = work_year_range(fy)
    found: dict[date, str] = {}

    def add(d: date, reason: str) -> None:
        if start <= d <= end and d not in found:
            found[d] = reason

    active = [c for c in centers if c.is_active]
    for year in sorted({start.year, end.year}):
        for month, day, name in REGIONAL_HOLIDAYS:
            add(date(year, month, day), name)
        easter = easter_sunday(year)
        add(easter - timedelta(days=2), "Divendres Sant")
        add(easter + timedelta(days=1), "Dilluns de Pasqua")
        for center in active:
            for holiday in center.local_holidays:
                try:
                    d = date(year, holiday.month, holiday.day)
                except ValueError:
                    continue
                add(d, f"{holiday.name} ({center.name})")

    return [ExceptionDate(d, reason) for d, reason in sorted(found.items())]
