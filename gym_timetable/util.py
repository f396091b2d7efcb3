"""Utility helpers."""

from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

DEFAULT_TZ = "Europe/Madrid"


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")


def parse_timezone(tz: str) -> ZoneInfo:
    return ZoneInfo(tz)


def today(tz: ZoneInfo | None = None) -> date:
    if tz is None:
        return date.today()
    return datetime.now(tz).date()


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like ``Math.round`` / ``toFixed`` do for dashboard figures."""
    factor = 10**digits
    scaled = value * factor
    rounded = int(scaled + 0.5) if scaled >= 0 else -int(-scaled + 0.5)
    return rounded / factor if digits else rounded
