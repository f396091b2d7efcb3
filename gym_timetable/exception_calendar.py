"""Holiday, vacation and per-center closure calendars."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from . import dates
from .models import Center, ExceptionDate, YearlyConfig

EMPTY_CONFIG = YearlyConfig()


def _to_date_map(entries: Mapping[str, str] | Iterable[ExceptionDate] | None) -> Dict[date, str]:
    """Accept either ``{"YYYY-MM-DD": reason}`` documents or ExceptionDate lists."""
    if not entries:
        return {}
    result: Dict[date, str] = {}
    if isinstance(entries, Mapping):
        for key, reason in entries.items():
            d = dates.parse_date_key(key)
            if d is None:
                logging.warning("Ignoring malformed exception date %r", key)
                continue
            result[d] = "" if reason is None else str(reason)
        return result
    for entry in entries:
        result[entry.date] = entry.reason
    return result


@dataclass(frozen=True)
class ExceptionCalendar:
    """Three independent exception sets: holidays, vacations and closures."""

    official_holidays: Dict[date, str] = field(default_factory=dict)
    vacations: Dict[date, str] = field(default_factory=dict)
    closures: Dict[str, Dict[date, str]] = field(default_factory=dict)

    @classmethod
    def from_maps(
        cls,
        *,
        official_holidays=None,
        vacations=None,
        closures: Optional[Mapping[str, object]] = None,
    ) -> "ExceptionCalendar":
        return cls(
            official_holidays=_to_date_map(official_holidays),
            vacations=_to_date_map(vacations),
            closures={
                center: _to_date_map(entries) for center, entries in (closures or {}).items()
            },
        )

    def is_holiday(self, d: date) -> bool:
        return d in self.official_holidays

    def is_vacation(self, d: date) -> bool:
        return d in self.vacations

    def is_closure(self, d: date, center: Optional[str] = None) -> bool:
        if center is not None:
            return d in self.closures.get(center, {})
        return any(d in days for days in self.closures.values())

    def is_exception(self, d: date) -> bool:
        return self.is_holiday(d) or self.is_vacation(d) or self.is_closure(d)

    def reason_for(self, d: date) -> Optional[str]:
        if d in self.official_holidays:
            return self.official_holidays[d]
        if d in self.vacations:
            return self.vacations[d]
        for days in self.closures.values():
            if d in days:
                return days[d]
        return None

    def in_fiscal_year(self, fy: int) -> "ExceptionCalendar":
        def keep(entries: Dict[date, str]) -> Dict[date, str]:
            return {d: r for d, r in entries.items() if dates.fiscal_year(d) == fy}

        return ExceptionCalendar(
            official_holidays=keep(self.official_holidays),
            vacations=keep(self.vacations),
            closures={c: keep(days) for c, days in self.closures.items()},
        )

    def with_generated_holidays(self, fy: int, centers: Iterable[Center]) -> "ExceptionCalendar":
        """Fill the holiday set for ``fy`` when the stored set has none."""
        if any(dates.fiscal_year(d) == fy for d in self.official_holidays):
            return self
        merged = dict(self.official_holidays)
        for entry in dates.official_holidays(fy, centers):
            merged.setdefault(entry.date, entry.reason)
        return ExceptionCalendar(merged, dict(self.vacations), dict(self.closures))


class CenterDirectory:
    def __init__(self, centers: Iterable[Center]) -> None:
        self.centers: List[Center] = list(centers)
        self._by_id = {c.id: c for c in self.centers}

    @property
    def active(self) -> List[Center]:
        return [c for c in self.centers if c.is_active]

    def get(self, center_id: str) -> Optional[Center]:
        return self._by_id.get(center_id)

    def config_for(self, center_id: str, fy: int) -> YearlyConfig:
        center = self.get(center_id)
        if center is None:
            return EMPTY_CONFIG
        return center.config_for(fy)

    def is_work_day(self, center_id: str, d: date) -> bool:
        config = self.config_for(center_id, dates.fiscal_year(d))
        return dates.weekday_index(d) in config.work_days

    def used_vacation_days(self, calendar: ExceptionCalendar, center_id: str, fy: int) -> int:
        """Count general vacation days that land on one of the center's work days."""
        start, end = dates.work_year_range(fy)
        return sum(
            1
            for d in calendar.vacations
            if start <= d <= end and self.is_work_day(center_id, d)
        )

    def remaining_vacation_days(self, calendar: ExceptionCalendar, center_id: str, fy: int) -> int:
        available = self.config_for(center_id, fy).available_vacation_days
        return available - self.used_vacation_days(calendar, center_id, fy)
