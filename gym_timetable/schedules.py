"""Recurring weekly timetables with effective-date ranges."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from . import dates
from .models import Schedule, SessionTemplate

OPEN_END = date.max


@dataclass(frozen=True)
class _Bounds:
    start: date
    end: date


def schedule_bounds(schedule: Schedule) -> Optional[Tuple[date, date]]:
    """Return the inclusive ``(start, end)`` range, or None if malformed."""
    start = dates.parse_date_key(schedule.start_date)
    if start is None:
        return None
    if not schedule.end_date:
        return start, OPEN_END
    end = dates.parse_date_key(schedule.end_date)
    if end is None:
        return None
    return start, end


class ScheduleCatalog:
    """Ordered collection of weekly timetables.

    Candidates are kept sorted by start date, most recent first, so that the
    first schedule containing a date is the one that applies to it.
    """

    def __init__(self, schedules: Iterable[Schedule] = ()) -> None:
        self.schedules: List[Schedule] = list(schedules)
        self._ranked: List[Tuple[_Bounds, Schedule]] = []
        for schedule in self.schedules:
            bounds = schedule_bounds(schedule)
            if bounds is None:
                logging.warning(
                    "Skipping schedule %s with malformed bounds %r..%r",
                    schedule.id,
                    schedule.start_date,
                    schedule.end_date,
                )
                continue
            self._ranked.append((_Bounds(*bounds), schedule))
        # stable: equal start dates keep catalog order
        self._ranked.sort(key=lambda item: item[0].start, reverse=True)

    def __len__(self) -> int:
        return len(self.schedules)

    def schedule_for(self, d: date) -> Optional[Schedule]:
        for bounds, schedule in self._ranked:
            if bounds.start <= d <= bounds.end:
                return schedule
        return None

    def templates_for(self, d: date) -> List[SessionTemplate]:
        schedule = self.schedule_for(d)
        if schedule is None:
            return []
        return list(schedule.sessions.get(dates.weekday_index(d), []))

    def earliest_start(self) -> Optional[date]:
        if not self._ranked:
            return None
        return min(bounds.start for bounds, _ in self._ranked)

    def active_schedule(self) -> Optional[Schedule]:
        """The open-ended schedule with the latest start date."""
        for bounds, schedule in self._ranked:
            if bounds.end == OPEN_END:
                return schedule
        return None

    def validate(self) -> List[str]:
        """Describe catalog problems: malformed bounds and competing open ends."""
        problems = []
        ranked_ids = {s.id for _, s in self._ranked}
        for schedule in self.schedules:
            if schedule.id not in ranked_ids:
                problems.append(f"schedule {schedule.id} has malformed bounds")
        open_ended = [s.id for b, s in self._ranked if b.end == OPEN_END]
        if len(open_ended) > 1:
            problems.append("more than one open-ended schedule: " + ", ".join(open_ended))
        for bounds, schedule in self._ranked:
            if bounds.end < bounds.start:
                problems.append(f"schedule {schedule.id} ends before it starts")
        return problems

    def deactivate(self, schedule_id: str, on: date) -> "ScheduleCatalog":
        """Close a schedule so that its last effective day is the day before ``on``."""
        end = dates.date_key(on - timedelta(days=1))
        return ScheduleCatalog(
            replace(s, end_date=end) if s.id == schedule_id else s for s in self.schedules
        )
