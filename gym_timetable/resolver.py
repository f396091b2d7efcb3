"""Resolve the sessions that take place on a calendar date."""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List

from . import dates
from .exception_calendar import ExceptionCalendar
from .models import Session
from .overrides import OverrideStore
from .schedules import ScheduleCatalog


class ScheduleResolver:
    """Compose overrides, exception days and timetables for a date.

    Precedence, highest first:

    1. a manual override list for the date, returned as stored (including
       soft-deleted entries);
    2. an official holiday, general vacation or any center closure, which
       yields no sessions;
    3. the weekday's sessions of the most recent schedule covering the date;
    4. nothing.
    """

    def __init__(
        self,
        catalog: ScheduleCatalog,
        exceptions: ExceptionCalendar,
        overrides: OverrideStore,
    ) -> None:
        self.catalog = catalog
        self.exceptions = exceptions
        self.overrides = overrides

    def resolve(self, day: date | str) -> List[Session]:
        d = dates.as_date(day)
        override = self.overrides.get(d)
        if override is not None:
            return override
        if self.exceptions.is_exception(d):
            logging.debug("%s is an exception day: %s", d, self.exceptions.reason_for(d))
            return []
        return [Session.generated(t) for t in self.catalog.templates_for(d)]

    __call__ = resolve

    def active_sessions(self, day: date | str) -> List[Session]:
        return [s for s in self.resolve(day) if not s.is_deleted]

    def resolve_range(self, start: date, end: date) -> Dict[date, List[Session]]:
        return {d: self.resolve(d) for d in dates.iter_days(start, end)}

    # Staff edits start from whatever the date currently resolves to.

    def delete_session(self, day: date | str, index: int, reason: str) -> List[Session]:
        d = dates.as_date(day)
        return self.overrides.delete_session(d, self.resolve(d), index, reason)

    def modify_session(self, day: date | str, index: int, new, reason: str) -> List[Session]:
        d = dates.as_date(day)
        return self.overrides.modify_session(d, self.resolve(d), index, new, reason)

    def add_session(self, day: date | str, new, reason: str) -> List[Session]:
        d = dates.as_date(day)
        return self.overrides.add_session(d, self.resolve(d), new, reason)
