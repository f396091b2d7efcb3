"""Observable input snapshots and the derived computation chain."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from . import programs
from .exception_calendar import ExceptionCalendar
from .models import AttendanceRecord, Member
from .overrides import OverrideStore
from .reconcile import AttendanceReconciler
from .resolver import ScheduleResolver
from .schedules import ScheduleCatalog
from .stats import StatisticsAggregator, StatsReport

SCHEDULES = "schedules"
EXCEPTIONS = "exceptions"
OVERRIDES = "overrides"
MEMBERS = "members"
SOURCES = (SCHEDULES, EXCEPTIONS, OVERRIDES, MEMBERS)

Listener = Callable[[str, Any], None]


class SnapshotStore:
    """Latest snapshot per input source, with one subscription point.

    Publishers replace a whole snapshot; subscribers are told which source
    changed and receive the new value.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[str, Any] = {
            SCHEDULES: ScheduleCatalog(),
            EXCEPTIONS: ExceptionCalendar(),
            OVERRIDES: OverrideStore(),
            MEMBERS: [],
        }
        self._listeners: List[Listener] = []

    def get(self, source: str) -> Any:
        return self._snapshots[source]

    def publish(self, source: str, value: Any) -> None:
        if source not in SOURCES:
            raise ValueError(f"Unknown source: {source}")
        self._snapshots[source] = value
        logging.debug("Snapshot for %s replaced", source)
        for listener in list(self._listeners):
            listener(source, value)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class CalendarEngine:
    """Memoized resolver -> report chain over a SnapshotStore.

    Any emission drops every derived value; the next read recomputes the
    whole chain from the current snapshots.
    """

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store
        self._resolver: Optional[ScheduleResolver] = None
        self._reports: Dict[tuple, StatsReport] = {}
        self.recomputations = 0
        self._unsubscribe = store.subscribe(self._invalidate)

    def close(self) -> None:
        self._unsubscribe()

    def _invalidate(self, source: str, _value: Any) -> None:
        logging.debug("Invalidating derived calendar after %s change", source)
        self._resolver = None
        self._reports.clear()

    @property
    def resolver(self) -> ScheduleResolver:
        if self._resolver is None:
            self.recomputations += 1
            self._resolver = ScheduleResolver(
                self.store.get(SCHEDULES),
                self.store.get(EXCEPTIONS),
                self.store.get(OVERRIDES),
            )
        return self._resolver

    @property
    def reconciler(self) -> AttendanceReconciler:
        return AttendanceReconciler(self.resolver.resolve)

    def classify(self, record: AttendanceRecord) -> str:
        """Canonical program for an attendance record, calendar first."""
        canonical = self.reconciler.reconcile(record).canonical_program
        return programs.normalize(canonical) or programs.UNKNOWN

    @property
    def members(self) -> List[Member]:
        return list(self.store.get(MEMBERS))

    def edit_sessions(self, edit: Callable[[ScheduleResolver], Any]) -> Any:
        """Run a staff edit through the resolver, then re-publish the overrides."""
        result = edit(self.resolver)
        self.store.publish(OVERRIDES, self.store.get(OVERRIDES))
        return result

    def report(self, center_filter: str = "all", today: Optional[date] = None) -> StatsReport:
        today = today or date.today()
        key = (center_filter, today)
        if key not in self._reports:
            aggregator = StatisticsAggregator(self.resolver)
            self._reports[key] = aggregator.aggregate(self.members, center_filter, today)
        return self._reports[key]
