"""Aggregate statistics over resolved classes and reconciled attendance."""

from __future__ import annotations

import calendar
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from . import dates
from .models import AttendanceRecord, Discrepancy, Member
from .programs import UNKNOWN
from .reconcile import AttendanceReconciler, DiscrepancyLog, centers_match
from .resolver import ScheduleResolver
from .util import round_half_up

ALL_CENTERS = "all"
DEFAULT_RANGE_START = date(2020, 1, 1)
TREND_THRESHOLD = 0.5
ACTIVE_WINDOW_DAYS = 30
INACTIVE_AFTER_DAYS = 60
TOP_USERS = 10

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
TIME_SLOTS = ("morning", "afternoon", "evening")


@dataclass(frozen=True)
class ClassOccurrence:
    date: str
    program: str
    time: str
    center: str


@dataclass(frozen=True)
class YearStat:
    year: str
    count: int
    monthly_average: float = 0.0


@dataclass(frozen=True)
class MonthStat:
    month: str  # YYYY-MM
    classes: int
    attendances: int


@dataclass(frozen=True)
class YearlyTrend:
    years: List[YearStat]
    trend: str  # up | down | stable
    best_year: Optional[YearStat] = None
    worst_year: Optional[YearStat] = None


@dataclass(frozen=True)
class UserCount:
    member_id: str
    name: str
    count: int
    days_since_last_session: int = 0


@dataclass
class StatsReport:
    total_users: int = 0
    total_sessions: int = 0
    total_attendances: int = 0
    avg_attendees_per_class: float = 0
    avg_attendances_per_year: float = 0
    active_users: int = 0
    recurrent_users: int = 0
    retention_rate: float = 0
    yearly_data: List[YearStat] = field(default_factory=list)
    yearly_attendance_data: List[YearStat] = field(default_factory=list)
    yearly_trend: Optional[YearlyTrend] = None
    monthly_data: List[MonthStat] = field(default_factory=list)
    monthly_growth: float = 0
    monthly_averages: Dict[int, int] = field(default_factory=dict)
    new_users_by_year: Dict[str, int] = field(default_factory=dict)
    program_data: List[Tuple[str, int]] = field(default_factory=list)
    center_count: Dict[str, int] = field(default_factory=dict)
    classes_by_weekday: List[Tuple[str, int]] = field(default_factory=list)
    most_popular_day: Optional[Tuple[str, int]] = None
    preferred_time_slot: str = "N/A"
    top_users: List[UserCount] = field(default_factory=list)
    inactive_users: List[UserCount] = field(default_factory=list)
    program_attendances_by_month: Dict[str, Dict[str, int]] = field(default_factory=dict)
    program_attendances_by_year: Dict[str, Dict[str, int]] = field(default_factory=dict)
    top_users_by_program: Dict[str, List[UserCount]] = field(default_factory=dict)
    calendar_discrepancies: List[Discrepancy] = field(default_factory=list)

    @property
    def trend(self) -> str:
        return self.yearly_trend.trend if self.yearly_trend else "stable"


def _safe_date(key: str) -> Optional[date]:
    return dates.parse_date_key(key)


def months_elapsed(today: date) -> float:
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    return max(1.0, today.month + today.day / days_in_month)


def yearly_trend(date_keys: Iterable[str], today: date) -> YearlyTrend:
    """Compare the two most recent years by their monthly averages.

    The current year is averaged over the elapsed fraction of the year;
    past years over the number of distinct months that had any activity.
    """
    per_year: Counter = Counter()
    months: Dict[str, set] = defaultdict(set)
    for key in date_keys:
        d = _safe_date(key)
        if d is None:
            continue
        per_year[str(d.year)] += 1
        months[str(d.year)].add(d.month)

    years: List[YearStat] = []
    for year in sorted(per_year):
        if year == str(today.year):
            span = months_elapsed(today)
        else:
            span = max(1, len(months[year]))
        count = per_year[year]
        years.append(YearStat(year, count, round_half_up(count / span, 1)))

    trend = "stable"
    if len(years) >= 2:
        diff = years[-1].monthly_average - years[-2].monthly_average
        if diff > TREND_THRESHOLD:
            trend = "up"
        elif diff < -TREND_THRESHOLD:
            trend = "down"

    best = max(years, key=lambda y: y.monthly_average) if years else None
    worst = min(years, key=lambda y: y.monthly_average) if years else None
    return YearlyTrend(years, trend, best, worst)


def time_slot(time_value: str) -> Optional[str]:
    try:
        hour = int(time_value.strip().split(":")[0])
    except (ValueError, AttributeError):
        return None
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def last_months(today: date, count: int = 12) -> List[str]:
    result = []
    year, month = today.year, today.month
    for _ in range(count):
        result.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(result))


def _by_year(keys: Iterable[str]) -> List[YearStat]:
    counts = Counter(key[:4] for key in keys if key)
    return [YearStat(year, counts[year]) for year in sorted(counts)]


class StatisticsAggregator:
    """Compute dashboard statistics from scratch on every call."""

    def __init__(self, resolver: ScheduleResolver) -> None:
        self.resolver = resolver
        self.reconciler = AttendanceReconciler(resolver.resolve)

    def range_start(self) -> date:
        return self.resolver.catalog.earliest_start() or DEFAULT_RANGE_START

    def resolved_classes(self, today: date) -> List[ClassOccurrence]:
        classes = []
        for d in dates.iter_days(self.range_start(), today):
            key = dates.date_key(d)
            for session in self.resolver.active_sessions(d):
                classes.append(ClassOccurrence(key, session.program, session.time, session.center or "N/A"))
        return classes

    def aggregate(
        self,
        members: Iterable[Member],
        center_filter: str = ALL_CENTERS,
        today: Optional[date] = None,
        inactive_sort: str = "desc",
    ) -> StatsReport:
        today = today or date.today()
        members = list(members)
        filtering = center_filter != ALL_CENTERS

        def in_center(center: str) -> bool:
            return not filtering or centers_match(center, center_filter)

        all_classes = self.resolved_classes(today)
        classes = [c for c in all_classes if in_center(c.center)]
        attendances: List[Tuple[Member, AttendanceRecord]] = [
            (m, s) for m in members for s in m.sessions if in_center(s.center)
        ]
        logging.info(
            "Aggregating %d classes and %d attendances (center=%s)",
            len(classes),
            len(attendances),
            center_filter,
        )

        report = StatsReport()
        report.total_sessions = len(classes)
        report.total_attendances = len(attendances)
        report.total_users = (
            len([m for m in members if any(in_center(s.center) for s in m.sessions)])
            if filtering
            else len(members)
        )

        report.yearly_data = _by_year(c.date for c in classes)
        report.yearly_attendance_data = _by_year(s.date for _, s in attendances)
        if report.yearly_attendance_data:
            report.avg_attendances_per_year = round_half_up(
                report.total_attendances / len(report.yearly_attendance_data), 1
            )
        report.yearly_trend = yearly_trend((c.date for c in classes), today)

        self._monthly(report, classes, attendances, today)
        self._attendees(report, attendances)
        self._users(report, members, in_center, filtering, today, inactive_sort)
        self._classes(report, classes, all_classes)
        self._programs(report, attendances)
        return report

    def _monthly(self, report, classes, attendances, today) -> None:
        class_months = Counter(c.date[:7] for c in classes)
        attendance_months = Counter(s.date[:7] for _, s in attendances)
        report.monthly_data = [
            MonthStat(ym, class_months[ym], attendance_months[ym]) for ym in last_months(today)
        ]
        current = report.monthly_data[-1].classes
        previous = report.monthly_data[-2].classes
        if previous > 0:
            report.monthly_growth = round_half_up((current - previous) / previous * 100, 1)

        buckets: Dict[int, List[int]] = defaultdict(list)
        for ym, count in attendance_months.items():
            try:
                buckets[int(ym[5:7])].append(count)
            except ValueError:
                continue
        report.monthly_averages = {
            month: round_half_up(sum(buckets[month]) / len(buckets[month])) if buckets[month] else 0
            for month in range(1, 13)
        }

    def _attendees(self, report, attendances) -> None:
        per_class = Counter((s.date, s.time, s.activity, s.center) for _, s in attendances)
        if per_class:
            report.avg_attendees_per_class = round_half_up(sum(per_class.values()) / len(per_class), 1)

    def _users(self, report, members, in_center, filtering, today, inactive_sort) -> None:
        counts = [
            UserCount(m.id, m.name, sum(1 for s in m.sessions if in_center(s.center)))
            for m in members
        ]
        report.recurrent_users = sum(1 for u in counts if u.count > 1)
        if report.total_users > 0:
            report.retention_rate = round_half_up(report.recurrent_users / report.total_users * 100, 1)
        report.top_users = sorted(counts, key=lambda u: u.count, reverse=True)[:TOP_USERS]

        window_start = today - timedelta(days=ACTIVE_WINDOW_DAYS)
        inactive = []
        for m in members:
            session_dates = [(s, _safe_date(s.date)) for s in m.sessions]
            recent = [s for s, d in session_dates if d is not None and d >= window_start]
            if recent and (not filtering or any(in_center(s.center) for s in recent)):
                report.active_users += 1
            valid = [d for _, d in session_dates if d is not None]
            if not valid:
                continue
            first_year = str(min(valid).year)
            report.new_users_by_year[first_year] = report.new_users_by_year.get(first_year, 0) + 1
            idle = (today - max(valid)).days
            if idle > INACTIVE_AFTER_DAYS and (not filtering or any(in_center(s.center) for s in m.sessions)):
                inactive.append(UserCount(m.id, m.name, len(m.sessions), idle))
        inactive.sort(key=lambda u: u.days_since_last_session, reverse=inactive_sort == "desc")
        report.inactive_users = inactive
        report.new_users_by_year = dict(sorted(report.new_users_by_year.items()))

    def _classes(self, report, classes, all_classes) -> None:
        programs = Counter(c.program for c in classes)
        report.program_data = sorted(programs.items(), key=lambda item: (-item[1], item[0]))
        report.center_count = dict(Counter(c.center for c in all_classes))

        weekdays = Counter()
        slots = Counter()
        for c in classes:
            d = _safe_date(c.date)
            if d is not None:
                weekdays[dates.weekday_index(d)] += 1
            slot = time_slot(c.time)
            if slot:
                slots[slot] += 1
        report.classes_by_weekday = [(WEEKDAY_NAMES[i - 1], weekdays[i]) for i in range(1, 8)]
        if weekdays:
            best = max(range(1, 8), key=lambda i: weekdays[i])
            report.most_popular_day = (WEEKDAY_NAMES[best - 1], weekdays[best])
        if slots:
            report.preferred_time_slot = max(TIME_SLOTS, key=lambda s: slots[s])

    def _programs(self, report, attendances) -> None:
        by_month: Dict[str, Counter] = defaultdict(Counter)
        by_year: Dict[str, Counter] = defaultdict(Counter)
        per_member: Dict[str, Counter] = defaultdict(Counter)
        names: Dict[str, str] = {}
        log = DiscrepancyLog()
        for member, record in attendances:
            item = self.reconciler.reconcile(record, member.name)
            if item.is_discrepancy:
                log.add(item)
            program = item.canonical_program
            if program == UNKNOWN:
                continue
            by_month[program][record.date[:7]] += 1
            by_year[program][record.date[:4]] += 1
            per_member[program][member.id] += 1
            names[member.id] = member.name

        report.program_attendances_by_month = {p: dict(sorted(c.items())) for p, c in sorted(by_month.items())}
        report.program_attendances_by_year = {p: dict(sorted(c.items())) for p, c in sorted(by_year.items())}
        report.top_users_by_program = {
            program: [UserCount(mid, names[mid], n) for mid, n in counts.most_common(TOP_USERS)]
            for program, counts in sorted(per_member.items())
        }
        report.calendar_discrepancies = log.entries()
