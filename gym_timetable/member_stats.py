"""Per-member progress statistics."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple

from . import dates
from .models import Member
from .stats import YearlyTrend, yearly_trend
from .util import round_half_up

INACTIVE_AFTER_DAYS = 60
IMPROVEMENT_THRESHOLD = 10

DISCIPLINE_LEVELS = [
    (20, "needs improvement"),
    (40, "could do better"),
    (60, "good"),
    (80, "very good"),
]


@dataclass(frozen=True)
class Improvement:
    last_month: int
    previous_quarter_average: float
    trend: str
    percentage_change: int


@dataclass(frozen=True)
class Discipline:
    score: int
    level: str
    recent_score: int = 0
    historic_score: int = 0
    last_month_sessions: int = 0
    monthly_average: float = 0
    best_year_sessions: int = 0
    current_year_projection: int = 0


@dataclass(frozen=True)
class MemberProgress:
    monthly_frequency: List[Tuple[str, int]]
    days_between_sessions: int
    yearly: YearlyTrend
    improvement: Improvement
    discipline: Discipline


def _session_dates(member: Member) -> List[date]:
    return sorted(d for d in (dates.parse_date_key(s.date) for s in member.sessions) if d)


def monthly_frequency(member: Member) -> List[Tuple[str, int]]:
    counts = Counter(d.strftime("%Y-%m") for d in _session_dates(member))
    return sorted(counts.items())


def days_between_sessions(member: Member) -> int:
    session_dates = _session_dates(member)
    if len(session_dates) <= 1:
        return 0
    span = (session_dates[-1] - session_dates[0]).days
    return round_half_up(span / (len(session_dates) - 1))


def improvement(member: Member, today: date) -> Improvement:
    """Sessions in the last 30 days against the monthly average of the 90 before."""
    month_ago = today - timedelta(days=30)
    four_months_ago = today - timedelta(days=120)
    session_dates = _session_dates(member)
    last_month = sum(1 for d in session_dates if month_ago <= d <= today)
    previous = sum(1 for d in session_dates if four_months_ago <= d < month_ago)
    average = previous / 3
    if average:
        change = round_half_up((last_month - average) / average * 100)
    else:
        change = 100 if last_month > 0 else 0
    trend = "stable"
    if change > IMPROVEMENT_THRESHOLD:
        trend = "up"
    elif change < -IMPROVEMENT_THRESHOLD:
        trend = "down"
    return Improvement(last_month, round_half_up(average, 1), trend, change)


def discipline_level(score: int) -> str:
    for limit, label in DISCIPLINE_LEVELS:
        if score < limit:
            return label
    return "excellent"


def discipline(member: Member, today: date) -> Discipline:
    """Blend recent regularity (70%) with this year's pace against the best year (30%)."""
    session_dates = _session_dates(member)
    if not session_dates:
        return Discipline(0, discipline_level(0))

    per_year = Counter(d.year for d in session_dates)
    best_year = max(per_year.values())
    idle = (today - session_dates[-1]).days
    if idle > INACTIVE_AFTER_DAYS:
        return Discipline(0, discipline_level(0), best_year_sessions=best_year)
    if len(session_dates) < 2:
        return Discipline(20, discipline_level(20), 20, 20, 1, 0, 1, 0)

    month_ago = today - timedelta(days=30)
    six_months_ago = today - timedelta(days=180)
    last_month = sum(1 for d in session_dates if month_ago <= d <= today)
    historical = sum(1 for d in session_dates if six_months_ago <= d < month_ago)
    if historical >= 3:
        monthly_average = historical / 5
    else:
        months_since_first = max(1.0, (today - session_dates[0]).days / 30)
        monthly_average = len(session_dates) / months_since_first

    if monthly_average > 0:
        recent = last_month / monthly_average * 100
    else:
        recent = 100.0 if last_month > 0 else 0.0
    recent = max(0.0, min(100.0, recent))

    elapsed = max(1, (today - date(today.year, 1, 1)).days)
    projection = round_half_up(per_year.get(today.year, 0) / elapsed * 365)
    historic = projection / best_year * 100 if best_year else 100.0
    historic = max(0.0, min(100.0, historic))

    score = round_half_up(recent * 0.7 + historic * 0.3)
    return Discipline(
        score,
        discipline_level(score),
        round_half_up(recent),
        round_half_up(historic),
        last_month,
        round_half_up(monthly_average, 1),
        best_year,
        projection,
    )


def member_progress(member: Member, today: Optional[date] = None) -> MemberProgress:
    today = today or date.today()
    return MemberProgress(
        monthly_frequency=monthly_frequency(member),
        days_between_sessions=days_between_sessions(member),
        yearly=yearly_trend((s.date for s in member.sessions), today),
        improvement=improvement(member, today),
        discipline=discipline(member, today),
    )
