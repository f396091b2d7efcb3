"""Data models for centers, schedules, sessions and attendance."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class YearlyConfig:
    work_days: FrozenSet[int] = frozenset()  # 1=Monday ... 7=Sunday
    available_vacation_days: int = 0


@dataclass(frozen=True)
class LocalHoliday:
    month: int  # 1-12
    day: int
    name: str


@dataclass(frozen=True)
class Center:
    id: str
    name: str
    is_active: bool = True
    default_config: YearlyConfig = field(default_factory=YearlyConfig)
    yearly_configs: Dict[int, YearlyConfig] = field(default_factory=dict)
    local_holidays: List[LocalHoliday] = field(default_factory=list)

    def config_for(self, fiscal_year: int) -> YearlyConfig:
        return self.yearly_configs.get(fiscal_year, self.default_config)


@dataclass(frozen=True)
class SessionTemplate:
    time: str  # "HH:MM"
    program: str
    center: str = ""


@dataclass
class Schedule:
    id: str
    start_date: str
    end_date: Optional[str] = None
    sessions: Dict[int, List[SessionTemplate]] = field(default_factory=dict)
    name: Optional[str] = None

    @property
    def is_open_ended(self) -> bool:
        return not self.end_date


class SessionKind(enum.Enum):
    GENERATED = "generated"
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class Session:
    """A resolved class session.

    ``kind`` is the single source of truth for how the session came to be;
    the ``is_custom``/``is_deleted`` flags stored in override documents are
    derived from it.
    """

    time: str
    program: str
    center: str = ""
    kind: SessionKind = SessionKind.GENERATED
    reason: str = ""
    original: Optional["Session"] = None

    @classmethod
    def generated(cls, template: SessionTemplate) -> "Session":
        return cls(template.time, template.program, template.center)

    @property
    def is_custom(self) -> bool:
        return self.kind is not SessionKind.GENERATED

    @property
    def is_deleted(self) -> bool:
        return self.kind is SessionKind.DELETED

    @property
    def delete_reason(self) -> str:
        return self.reason if self.kind is SessionKind.DELETED else ""

    @property
    def add_reason(self) -> str:
        if self.kind in (SessionKind.ADDED, SessionKind.MODIFIED):
            return self.reason
        return ""

    def as_template(self) -> SessionTemplate:
        return SessionTemplate(self.time, self.program, self.center)

    def with_kind(self, kind: SessionKind, reason: str = "", **changes) -> "Session":
        return replace(self, kind=kind, reason=reason, **changes)


class ChangeAction(enum.Enum):
    DELETED = "deleted"
    MODIFIED = "modified"
    ADDED = "added"


@dataclass(frozen=True)
class SessionChangeRecord:
    session_index: int
    action: ChangeAction
    reason: str
    timestamp: datetime
    original_session: Optional[SessionTemplate] = None
    new_session: Optional[SessionTemplate] = None


@dataclass(frozen=True)
class ExceptionDate:
    date: date
    reason: str


@dataclass(frozen=True)
class AttendanceRecord:
    date: str
    activity: str
    time: str
    sala: str = ""
    center: str = ""


@dataclass(frozen=True)
class RankingEntry:
    rank: int
    total: int
    percentile: int


@dataclass(frozen=True)
class RankingCache:
    total_sessions: RankingEntry
    programs: Dict[str, RankingEntry]
    updated_at: str


@dataclass
class Member:
    """A gym member and their attendance log.

    ``sessions`` is stored as a tuple; assigning it (or ``as_of``) refreshes
    the derived totals and dates.
    """

    id: str
    name: str = ""
    center: str = ""
    sessions: Tuple[AttendanceRecord, ...] = ()
    ranking_cache: Optional[RankingCache] = None
    as_of: Optional[date] = None
    total_sessions: int = field(init=False, default=0)
    first_session: str = field(init=False, default="")
    last_session: str = field(init=False, default="")
    days_since_last_session: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self._recompute()

    def __setattr__(self, name: str, value) -> None:
        if name == "sessions":
            value = tuple(value)
        super().__setattr__(name, value)
        # __init__ assigns sessions before as_of; __post_init__ covers that pass
        if name in ("sessions", "as_of") and "as_of" in self.__dict__:
            self._recompute()

    def replace_sessions(self, sessions: Iterable[AttendanceRecord]) -> None:
        self.sessions = sessions

    def _recompute(self) -> None:
        dates = sorted(s.date for s in self.sessions if s.date)
        self.total_sessions = len(self.sessions)
        self.first_session = dates[0] if dates else ""
        self.last_session = dates[-1] if dates else ""
        self.days_since_last_session = 0
        if self.last_session:
            try:
                last = date.fromisoformat(self.last_session)
            except ValueError:
                return
            ref = self.as_of or date.today()
            self.days_since_last_session = (ref - last).days


@dataclass(frozen=True)
class Discrepancy:
    date: str
    time: str
    center: str
    gym_program: str
    calendar_program: str
    user_names: Tuple[str, ...] = ()
    count: int = 1

    @property
    def user_name(self) -> str:
        return ", ".join(self.user_names)
