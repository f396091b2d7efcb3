"""Match raw attendance records against the resolved calendar."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import programs
from .models import AttendanceRecord, Discrepancy, Member, Session

_WHITESPACE_RE = re.compile(r"\s+")

CENTER_VARIANTS = {
    "arbucies": ["arbucies", "arbúcies"],
    "santhilari": ["santhilari", "sant-hilari", "sant hilari"],
}


def clean_time(value: Optional[str]) -> str:
    """``"10:00 - 11:00\\n"`` -> ``"10:00"``."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub("", value).split("-", 1)[0]


def fold_center(center: Optional[str]) -> str:
    if not center:
        return ""
    folded = unicodedata.normalize("NFKD", center.lower())
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return _WHITESPACE_RE.sub("", folded).replace("-", "")


def centers_match(a: Optional[str], b: Optional[str]) -> bool:
    fa, fb = fold_center(a), fold_center(b)
    if fa == fb:
        return True
    for variants in CENTER_VARIANTS.values():
        folded = {fold_center(v) for v in variants}
        if fa in folded and fb in folded:
            return True
    return False


@dataclass(frozen=True)
class Reconciliation:
    record: AttendanceRecord
    canonical_program: str
    is_in_calendar: bool
    session: Optional[Session] = None
    member_name: str = ""

    @property
    def is_discrepancy(self) -> bool:
        if not self.is_in_calendar or not self.record.activity:
            return False
        return programs.normalize(self.canonical_program) != programs.normalize(self.record.activity)


class DiscrepancyLog:
    """Coalesce discrepancies per ``(date, time, center)`` slot."""

    def __init__(self) -> None:
        self._slots: Dict[Tuple[str, str, str], dict] = {}

    def __len__(self) -> int:
        return len(self._slots)

    def add(self, item: Reconciliation) -> None:
        record = item.record
        key = (record.date, record.time, record.center)
        slot = self._slots.get(key)
        if slot is None:
            self._slots[key] = {
                "gym_program": record.activity,
                "calendar_program": item.canonical_program,
                "names": [item.member_name] if item.member_name else [],
                "count": 1,
            }
            return
        slot["count"] += 1
        if item.member_name and item.member_name not in slot["names"]:
            slot["names"].append(item.member_name)

    def entries(self) -> List[Discrepancy]:
        result = [
            Discrepancy(
                date=key[0],
                time=key[1],
                center=key[2],
                gym_program=slot["gym_program"],
                calendar_program=slot["calendar_program"],
                user_names=tuple(slot["names"]),
                count=slot["count"],
            )
            for key, slot in self._slots.items()
        ]
        result.sort(key=lambda d: d.date)
        return result


class AttendanceReconciler:
    def __init__(self, resolve: Callable[[str], List[Session]]) -> None:
        self.resolve = resolve

    def find_session(self, record: AttendanceRecord) -> Optional[Session]:
        try:
            sessions = self.resolve(record.date)
        except ValueError:
            logging.warning("Attendance record with malformed date %r", record.date)
            return None
        start = clean_time(record.time)
        for session in sessions:
            if clean_time(session.time) != start:
                continue
            if not record.center or not session.center or centers_match(session.center, record.center):
                return session
        return None

    def reconcile(self, record: AttendanceRecord, member_name: str = "") -> Reconciliation:
        session = self.find_session(record)
        # a calendar slot without a usable program counts as not found
        if session is not None and programs.normalize(session.program):
            return Reconciliation(record, session.program, True, session, member_name)
        canonical = programs.normalize(record.activity) or programs.UNKNOWN
        return Reconciliation(record, canonical, False, None, member_name)

    def reconcile_members(self, members: Iterable[Member]) -> Tuple[List[Reconciliation], DiscrepancyLog]:
        results: List[Reconciliation] = []
        log = DiscrepancyLog()
        for member in members:
            for record in member.sessions:
                item = self.reconcile(record, member.name)
                results.append(item)
                if item.is_discrepancy:
                    log.add(item)
        return results, log
