"""Translate document-store records to models and back.

Documents use the dashboard's camelCase field names. Local holiday months
are stored zero-based (January = 0); models use 1-12.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from . import dates
from .exception_calendar import ExceptionCalendar
from .models import (
    AttendanceRecord,
    Center,
    ChangeAction,
    LocalHoliday,
    Member,
    RankingCache,
    RankingEntry,
    Schedule,
    Session,
    SessionChangeRecord,
    SessionKind,
    SessionTemplate,
    YearlyConfig,
)
from .overrides import OverrideStore

CLOSURES_PREFIX = "closures"


def _yearly_config(doc: Optional[dict]) -> YearlyConfig:
    doc = doc or {}
    return YearlyConfig(
        work_days=frozenset(int(d) for d in doc.get("workDays") or []),
        available_vacation_days=int(doc.get("availableVacationDays") or 0),
    )


def center_from_doc(doc: dict) -> Center:
    # older documents keep the work-day config at the top level
    default = doc.get("defaultConfig")
    if default is None:
        default = {
            "workDays": doc.get("workDays") or [],
            "availableVacationDays": doc.get("availableVacationDays") or 0,
        }
    yearly = {}
    for year, config in (doc.get("yearlyConfigs") or {}).items():
        try:
            yearly[int(year)] = _yearly_config(config)
        except ValueError:
            logging.warning("Ignoring yearly config for %r in center %s", year, doc.get("id"))
    return Center(
        id=doc["id"],
        name=doc.get("name", doc["id"]),
        is_active=bool(doc.get("isActive", True)),
        default_config=_yearly_config(default),
        yearly_configs=yearly,
        local_holidays=[
            LocalHoliday(int(h["month"]) + 1, int(h["day"]), h.get("name", ""))
            for h in doc.get("localHolidays") or []
        ],
    )


def centers_from_doc(doc: Optional[dict]) -> List[Center]:
    return [center_from_doc(c) for c in (doc or {}).get("centers") or []]


def template_from_doc(doc: dict) -> SessionTemplate:
    return SessionTemplate(
        time=str(doc.get("time", "")),
        program=str(doc.get("program", "")),
        center=str(doc.get("center") or ""),
    )


def template_to_doc(template: SessionTemplate) -> dict:
    return {"time": template.time, "program": template.program, "center": template.center}


def schedule_from_doc(doc: dict) -> Schedule:
    sessions: Dict[int, List[SessionTemplate]] = {}
    for weekday, entries in (doc.get("sessions") or {}).items():
        try:
            index = int(weekday)
        except ValueError:
            logging.warning("Ignoring weekday key %r in schedule %s", weekday, doc.get("id"))
            continue
        # a native Sunday=0 key belongs to weekday 7
        sessions[7 if index == 0 else index] = [template_from_doc(e) for e in entries or []]
    return Schedule(
        id=str(doc.get("id", "")),
        start_date=doc.get("startDate") or "",
        end_date=doc.get("endDate") or None,
        sessions=sessions,
        name=doc.get("name"),
    )


def schedules_from_doc(doc: Optional[dict]) -> List[Schedule]:
    return [schedule_from_doc(s) for s in (doc or {}).get("schedules") or []]


def exceptions_from_doc(doc: Optional[dict]) -> ExceptionCalendar:
    doc = doc or {}

    def date_map(value: Any) -> Dict[str, str]:
        return value if isinstance(value, dict) else {}

    closures = {
        key[len(CLOSURES_PREFIX) :]: date_map(value)
        for key, value in doc.items()
        if key.startswith(CLOSURES_PREFIX) and len(key) > len(CLOSURES_PREFIX)
    }
    return ExceptionCalendar.from_maps(
        official_holidays=date_map(doc.get("officialHolidays")),
        vacations=date_map(doc.get("vacations")),
        closures=closures,
    )


def _legacy_kind(doc: dict, has_original: bool) -> SessionKind:
    if doc.get("isDeleted"):
        return SessionKind.DELETED
    if doc.get("isCustom"):
        return SessionKind.MODIFIED if has_original else SessionKind.ADDED
    return SessionKind.GENERATED


def session_from_doc(doc: dict) -> Session:
    template = template_from_doc(doc)
    kind_value = doc.get("kind")
    original_doc = doc.get("originalSession")
    original = Session.generated(template_from_doc(original_doc)) if original_doc else None
    try:
        kind = SessionKind(kind_value) if kind_value else _legacy_kind(doc, original is not None)
    except ValueError:
        logging.warning("Unknown session kind %r, using legacy flags", kind_value)
        kind = _legacy_kind(doc, original is not None)
    if kind is SessionKind.DELETED:
        reason = doc.get("deleteReason") or ""
    else:
        reason = doc.get("addReason") or ""
    return Session(template.time, template.program, template.center, kind, reason, original)


def session_to_doc(session: Session) -> dict:
    doc = template_to_doc(session.as_template())
    doc.update(
        kind=session.kind.value,
        isCustom=session.is_custom,
        isDeleted=session.is_deleted,
    )
    if session.delete_reason:
        doc["deleteReason"] = session.delete_reason
    if session.add_reason:
        doc["addReason"] = session.add_reason
    if session.original is not None:
        doc["originalSession"] = template_to_doc(session.original.as_template())
    return doc


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        return datetime.min
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logging.warning("Malformed change timestamp %r", value)
        return datetime.min


def change_from_doc(doc: dict) -> SessionChangeRecord:
    original = template_from_doc(doc["originalSession"]) if doc.get("originalSession") else None
    new = template_from_doc(doc["newSession"]) if doc.get("newSession") else None
    try:
        action = ChangeAction(doc.get("action"))
    except ValueError:
        # the sessions carried by the record tell which edit it was
        if original and new:
            action = ChangeAction.MODIFIED
        elif new:
            action = ChangeAction.ADDED
        else:
            action = ChangeAction.DELETED
        logging.warning("Unknown change action %r, recorded as %s", doc.get("action"), action.value)
    return SessionChangeRecord(
        session_index=int(doc.get("sessionIndex") or 0),
        action=action,
        reason=doc.get("reason", ""),
        timestamp=_parse_timestamp(doc.get("timestamp")),
        original_session=original,
        new_session=new,
    )


def change_to_doc(record: SessionChangeRecord) -> dict:
    doc = {
        "sessionIndex": record.session_index,
        "action": record.action.value,
        "reason": record.reason,
        "timestamp": record.timestamp.isoformat(),
    }
    if record.original_session is not None:
        doc["originalSession"] = template_to_doc(record.original_session)
    if record.new_session is not None:
        doc["newSession"] = template_to_doc(record.new_session)
    return doc


def overrides_from_docs(
    custom_sessions: Optional[Dict[str, dict]],
    session_changes: Optional[Dict[str, dict]] = None,
) -> OverrideStore:
    overrides: Dict[date, List[Session]] = {}
    for key, doc in (custom_sessions or {}).items():
        d = dates.parse_date_key(key)
        if d is None:
            logging.warning("Ignoring override with malformed date %r", key)
            continue
        overrides[d] = [session_from_doc(s) for s in (doc or {}).get("sessions") or []]
    changes: Dict[date, List[SessionChangeRecord]] = {}
    for key, doc in (session_changes or {}).items():
        d = dates.parse_date_key(key)
        if d is None:
            continue
        changes[d] = [change_from_doc(c) for c in (doc or {}).get("changes") or []]
    return OverrideStore(overrides, changes)


def attendance_from_doc(doc: dict) -> AttendanceRecord:
    return AttendanceRecord(
        date=str(doc.get("date") or ""),
        activity=str(doc.get("activity") or ""),
        time=str(doc.get("time") or ""),
        sala=str(doc.get("sala") or ""),
        center=str(doc.get("center") or ""),
    )


def ranking_entry_from_doc(doc: Optional[dict]) -> RankingEntry:
    doc = doc or {}
    return RankingEntry(int(doc.get("rank", 0)), int(doc.get("total", 0)), int(doc.get("percentile", 0)))


def ranking_cache_from_doc(doc: Optional[dict]) -> Optional[RankingCache]:
    if not doc:
        return None
    return RankingCache(
        total_sessions=ranking_entry_from_doc(doc.get("totalSessions")),
        programs={p: ranking_entry_from_doc(e) for p, e in (doc.get("programs") or {}).items()},
        updated_at=doc.get("updatedAt", ""),
    )


def _entry_to_doc(entry: RankingEntry) -> dict:
    return {"rank": entry.rank, "total": entry.total, "percentile": entry.percentile}


def ranking_cache_to_doc(cache: RankingCache) -> dict:
    return {
        "totalSessions": _entry_to_doc(cache.total_sessions),
        "programs": {p: _entry_to_doc(e) for p, e in cache.programs.items()},
        "updatedAt": cache.updated_at,
    }


def member_from_doc(doc: dict, as_of: Optional[date] = None) -> Member:
    return Member(
        id=str(doc.get("id", "")),
        name=doc.get("name", ""),
        center=doc.get("center", ""),
        sessions=[attendance_from_doc(s) for s in doc.get("sessions") or []],
        ranking_cache=ranking_cache_from_doc(doc.get("rankingCache")),
        as_of=as_of,
    )


def members_from_docs(docs: Iterable[dict], as_of: Optional[date] = None) -> List[Member]:
    return [member_from_doc(d, as_of) for d in docs or []]


def override_writes(overrides: OverrideStore, d: date) -> List[Tuple[str, dict]]:
    """Merge writes storing one date's session list and its change log."""
    key = dates.date_key(d)
    writes = []
    sessions = overrides.get(d)
    if sessions is not None:
        writes.append((f"customSessions/{key}", {"sessions": [session_to_doc(s) for s in sessions]}))
    writes.append((f"sessionChanges/{key}", {"changes": [change_to_doc(c) for c in overrides.change_log(d)]}))
    return writes
