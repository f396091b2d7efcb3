from datetime import date, datetime, timezone

import pytest

from gym_timetable import models
from gym_timetable.exception_calendar import ExceptionCalendar
from gym_timetable.models import ChangeAction, SessionKind, SessionTemplate
from gym_timetable.overrides import OverrideStore
from gym_timetable.resolver import ScheduleResolver
from gym_timetable.schedules import ScheduleCatalog

MONDAY = date(2024, 3, 4)
NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_resolver():
    schedule = models.Schedule(
        id="main",
        start_date="2024-01-01",
        sessions={
            1: [
                SessionTemplate("09:00", "BP", "A"),
                SessionTemplate("19:00", "BC", "A"),
            ]
        },
    )
    store = OverrideStore(clock=lambda: NOW)
    return ScheduleResolver(ScheduleCatalog([schedule]), ExceptionCalendar(), store)


def test_delete_is_soft_and_audited():
    resolver = make_resolver()
    resolver.delete_session(MONDAY, 0, "Instructor ill")

    sessions = resolver.resolve(MONDAY)
    assert len(sessions) == 2
    assert sessions[0].kind is SessionKind.DELETED
    assert sessions[0].delete_reason == "Instructor ill"
    assert [s.program for s in resolver.active_sessions(MONDAY)] == ["BC"]

    (record,) = resolver.overrides.change_log(MONDAY)
    assert record.action is ChangeAction.DELETED
    assert record.session_index == 0
    assert record.original_session == SessionTemplate("09:00", "BP", "A")
    assert record.timestamp == NOW


def test_modify_keeps_original():
    resolver = make_resolver()
    resolver.modify_session(MONDAY, 1, SessionTemplate("19:30", "BC", "A"), "Late start")
    resolver.modify_session(MONDAY, 1, SessionTemplate("20:00", "BC", "A"), "Later")

    session = resolver.resolve(MONDAY)[1]
    assert session.kind is SessionKind.MODIFIED
    assert session.time == "20:00"
    assert session.add_reason == "Later"
    # the original is the generated session, not the intermediate edit
    assert session.original.as_template() == SessionTemplate("19:00", "BC", "A")
    assert len(resolver.overrides.change_log(MONDAY)) == 2


def test_added_session_stays_added_when_modified():
    resolver = make_resolver()
    resolver.add_session(MONDAY, SessionTemplate("12:00", "GRIT", "A"), "Special event")
    resolver.modify_session(MONDAY, 2, SessionTemplate("12:30", "GRIT", "A"), "Moved")

    session = resolver.resolve(MONDAY)[2]
    assert session.kind is SessionKind.ADDED
    assert session.original is None
    assert [r.action for r in resolver.overrides.change_log(MONDAY)] == [
        ChangeAction.ADDED,
        ChangeAction.MODIFIED,
    ]


def test_invalid_edits_are_rejected():
    resolver = make_resolver()
    with pytest.raises(ValueError):
        resolver.delete_session(MONDAY, 0, "   ")
    with pytest.raises(IndexError):
        resolver.delete_session(MONDAY, 5, "Gone")

    resolver.delete_session(MONDAY, 0, "Gone")
    with pytest.raises(ValueError):
        resolver.modify_session(MONDAY, 0, SessionTemplate("10:00", "BP", "A"), "Back")
    assert len(resolver.overrides.change_log(MONDAY)) == 1


def test_clear_keeps_change_log():
    resolver = make_resolver()
    resolver.add_session(MONDAY, SessionTemplate("12:00", "GRIT", "A"), "Event")
    assert resolver.overrides.override_dates() == [MONDAY]

    resolver.overrides.clear(MONDAY)
    assert MONDAY not in resolver.overrides
    assert [s.program for s in resolver.resolve(MONDAY)] == ["BP", "BC"]
    assert len(resolver.overrides.change_log(MONDAY)) == 1
