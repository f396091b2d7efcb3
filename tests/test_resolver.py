from datetime import date, datetime

from gym_timetable import models
from gym_timetable.exception_calendar import ExceptionCalendar
from gym_timetable.overrides import OverrideStore
from gym_timetable.resolver import ScheduleResolver
from gym_timetable.schedules import ScheduleCatalog


def make_schedule(schedule_id, start, end=None, sessions=None):
    return models.Schedule(
        id=schedule_id,
        start_date=start,
        end_date=end,
        sessions=sessions or {},
    )


def make_resolver(schedules, exceptions=None, overrides=None):
    return ScheduleResolver(
        ScheduleCatalog(schedules),
        exceptions or ExceptionCalendar(),
        overrides or OverrideStore(),
    )


S1 = make_schedule("s1", "2024-01-01", sessions={1: [models.SessionTemplate("09:00", "BP", "A")]})
S2 = make_schedule(
    "s2",
    "2024-06-01",
    sessions={
        1: [models.SessionTemplate("10:00", "BC", "A")],
        7: [models.SessionTemplate("11:00", "SB", "A")],
    },
)


def test_latest_start_wins():
    resolver = make_resolver([S1, S2])
    sessions = resolver.resolve("2024-07-15")
    assert [(s.time, s.program) for s in sessions] == [("10:00", "BC")]
    assert all(s.kind is models.SessionKind.GENERATED for s in sessions)
    # before S2 starts, S1 still applies
    assert [s.program for s in resolver.resolve(date(2024, 3, 4))] == ["BP"]


def test_catalog_order_does_not_matter():
    assert make_resolver([S2, S1]).resolve("2024-07-15")[0].program == "BC"


def test_sunday_maps_to_seven():
    resolver = make_resolver([S2])
    assert [s.program for s in resolver.resolve("2024-07-14")] == ["SB"]


def test_closed_schedule_range():
    closed = make_schedule(
        "old", "2023-01-01", "2023-12-31", {1: [models.SessionTemplate("08:00", "RPM", "A")]}
    )
    resolver = make_resolver([closed])
    assert [s.program for s in resolver.resolve("2023-12-25")] == ["RPM"]
    assert resolver.resolve("2024-01-01") == []


def test_no_schedule_returns_empty():
    assert make_resolver([S1]).resolve("2023-06-05") == []


def test_malformed_bounds_are_skipped():
    broken = make_schedule("bad", "2024-13-01", sessions={1: [models.SessionTemplate("07:00", "X", "A")]})
    catalog = ScheduleCatalog([S1, broken])
    resolver = ScheduleResolver(catalog, ExceptionCalendar(), OverrideStore())
    assert [s.program for s in resolver.resolve("2024-07-15")] == ["BP"]
    assert catalog.validate() == ["schedule bad has malformed bounds"]


def test_exception_days_clear_generated_sessions():
    exceptions = ExceptionCalendar.from_maps(
        official_holidays={"2024-07-15": "Holiday"},
        vacations={"2024-07-22": "Summer"},
        closures={"B": {"2024-07-29": "Works"}},
    )
    resolver = make_resolver([S2], exceptions)
    assert resolver.resolve("2024-07-15") == []
    assert resolver.resolve("2024-07-22") == []
    # a closure for any center clears the whole day
    assert resolver.resolve("2024-07-29") == []
    assert len(resolver.resolve("2024-08-05")) == 1


def test_override_wins_over_exception_and_schedule():
    d = date(2024, 7, 15)
    stored = [
        models.Session("12:00", "GRIT", "A", models.SessionKind.ADDED, "Event"),
        models.Session("10:00", "BC", "A", models.SessionKind.DELETED, "Instructor ill"),
    ]
    exceptions = ExceptionCalendar.from_maps(official_holidays={"2024-07-15": "Holiday"})
    resolver = make_resolver([S2], exceptions, OverrideStore({d: stored}))
    assert resolver.resolve(d) == stored
    assert [s.program for s in resolver.active_sessions(d)] == ["GRIT"]


def test_active_schedule_and_deactivate():
    catalog = ScheduleCatalog([S1, S2])
    assert catalog.active_schedule().id == "s2"
    assert "more than one open-ended schedule: s2, s1" in catalog.validate()

    closed = catalog.deactivate("s1", date(2024, 6, 1))
    assert closed.validate() == []
    assert [s.end_date for s in closed.schedules] == ["2024-05-31", None]
    assert closed.earliest_start() == date(2024, 1, 1)


def test_resolve_range():
    resolver = make_resolver([S2])
    days = resolver.resolve_range(date(2024, 7, 13), date(2024, 7, 15))
    assert [len(v) for v in days.values()] == [0, 1, 1]


def test_resolve_accepts_datetimes():
    resolver = make_resolver([S1, S2])
    assert [s.program for s in resolver.resolve(datetime(2024, 7, 15, 9, 30))] == ["BC"]
