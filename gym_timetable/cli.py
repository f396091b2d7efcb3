"""Command line interface for the gym timetable engine."""

from __future__ import annotations

import argparse
from datetime import date
from typing import List

from . import api, dates, documents, member_stats, store, util
from .exception_calendar import CenterDirectory
from .models import Center
from .ranking import RankingComputer
from .schedules import ScheduleCatalog


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Gym session calendar and attendance stats")
    parser.add_argument("--tz", default=util.DEFAULT_TZ)
    parser.add_argument("--today", help="Reference date (YYYY-MM-DD)")
    parser.add_argument("--date", action="append", help="Print the sessions resolved for a date")
    parser.add_argument("--center", default="all", help="Center filter for statistics")
    parser.add_argument("--stats", action="store_true", help="Print the statistics summary")
    parser.add_argument(
        "--rankings", action="store_true", help="Recompute and store member ranking caches"
    )
    parser.add_argument("--member", action="append", help="Print progress statistics for a member id")
    parser.add_argument(
        "--vacations", action="store_true", help="Print vacation days per center for the fiscal year"
    )
    parser.add_argument(
        "--cancel",
        nargs=3,
        metavar=("DATE", "INDEX", "REASON"),
        help="Soft-delete a session and store the override",
    )
    parser.add_argument(
        "--generate-holidays",
        action="store_true",
        help="Fill missing official holidays for the current fiscal year",
    )
    parser.add_argument("--dump-json", action="store_true")
    parser.add_argument(
        "--offline", action="store_true", help="Use saved JSON fixtures"
    )
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def load_snapshots(
    client: api.APIClient,
    snapshots: store.SnapshotStore,
    today: date,
    generate_holidays: bool = False,
) -> List[Center]:
    centers = documents.centers_from_doc(client.get("settings/centers", default={}))
    catalog = ScheduleCatalog(documents.schedules_from_doc(client.get("settings/schedules", default={})))
    exceptions = documents.exceptions_from_doc(client.get("settings/global", default={}))
    if generate_holidays:
        exceptions = exceptions.with_generated_holidays(dates.fiscal_year(today), centers)
    overrides = documents.overrides_from_docs(
        client.get("customSessions", default={}),
        client.get("sessionChanges", default={}),
    )
    members = documents.members_from_docs(client.get("users", default=[]), as_of=today)

    snapshots.publish(store.SCHEDULES, catalog)
    snapshots.publish(store.EXCEPTIONS, exceptions)
    snapshots.publish(store.OVERRIDES, overrides)
    snapshots.publish(store.MEMBERS, members)
    return centers


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    util.configure_logging(args.verbose)
    tz = util.parse_timezone(args.tz)
    today = dates.as_date(args.today) if args.today else util.today(tz)

    token = None
    if not args.offline:
        from . import auth

        token = auth.acquire_token()
    client = api.APIClient(token, dump_json=args.dump_json, offline=args.offline)

    snapshots = store.SnapshotStore()
    engine = store.CalendarEngine(snapshots)
    centers = load_snapshots(client, snapshots, today, args.generate_holidays)

    for problem in snapshots.get(store.SCHEDULES).validate():
        print(f"warning: {problem}")

    if args.cancel:
        day, index, reason = args.cancel
        d = dates.as_date(day)
        engine.edit_sessions(lambda resolver: resolver.delete_session(d, int(index), reason))
        client.commit(documents.override_writes(snapshots.get(store.OVERRIDES), d))

    for day in args.date or []:
        d = dates.as_date(day)
        sessions = engine.resolver.resolve(d)
        print(f"{dates.date_key(d)}: {len(sessions)} session(s)")
        for s in sessions:
            flag = f" [{s.kind.value}: {s.reason}]" if s.is_custom else ""
            print(f"  {s.time} {s.program} {s.center}{flag}")

    if args.stats:
        report = engine.report(args.center, today)
        print(f"Users: {report.total_users}")
        print(f"Classes: {report.total_sessions}")
        print(f"Attendances: {report.total_attendances}")
        print(f"Average attendees per class: {report.avg_attendees_per_class}")
        print(f"Retention: {report.retention_rate}%")
        print(f"Trend: {report.trend}")
        print(f"Monthly growth: {report.monthly_growth}%")
        print(f"Preferred time slot: {report.preferred_time_slot}")
        for disc in report.calendar_discrepancies:
            print(
                f"  {disc.date} {disc.time} {disc.center}: gym={disc.gym_program} "
                f"calendar={disc.calendar_program} x{disc.count} ({disc.user_name})"
            )

    for member_id in args.member or []:
        member = next((m for m in engine.members if m.id == member_id), None)
        if member is None:
            print(f"Unknown member: {member_id}")
            continue
        progress = member_stats.member_progress(member, today)
        last = member.last_session or "N/A"
        print(f"Member {member.id} ({member.name}): {member.total_sessions} sessions, last {last}")
        print(f"  Days between sessions: {progress.days_between_sessions}")
        print(f"  Yearly trend: {progress.yearly.trend}")
        print(f"  Improvement: {progress.improvement.trend} ({progress.improvement.percentage_change:+d}%)")
        print(f"  Discipline: {progress.discipline.score} ({progress.discipline.level})")

    if args.vacations:
        fy = dates.fiscal_year(today)
        directory = CenterDirectory(centers)
        calendar = snapshots.get(store.EXCEPTIONS)
        for center in directory.active:
            used = directory.used_vacation_days(calendar, center.id, fy)
            remaining = directory.remaining_vacation_days(calendar, center.id, fy)
            print(f"Vacation days {center.id} ({center.name}) {fy}: {used} used, {remaining} remaining")

    if args.rankings:
        computer = RankingComputer(engine.classify)
        run = computer.run(
            engine.members,
            client,
            on_progress=lambda done, total: print(f"Rankings stored: {done}/{total}"),
            today=today,
        )
        if run.failed:
            print(f"Ranking run aborted after {run.writes_committed} writes: {run.error}")


if __name__ == "__main__":  # pragma: no cover
    main()
