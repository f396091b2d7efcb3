import json
from pathlib import Path

from gym_timetable import cli


def write_fixture(json_dir, name, data):
    with (json_dir / name).open("w", encoding="utf-8") as f:
        json.dump(data, f)


def make_fixtures():
    json_dir = Path("out/json")
    json_dir.mkdir(parents=True)

    write_fixture(
        json_dir,
        "settings_centers.json",
        {"centers": [{"id": "A", "name": "Arbúcies", "workDays": [1, 2, 3, 4, 5], "availableVacationDays": 22}]},
    )
    write_fixture(
        json_dir,
        "settings_schedules.json",
        {
            "schedules": [
                {
                    "id": "main",
                    "startDate": "2024-03-01",
                    "endDate": None,
                    "sessions": {"1": [{"time": "09:05", "program": "BP", "center": "A"}]},
                }
            ]
        },
    )
    write_fixture(
        json_dir,
        "settings_global.json",
        {"officialHolidays": {}, "vacations": {"2024-03-06": "Staff training", "2024-03-09": "Staff training"}},
    )
    write_fixture(
        json_dir,
        "customSessions.json",
        {
            "2024-03-05": {
                "sessions": [{"time": "12:00", "program": "GRIT", "center": "A", "kind": "added", "addReason": "Event"}]
            }
        },
    )
    write_fixture(
        json_dir,
        "users.json",
        [
            {
                "id": "u1",
                "name": "Anna",
                "center": "A",
                "sessions": [
                    {"date": "2024-03-04", "activity": "Bodypump", "time": "09:05-10:00", "center": "A"},
                    {"date": "2024-03-05", "activity": "Grit", "time": "12:00", "center": "A"},
                ],
            },
            {
                "id": "u2",
                "name": "Bernat",
                "center": "A",
                "sessions": [{"date": "2024-03-04", "activity": "BodyCombat", "time": "09:05", "center": "A"}],
            },
        ],
    )
    return json_dir


def test_offline_cli_execution(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    json_dir = make_fixtures()

    cli.main(
        ["--offline", "--today", "2024-03-10", "--date", "2024-03-05", "--stats", "--rankings"]
    )
    out = capsys.readouterr().out
    assert "2024-03-05: 1 session(s)" in out
    assert "12:00 GRIT A [added: Event]" in out
    assert "Users: 2" in out
    assert "Retention: 50.0%" in out
    assert "gym=BodyCombat calendar=BP x1 (Bernat)" in out
    assert "Rankings stored: 2/2" in out

    with (json_dir / "users.json").open("r", encoding="utf-8") as f:
        users = {u["id"]: u for u in json.load(f)}
    assert users["u1"]["rankingCache"]["totalSessions"] == {"rank": 1, "total": 2, "percentile": 100}
    assert users["u2"]["rankingCache"]["programs"] == {"BP": {"rank": 2, "total": 2, "percentile": 50}}
    assert users["u1"]["sessions"][0]["activity"] == "Bodypump"


def test_offline_cancel_stores_override(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    json_dir = make_fixtures()

    cli.main(
        ["--offline", "--today", "2024-03-10", "--cancel", "2024-03-04", "0", "Instructor ill", "--date", "2024-03-04"]
    )
    out = capsys.readouterr().out
    assert "09:05 BP A [deleted: Instructor ill]" in out

    with (json_dir / "customSessions.json").open("r", encoding="utf-8") as f:
        custom = json.load(f)
    assert custom["2024-03-04"]["sessions"][0]["isDeleted"] is True
    assert "2024-03-05" in custom
    with (json_dir / "sessionChanges.json").open("r", encoding="utf-8") as f:
        changes = json.load(f)
    assert changes["2024-03-04"]["changes"][0]["reason"] == "Instructor ill"


def test_offline_member_progress_and_vacations(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    make_fixtures()

    cli.main(["--offline", "--today", "2024-03-10", "--member", "u1", "--member", "nobody", "--vacations"])
    out = capsys.readouterr().out
    assert "Member u1 (Anna): 2 sessions, last 2024-03-05" in out
    assert "Days between sessions: 1" in out
    assert "Improvement: up (+100%)" in out
    assert "Discipline: 100 (excellent)" in out
    assert "Unknown member: nobody" in out
    # the Saturday is not a work day for the center
    assert "Vacation days A (Arbúcies) 2024: 1 used, 21 remaining" in out
