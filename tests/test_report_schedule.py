from __future__ import annotations

import csv
import subprocess
import sys
from pathlib import Path

from auto_assign import auto_assign
from report_schedule import build_report, day_statistics
from roster_records import write_schedule_csv
from tests.utils import empty_schedule, make_pair, make_staff, make_student, write_roster

ROOT = Path(__file__).resolve().parents[1]


def _day():
    staff = [make_staff("R1"), make_staff("R2"), make_staff("R3"), make_staff("BC", role="BCBA")]
    students = make_pair("X", "Y", ["R1", "R2"]) + [make_student("S", ["R3"])]
    out, _ = auto_assign(empty_schedule("2024-05-06"), staff, students)
    return staff, students, out


def test_pair_counts_as_one_session_per_staff() -> None:
    staff, students, sched = _day()
    rows = {r["Staff"]: r for r in build_report(sched, staff, students)}
    assert rows["R1"]["AM"] == "X + Y"
    assert rows["R1"]["Sessions"] == 1
    assert rows["R1"]["Students"] == 2
    assert rows["R3"]["AM"] == "S" and rows["R3"]["PM"] == ""
    assert "BC" not in rows


def test_day_statistics_lists_gaps_and_idle_staff() -> None:
    staff, students, sched = _day()
    stats = day_statistics(sched, staff, students)
    assert stats["total"] == 5
    assert stats["AM Primary"] == 3
    assert stats["uncovered"] == ["S PM"]
    assert "R3 PM" in stats["idle"]
    assert stats["by_origin"] == {"auto": 5}


def test_cli_writes_report_and_summary(tmp_path: Path) -> None:
    staff, students, sched = _day()
    staff_path, students_path = write_roster(tmp_path, staff, students)
    schedule_path = tmp_path / "schedule.csv"
    write_schedule_csv(sched, schedule_path)
    report_path = tmp_path / "report.csv"
    summary_path = tmp_path / "summary.txt"

    subprocess.check_call(
        [
            sys.executable,
            str(ROOT / "report_schedule.py"),
            "--staff", str(staff_path),
            "--students", str(students_path),
            "--schedule", str(schedule_path),
            "--out", str(report_path),
            "--summary", str(summary_path),
        ],
        cwd=ROOT,
    )

    with report_path.open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [r["Staff"] for r in rows] == ["R1", "R2", "R3"]
    summary = summary_path.read_text(encoding="utf-8")
    assert "Assignments: 5" in summary
    assert "Covered student sessions: 5/6" in summary
    assert "Uncovered: S PM" in summary
