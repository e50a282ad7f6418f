from __future__ import annotations

import csv
import subprocess
import sys
from pathlib import Path

from export_schedule import build_absences, build_grid
from roster_model import Assignment, TraineeAssignment
from roster_records import write_schedule_csv
from tests.utils import empty_schedule, make_pair, make_staff, make_student, write_roster

ROOT = Path(__file__).resolve().parents[1]


def _fixture():
    staff = [make_staff("R1", name="Robin"), make_staff("R2", name="Ray", absent=("PM",)),
             make_staff("NEW", name="Nova")]
    students = make_pair("X", "Y", ["R1", "R2"], absent_a=("AM",)) + [
        make_student("Z", ["R2"], name="Zed", program="Secondary"),
    ]
    sched = empty_schedule()
    sched.add(Assignment(id="A1", staff_id="R1", student_id="Y", session="AM", program="Primary"))
    sched.add(Assignment(id="A2", staff_id="R2", student_id="X", session="PM", program="Primary"))
    sched.add_trainee(TraineeAssignment(id="T1", staff_id="NEW", student_id="Y", session="PM", program="Primary"))
    return staff, students, sched


def test_grid_uses_partner_fallback_and_marks_absence() -> None:
    staff, students, sched = _fixture()
    rows = {r["Client"]: r for r in build_grid(sched, staff, students)}
    assert rows["X"]["AM Staff"] == "ABSENT"
    assert rows["Y"]["AM Staff"] == "Robin"
    assert rows["Y"]["PM Staff"] == "Ray"
    assert rows["X"]["PM Trainee"] == "Nova"
    assert [r["Program"] for r in build_grid(sched, staff, students)] == ["Primary", "Primary", "Secondary"]
    assert rows["Zed"]["AM Staff"] == ""


def test_absences_list_people_not_fully_present() -> None:
    staff, students, _ = _fixture()
    rows = build_absences(staff, students)
    assert {(r["Kind"], r["Name"], r["AM"], r["PM"]) for r in rows} == {
        ("Staff", "Ray", "", "ABSENT"),
        ("Student", "X", "ABSENT", ""),
    }


def test_cli_writes_both_files(tmp_path: Path) -> None:
    staff, students, sched = _fixture()
    staff_path, students_path = write_roster(tmp_path, staff, students)
    schedule_path = tmp_path / "schedule.csv"
    write_schedule_csv(sched, schedule_path)
    grid = tmp_path / "grid.csv"
    absences = tmp_path / "absences.csv"

    subprocess.check_call(
        [
            sys.executable,
            str(ROOT / "export_schedule.py"),
            "--staff", str(staff_path),
            "--students", str(students_path),
            "--schedule", str(schedule_path),
            "--out", str(grid),
            "--absences", str(absences),
        ],
        cwd=ROOT,
    )
    with grid.open(encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [r["Client"] for r in rows] == ["X", "Y", "Zed"]
    assert absences.exists()
