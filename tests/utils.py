"""Builders and CSV helpers shared by the roster tests."""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from roster_model import DayAttendance, Schedule, Staff, Student
from roster_records import STAFF_FIELDS, STUDENT_FIELDS, staff_to_record, student_to_record


def attendance(absent: Sequence[str] = (), out: Sequence[str] = ()) -> DayAttendance:
    return DayAttendance.from_flags(
        absent_am="AM" in absent,
        absent_pm="PM" in absent,
        out_am="AM" in out,
        out_pm="PM" in out,
    )


def make_staff(
    sid: str,
    *,
    role: str = "RBT",
    programs: Sequence[str] = ("Primary",),
    absent: Sequence[str] = (),
    out: Sequence[str] = (),
    active: bool = True,
    name: str | None = None,
) -> Staff:
    return Staff(
        id=sid,
        name=name or sid,
        role=role,
        primary_program="Primary" in programs,
        secondary_program="Secondary" in programs,
        active=active,
        attendance=attendance(absent, out),
    )


def make_student(
    sid: str,
    team: Iterable[str],
    *,
    ratio: str = "1:1",
    ratio_am: str | None = None,
    ratio_pm: str | None = None,
    program: str = "Primary",
    paired_with: str | None = None,
    absent: Sequence[str] = (),
    training: Dict[str, str] | None = None,
    active: bool = True,
    name: str | None = None,
) -> Student:
    return Student(
        id=sid,
        name=name or sid,
        program=program,
        ratio_am=ratio_am or ratio,
        ratio_pm=ratio_pm or ratio,
        team=list(team),
        paired_with=paired_with,
        attendance=attendance(absent),
        training=dict(training or {}),
        active=active,
    )


def make_pair(a: str, b: str, team: Iterable[str], **kwargs) -> List[Student]:
    """Two mutually paired 1:2 students sharing ``team``."""
    absent_a = kwargs.pop("absent_a", ())
    absent_b = kwargs.pop("absent_b", ())
    team = list(team)
    return [
        make_student(a, team, ratio="1:2", paired_with=b, absent=absent_a, **kwargs),
        make_student(b, team, ratio="1:2", paired_with=a, absent=absent_b, **kwargs),
    ]


def empty_schedule(date: str = "2024-05-06") -> Schedule:
    return Schedule(date=date)


def staff_sets(schedule: Schedule, student_id: str, session: str) -> set:
    return {a.staff_id for a in schedule.for_student(student_id, session)}


def write_rows(path: Path, fields: Sequence[str], rows: Iterable[Dict[str, str]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=list(fields))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: row.get(k, "") for k in fields})


def write_roster(tmp_path: Path, staff: Iterable[Staff], students: Iterable[Student]) -> tuple[Path, Path]:
    staff_path = tmp_path / "staff.csv"
    students_path = tmp_path / "students.csv"
    write_rows(staff_path, STAFF_FIELDS, (staff_to_record(m) for m in staff))
    write_rows(students_path, STUDENT_FIELDS, (student_to_record(s) for s in students))
    return staff_path, students_path
