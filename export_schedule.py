#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Day-grid export of a finalized schedule.

Inputs:
  - staff.csv, students.csv   (list exports)
  - schedule_auto.csv         (assignments written by auto_assign.py)

Outputs:
  - schedule_grid.csv : one row per active student, grouped by program
                        (Client, Program, AM Staff, AM Trainee, PM Staff, PM Trainee)
  - absences.csv      : every staff member or student not fully present

Notes
  * A 1:2 student without its own record shows its partner's staff, so
    schedules saved before mirrored writes still print complete.
  * Absent sessions print "ABSENT", out-of-session ones "OUT".
"""

from __future__ import annotations

import argparse
import csv
from pathlib import Path
from typing import Dict, Iterable, List

from pairing import assignments_for
from roster_model import PROGRAMS, SESSIONS, Presence, Schedule, Staff, Student
from roster_records import load_schedule_csv, load_staff_csv, load_students_csv
from scheduler_config import resolve_data_path

GRID_FIELDS = ["Client", "Program", "AM Staff", "AM Trainee", "PM Staff", "PM Trainee"]
ABSENCE_FIELDS = ["Kind", "Name", "Role", "AM", "PM"]
PRESENCE_LABELS = {Presence.PRESENT: "", Presence.ABSENT: "ABSENT", Presence.OUT_OF_SESSION: "OUT"}


def _names(ids: Iterable[str], staff_by_id: Dict[str, Staff]) -> str:
    out = []
    for sid in ids:
        member = staff_by_id.get(sid)
        name = member.name if member else sid
        if name not in out:
            out.append(name)
    return ", ".join(out)


def build_grid(schedule: Schedule, staff: Iterable[Staff], students: Iterable[Student]) -> List[Dict[str, str]]:
    staff_by_id = {m.id: m for m in staff}
    students = [s for s in students if s.active]
    by_id = {s.id: s for s in students}
    rows: List[Dict[str, str]] = []
    for program in PROGRAMS:
        for student in sorted((s for s in students if s.program == program), key=lambda s: (s.name, s.id)):
            row = {"Client": student.name, "Program": program}
            for session in SESSIONS:
                presence = student.attendance.for_session(session)
                if presence is not Presence.PRESENT:
                    row[f"{session} Staff"] = PRESENCE_LABELS[presence]
                    row[f"{session} Trainee"] = ""
                    continue
                regular = assignments_for(schedule, student, session, by_id)
                trainees = assignments_for(schedule, student, session, by_id, trainee=True)
                row[f"{session} Staff"] = _names((a.staff_id for a in regular), staff_by_id)
                row[f"{session} Trainee"] = _names((a.staff_id for a in trainees), staff_by_id)
            rows.append(row)
    return rows


def build_absences(staff: Iterable[Staff], students: Iterable[Student]) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    people = [("Staff", m.name, m.role.value, m.attendance) for m in staff if m.active]
    people += [("Student", s.name, "", s.attendance) for s in students if s.active]
    for kind, name, role, att in sorted(people, key=lambda p: (p[0], p[1])):
        if att.am is Presence.PRESENT and att.pm is Presence.PRESENT:
            continue
        rows.append({
            "Kind": kind, "Name": name, "Role": role,
            "AM": PRESENCE_LABELS[att.am], "PM": PRESENCE_LABELS[att.pm],
        })
    return rows


def write_rows(rows: List[Dict[str, str]], fields: List[str], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=fields)
        w.writeheader()
        for r in rows:
            w.writerow({k: r.get(k, "") for k in fields})


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Export the day grid and absence list",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--staff", default="staff.csv", type=Path)
    ap.add_argument("--students", default="students.csv", type=Path)
    ap.add_argument("--schedule", default="schedule_auto.csv", type=Path)
    ap.add_argument("--out", default=Path("schedule_grid.csv"), type=Path)
    ap.add_argument("--absences", default=Path("absences.csv"), type=Path)
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    staff = load_staff_csv(resolve_data_path(args.staff))
    students = load_students_csv(resolve_data_path(args.students))
    schedule = load_schedule_csv(resolve_data_path(args.schedule))
    write_rows(build_grid(schedule, staff, students), GRID_FIELDS, args.out)
    write_rows(build_absences(staff, students), ABSENCE_FIELDS, args.absences)
    print(f"Wrote day grid to {args.out}")
    print(f"Wrote absences to {args.absences}")


if __name__ == "__main__":
    main()
