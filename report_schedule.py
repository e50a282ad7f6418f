#!/usr/bin/env python3
"""Per-staff load report and day statistics for a schedule."""

from __future__ import annotations

import argparse
import csv
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List

from pairing import assignments_for
from roster_model import PROGRAMS, SESSIONS, Schedule, Staff, Student
from roster_records import load_schedule_csv, load_staff_csv, load_students_csv
from scheduler_config import resolve_data_path

REPORT_FIELDS = ["Staff", "Role", "AM", "PM", "Sessions", "Students", "TraineeSessions", "Manual", "Auto"]


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate a per-staff load report", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--staff", default="staff.csv", type=Path)
    ap.add_argument("--students", default="students.csv", type=Path)
    ap.add_argument("--schedule", default="schedule_auto.csv", type=Path, help="CSV produced by auto_assign.py")
    ap.add_argument("--out", default=Path("reports") / "staff_load.csv", type=Path, help="Where to write the per-staff CSV report")
    ap.add_argument("--summary", default=Path("reports") / "day_summary.txt", type=Path, help="Optional plaintext summary (set to '-' to skip)")
    return ap.parse_args()


def _session_label(schedule: Schedule, staff_id: str, session: str, names: Dict[str, str]) -> str:
    records = schedule.for_staff(staff_id, session)
    if records:
        return " + ".join(names.get(a.student_id, a.student_id) for a in records)
    trainee = schedule.trainees_for_staff(staff_id, session)
    if trainee:
        return "trainee: " + " + ".join(names.get(a.student_id, a.student_id) for a in trainee)
    return ""


def build_report(schedule: Schedule, staff: Iterable[Staff], students: Iterable[Student]) -> List[Dict[str, object]]:
    names = {s.id: s.name for s in students}
    report: List[Dict[str, object]] = []
    for member in sorted(staff, key=lambda m: (m.tier, m.name, m.id)):
        if not member.active:
            continue
        own = schedule.for_staff(member.id)
        trainee = schedule.trainees_for_staff(member.id)
        if not own and not trainee and not member.can_do_direct_sessions():
            continue
        origins = Counter(a.origin.value for a in own)
        report.append({
            "Staff": member.name,
            "Role": member.role.value,
            "AM": _session_label(schedule, member.id, "AM", names),
            "PM": _session_label(schedule, member.id, "PM", names),
            "Sessions": schedule.daily_load(member.id),
            "Students": len({a.student_id for a in own}),
            "TraineeSessions": len({a.session for a in trainee}),
            "Manual": origins.get("manual", 0),
            "Auto": sum(n for o, n in origins.items() if o != "manual"),
        })
    return report


def day_statistics(schedule: Schedule, staff: Iterable[Staff], students: Iterable[Student]) -> Dict[str, object]:
    staff = list(staff)
    students = [s for s in students if s.active]
    by_id = {s.id: s for s in students}
    stats: Dict[str, object] = {
        "total": len(schedule.assignments),
        "trainee": len(schedule.trainee_assignments),
        "locked": sum(1 for a in schedule.assignments if a.locked),
        "by_origin": dict(sorted(Counter(a.origin.value for a in schedule.assignments).items())),
    }
    for session in SESSIONS:
        for program in PROGRAMS:
            stats[f"{session} {program}"] = len(schedule.for_session(session, program))

    uncovered: List[str] = []
    present = 0
    for student in sorted(students, key=lambda s: (s.name, s.id)):
        for session in SESSIONS:
            if not student.present_for(session):
                continue
            present += 1
            if not assignments_for(schedule, student, session, by_id):
                uncovered.append(f"{student.name} {session}")
    stats["student_sessions"] = present
    stats["uncovered"] = uncovered

    idle: List[str] = []
    for member in sorted(staff, key=lambda m: m.name):
        if not member.active or not member.can_do_direct_sessions():
            continue
        for session in SESSIONS:
            if member.available_for(session) and not schedule.staff_busy(member.id, session):
                idle.append(f"{member.name} {session}")
    stats["idle"] = idle
    return stats


def write_report(rows: List[Dict[str, object]], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=REPORT_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def write_summary(stats: Dict[str, object], path: Path) -> None:
    if str(path) == "-":
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["Day summary"]
    lines.append(f"Assignments: {stats['total']} (locked={stats['locked']}, trainee={stats['trainee']})")
    origins = stats["by_origin"]
    if origins:
        lines.append("By origin: " + ", ".join(f"{k}={v}" for k, v in origins.items()))
    for session in SESSIONS:
        lines.append(f"{session}: " + ", ".join(f"{p}={stats[f'{session} {p}']}" for p in PROGRAMS))
    uncovered = stats["uncovered"]
    covered = stats["student_sessions"] - len(uncovered)
    lines.append(f"Covered student sessions: {covered}/{stats['student_sessions']}")
    if uncovered:
        lines.append("Uncovered: " + ", ".join(uncovered))
    if stats["idle"]:
        lines.append("Idle direct staff: " + ", ".join(stats["idle"]))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def main() -> None:
    args = parse_args()
    staff = load_staff_csv(resolve_data_path(args.staff))
    students = load_students_csv(resolve_data_path(args.students))
    schedule = load_schedule_csv(resolve_data_path(args.schedule))
    write_report(build_report(schedule, staff, students), args.out)
    write_summary(day_statistics(schedule, staff, students), args.summary)
    print(f"Wrote report to {args.out}")
    if str(args.summary) != "-":
        print(f"Summary saved to {args.summary}")


if __name__ == "__main__":
    main()
