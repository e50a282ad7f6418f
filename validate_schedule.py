#!/usr/bin/env python3
"""Re-check a schedule snapshot and list every problem found.

Hard rule breaks are reported as errors, coverage and balance concerns as
warnings. Nothing here raises for a broken schedule: the report is always
complete and the caller decides whether warnings block finalization.

Usage::

    python validate_schedule.py --staff staff.csv --students students.csv \
        --schedule schedule_auto.csv --temp-team temp_team.json --out validation.csv
"""

from __future__ import annotations

import argparse
import csv
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from auto_assign import load_temporary_team
from pairing import active_partner, assignments_for, pairing_issues, ratio_conflicts
from roster_model import (
    OVERLAP_STATUSES,
    Assignment,
    MissingEntityError,
    QualificationError,
    Ratio,
    RatioUnmetError,
    SameDayRepeatError,
    Schedule,
    SessionConflictError,
    Staff,
    Student,
    TeamViolationError,
    TemporaryTeamOverrides,
    TraineeAssignment,
    effective_team,
)
from roster_records import load_schedule_csv, load_staff_csv, load_students_csv
from scheduler_config import build_config, load_config_file, resolve_data_path

REPORT_FIELDS = ["Severity", "Kind", "Message", "AssignmentId", "StaffId", "StudentId", "Session"]

PROGRAM_MISMATCH = "ProgramMismatchError"
PAIRING_MISMATCH = "PairingMismatchError"
COVERAGE = "CoverageWarning"
BALANCE = "BalanceWarning"
PAIRING_FALLBACK = "PairingFallbackWarning"
ATTENDANCE = "AttendanceWarning"
PAIRING_DATA = "PairingDataWarning"


@dataclass
class Violation:
    kind: str
    message: str
    assignment_id: str = ""
    staff_id: str = ""
    student_id: str = ""
    session: str = ""


@dataclass
class ValidationReport:
    errors: List[Violation] = field(default_factory=list)
    warnings: List[Violation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_kinds(self) -> Set[str]:
        return {v.kind for v in self.errors}

    def warning_kinds(self) -> Set[str]:
        return {v.kind for v in self.warnings}

    def error(self, kind: str, message: str, a: Optional[Assignment] = None, **ctx):
        self.errors.append(_violation(kind, message, a, ctx))

    def warn(self, kind: str, message: str, a: Optional[Assignment] = None, **ctx):
        self.warnings.append(_violation(kind, message, a, ctx))

    def rows(self) -> List[Dict[str, str]]:
        out = []
        for severity, items in (("error", self.errors), ("warning", self.warnings)):
            for v in items:
                out.append({
                    "Severity": severity, "Kind": v.kind, "Message": v.message,
                    "AssignmentId": v.assignment_id, "StaffId": v.staff_id,
                    "StudentId": v.student_id, "Session": v.session,
                })
        return out


def _violation(kind: str, message: str, a: Optional[Assignment], ctx: Dict[str, str]) -> Violation:
    if a is not None:
        ctx = {"assignment_id": a.id, "staff_id": a.staff_id, "student_id": a.student_id,
               "session": a.session, **ctx}
    return Violation(kind, message, **ctx)


def _check_records(report, schedule, staff_by_id, students_by_id, overrides, group_only):
    """Per-record checks; returns the records whose ids resolved."""
    resolved: List[Assignment] = []
    for a in schedule.assignments + schedule.trainee_assignments:
        trainee = isinstance(a, TraineeAssignment)
        member = staff_by_id.get(a.staff_id)
        student = students_by_id.get(a.student_id)
        if member is None:
            report.error(MissingEntityError.kind, f"{a.id}: unknown staff {a.staff_id}", a)
        if student is None:
            report.error(MissingEntityError.kind, f"{a.id}: unknown student {a.student_id}", a)
        if member is None or student is None:
            continue
        resolved.append(a)

        if not a.bypass_team and member.id not in effective_team(student, a.session, overrides):
            report.error(TeamViolationError.kind, f"{member.name} is not on {student.name}'s team", a)
        if a.program != student.program:
            report.error(PROGRAM_MISMATCH,
                         f"{a.id} is filed under {a.program} but {student.name} is {student.program}", a)
        if not member.can_work_program(a.program):
            report.error(QualificationError.kind, f"{member.name} is not qualified for {a.program}", a)

        status = student.training_status(member.id)
        if trainee:
            if status not in OVERLAP_STATUSES:
                report.error(QualificationError.kind,
                             f"{member.name} is a trainee for {student.name} but has status {status.value}", a)
        else:
            if not member.can_do_direct_sessions():
                report.error(QualificationError.kind,
                             f"{member.name} ({member.role.value}) does not run direct sessions", a)
            elif student.ratio_for(a.session) is Ratio.ONE_TO_ONE and not member.can_do_one_to_one(group_only):
                report.error(QualificationError.kind,
                             f"{member.name} ({member.role.value}) may not run a 1:1 session", a)
            if status in OVERLAP_STATUSES:
                report.error(QualificationError.kind,
                             f"{member.name} is still in training for {student.name}", a)

        if not member.active or not member.available_for(a.session, allow_out_of_session=trainee):
            report.warn(ATTENDANCE, f"{member.name} is not available in {a.session}", a)
        if not student.present_for(a.session):
            report.warn(ATTENDANCE, f"{student.name} is not present in {a.session}", a)
    return resolved


def _is_pair_group(student_ids: Set[str], session: str, students_by_id, conflicted) -> bool:
    if len(student_ids) != 2:
        return False
    a_id, b_id = sorted(student_ids)
    if (a_id, session) in conflicted:
        return False
    partner = active_partner(students_by_id[a_id], session, students_by_id)
    return partner is not None and partner.id == b_id


def _check_sessions(report, resolved, staff_by_id, students_by_id, conflicted):
    slots: Dict[Tuple[str, str], List[Assignment]] = defaultdict(list)
    for a in resolved:
        slots[(a.staff_id, a.session)].append(a)
    for (staff_id, session), records in sorted(slots.items()):
        students = {a.student_id for a in records}
        pair = _is_pair_group(students, session, students_by_id, conflicted)
        if len(records) > len(students) or (len(students) > 1 and not pair):
            names = ", ".join(sorted(students_by_id[s].name for s in students))
            report.error(SessionConflictError.kind,
                         f"{staff_by_id[staff_id].name} is booked {len(records)} times in {session} ({names})",
                         staff_id=staff_id, session=session)

    seen: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
    for a in resolved:
        if not isinstance(a, TraineeAssignment):
            seen[(a.staff_id, a.student_id)].add(a.session)
    for (staff_id, student_id), sessions in sorted(seen.items()):
        if len(sessions) > 1:
            report.error(SameDayRepeatError.kind,
                         f"{staff_by_id[staff_id].name} works with {students_by_id[student_id].name} "
                         f"in both {' and '.join(sorted(sessions))}",
                         staff_id=staff_id, student_id=student_id)


def _check_students(report, schedule, students_by_id, conflicted, sessions):
    for student in sorted(students_by_id.values(), key=lambda s: (s.name, s.id)):
        if not student.active:
            continue
        for session in sessions:
            if not student.present_for(session):
                continue
            own = {a.staff_id for a in schedule.for_student(student.id, session)}
            ratio = student.ratio_for(session)
            need = ratio.staff_needed
            if own and len(own) != need:
                if ratio is Ratio.TWO_TO_ONE and len(own) < need:
                    msg = f"{student.name} needs 2 staff in {session} but has {len(own)}"
                else:
                    msg = f"{student.name} is {ratio.value} in {session} but has {len(own)} staff"
                report.error(RatioUnmetError.kind, msg, student_id=student.id, session=session)

            if own:
                continue
            fallback = assignments_for(schedule, student, session, students_by_id)
            if fallback:
                report.warn(PAIRING_FALLBACK,
                            f"{student.name} has no {session} record and is covered through its partner",
                            student_id=student.id, session=session)
            else:
                report.warn(COVERAGE, f"{student.name} has no staff in {session}",
                            student_id=student.id, session=session)

    for student in students_by_id.values():
        for session in sessions:
            if (student.id, session) in conflicted:
                continue
            partner = active_partner(student, session, students_by_id)
            if partner is None or student.id > partner.id:
                continue
            if not (student.present_for(session) and partner.present_for(session)):
                continue
            for label, lookup in (("staff", schedule.for_student), ("trainee", schedule.trainees_for_student)):
                mine = {a.staff_id for a in lookup(student.id, session)}
                theirs = {a.staff_id for a in lookup(partner.id, session)}
                if mine and theirs and mine != theirs:
                    report.error(PAIRING_MISMATCH,
                                 f"{student.name} and {partner.name} have different {label} in {session}",
                                 student_id=student.id, session=session)


def _check_balance(report, schedule, staff_by_id, threshold: int, sessions):
    loads = {
        m.id: schedule.daily_load(m.id)
        for m in staff_by_id.values()
        if m.active and m.can_do_direct_sessions()
        and any(m.available_for(s) for s in sessions)
    }
    if len(loads) < 2:
        return
    hi, lo = max(loads.values()), min(loads.values())
    if hi - lo > threshold:
        busiest = sorted(staff_by_id[s].name for s, n in loads.items() if n == hi)
        idle = sorted(staff_by_id[s].name for s, n in loads.items() if n == lo)
        report.warn(BALANCE,
                    f"load spread {hi - lo} exceeds {threshold}: "
                    f"{', '.join(busiest)} at {hi}, {', '.join(idle)} at {lo}")


def validate(
    schedule: Schedule,
    staff: Iterable[Staff],
    students: Iterable[Student],
    config: Optional[dict] = None,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
) -> ValidationReport:
    cfg = build_config(config)
    staff_by_id = {m.id: m for m in staff}
    students_by_id = {s.id: s for s in students}
    conflicted: Set[Tuple[str, str]] = set()
    for a, b, session in ratio_conflicts(students_by_id.values()):
        conflicted.update({(a, session), (b, session)})

    report = ValidationReport()
    resolved = _check_records(report, schedule, staff_by_id, students_by_id,
                              overrides, cfg["GROUP_ONLY_ROLES"])
    _check_sessions(report, resolved, staff_by_id, students_by_id, conflicted)
    _check_students(report, schedule, students_by_id, conflicted, cfg["SESSIONS"])
    _check_balance(report, schedule, staff_by_id, cfg["LOAD_SPREAD_WARN"], cfg["SESSIONS"])
    for issue in pairing_issues(students_by_id.values()):
        report.warn(PAIRING_DATA, issue)
    return report


# ------------------------------- CLI ----------------------------------

def write_report(report: ValidationReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=REPORT_FIELDS)
        w.writeheader()
        for row in report.rows():
            w.writerow(row)


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Validate a day's schedule",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--staff", default="staff.csv", type=Path)
    ap.add_argument("--students", default="students.csv", type=Path)
    ap.add_argument("--schedule", default="schedule_auto.csv", type=Path)
    ap.add_argument("--temp-team", default=None, type=Path, help="JSON file of same-day team additions used for the run")
    ap.add_argument("--config", default=None, type=Path, help="JSON overrides for DEFAULT_CONFIG")
    ap.add_argument("--out", default=Path("validation.csv"), type=Path)
    ap.add_argument("--strict", action="store_true", help="Exit with status 1 when errors are found")
    return ap.parse_args()


def main() -> int:
    args = parse_args()
    cfg = load_config_file(args.config)
    staff = load_staff_csv(resolve_data_path(args.staff))
    students = load_students_csv(resolve_data_path(args.students))
    schedule = load_schedule_csv(resolve_data_path(args.schedule))
    report = validate(schedule, staff, students, cfg, overrides=load_temporary_team(args.temp_team))
    write_report(report, args.out)
    print(f"{len(report.errors)} errors, {len(report.warnings)} warnings")
    print(f"Wrote validation report to {args.out}")
    return 1 if args.strict and report.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
