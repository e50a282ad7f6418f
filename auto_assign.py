#!/usr/bin/env python3
"""Fill a day's schedule with auto assignments.

One greedy sweep per (program, session): students are visited 2:1 first,
then by how small their team is, then by name. Each student keeps whatever
is already scheduled for it (locked or manual work is never touched) and
only the remaining seats are offered to the availability resolver. Seats
that cannot be filled become :class:`Deficiency` rows; the sweep does not
backtrack.

Usage::

    python auto_assign.py --staff staff.csv --students students.csv \
        --schedule schedule.csv --out schedule_auto.csv
"""

from __future__ import annotations

import argparse
import csv
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from availability import rejection_summary, resolve_candidates
from pairing import active_partner, mirror_create, ratio_conflicts
from roster_model import (
    Assignment,
    Origin,
    Ratio,
    Schedule,
    Staff,
    Student,
    TemporaryTeamOverrides,
    effective_team,
)
from roster_records import (
    load_schedule_csv,
    load_staff_csv,
    load_students_csv,
    roster_source,
    write_schedule_csv,
)
from scheduler_config import build_config, load_config_file, resolve_data_path

DECISION_FIELDS = ["Step", "Phase", "Student", "Session", "Program", "Staff", "Status", "Note"]
DEFICIENCY_FIELDS = ["StudentId", "Student", "Session", "Program", "Required", "Assigned", "Reason"]


class DecisionLogger:
    def __init__(self):
        self.step = 0
        self.rows: List[Dict[str, object]] = []

    def log(self, phase: str, student: Optional[Student], session: str, program: str,
            staff_id: str, status: str, note: str = ""):
        self.step += 1
        self.rows.append({
            "Step": self.step, "Phase": phase,
            "Student": (student.name if student else ""),
            "Session": session, "Program": program,
            "Staff": staff_id, "Status": status, "Note": note,
        })

    def write_csv(self, out: Path):
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=DECISION_FIELDS)
            w.writeheader()
            for r in self.rows:
                w.writerow({k: r.get(k, "") for k in DECISION_FIELDS})


@dataclass
class Deficiency:
    student_id: str
    student_name: str
    session: str
    program: str
    required: int
    assigned: int
    reason: str = ""

    def to_row(self) -> Dict[str, object]:
        return {
            "StudentId": self.student_id, "Student": self.student_name,
            "Session": self.session, "Program": self.program,
            "Required": self.required, "Assigned": self.assigned, "Reason": self.reason,
        }


@dataclass
class AssignOptions:
    temporary_team: TemporaryTeamOverrides = field(default_factory=TemporaryTeamOverrides)
    config: Dict[str, object] = field(default_factory=dict)


def student_order(students: Iterable[Student], session: str,
                  overrides: Optional[TemporaryTeamOverrides] = None) -> List[Student]:
    """2:1 first, then smaller effective team, then name, then id."""

    def key(s: Student):
        ratio_rank = 0 if s.ratio_for(session) is Ratio.TWO_TO_ONE else 1
        return (ratio_rank, len(effective_team(s, session, overrides)), s.name, s.id)

    return sorted(students, key=key)


def clear_unlocked(schedule: Schedule) -> Schedule:
    """Copy of ``schedule`` keeping only locked assignments and the trainee overlay."""
    out = schedule.copy()
    out.assignments = [a for a in out.assignments if a.locked]
    return out


def _fill_student(
    out: Schedule,
    student: Student,
    partner: Optional[Student],
    session: str,
    program: str,
    staff: List[Staff],
    overrides: TemporaryTeamOverrides,
    group_only: List[str],
    logger: DecisionLogger,
) -> Optional[Deficiency]:
    need = student.required_staff(session)
    held = []
    for a in out.for_student(student.id, session):
        if a.staff_id not in held:
            held.append(a.staff_id)
    if len(held) >= need:
        logger.log("existing", student, session, program, ";".join(held), "covered")
        return None

    if partner is not None and not held:
        shared = out.for_student(partner.id, session)
        if shared:
            staff_ids = ";".join(sorted({a.staff_id for a in shared}))
            logger.log("paired", student, session, program, staff_ids, "inherited",
                       f"covered through {partner.name}")
            return None

    remaining = need - len(held)
    candidates = resolve_candidates(
        student, session, program, staff, out,
        overrides=overrides, group_only_roles=group_only, exclude=held,
    )
    if partner is not None and partner.present_for(session):
        partner_ok = {m.id for m in resolve_candidates(
            partner, session, program, staff, out,
            overrides=overrides, group_only_roles=group_only, exclude=held,
        )}
        candidates = [m for m in candidates if m.id in partner_ok]

    if len(candidates) < remaining:
        reason = rejection_summary(student, session, program, staff, out,
                                   overrides=overrides, group_only_roles=group_only)
        if partner is not None and partner.present_for(session):
            reason = f"no staff valid for both {student.name} and {partner.name}; {reason}"
        logger.log("assign", student, session, program, "", "deficiency", reason)
        return Deficiency(student.id, student.name, session, program, need, len(held), reason)

    for member in candidates[:remaining]:
        record = out.add(Assignment(
            id=out.next_id("A"), staff_id=member.id, student_id=student.id,
            session=session, program=program, origin=Origin.AUTO,
        ))
        note = ""
        twin = mirror_create(out, record, partner)
        if twin is not None:
            note = f"mirrored to {partner.name}"
        logger.log("assign", student, session, program, member.id, "assigned", note)
    return None


def auto_assign(
    schedule: Schedule,
    staff: Iterable[Staff],
    students: Iterable[Student],
    options: Optional[AssignOptions] = None,
    *,
    logger: Optional[DecisionLogger] = None,
) -> Tuple[Schedule, List[Deficiency]]:
    """Return ``(updated copy of schedule, deficiencies)``; the input is not modified."""

    options = options or AssignOptions()
    cfg = build_config(options.config)
    logger = logger if logger is not None else DecisionLogger()
    staff = list(staff)
    students = list(students)
    by_id = {s.id: s for s in students}
    group_only = list(cfg["GROUP_ONLY_ROLES"])
    conflicted: Set[Tuple[str, str]] = set()
    for a, b, session in ratio_conflicts(students):
        conflicted.add((a, session))
        conflicted.add((b, session))

    out = schedule.copy()
    deficiencies: List[Deficiency] = []
    for program in cfg["PROGRAMS"]:
        for session in cfg["SESSIONS"]:
            roster = [s for s in students if s.program == program]
            for student in student_order(roster, session, options.temporary_team):
                if not student.active:
                    logger.log("skip", student, session, program, "", "inactive")
                    continue
                if not student.present_for(session):
                    logger.log("skip", student, session, program, "", "not present")
                    continue
                partner = None
                if (student.id, session) not in conflicted:
                    partner = active_partner(student, session, by_id)
                gap = _fill_student(out, student, partner, session, program, staff,
                                    options.temporary_team, group_only, logger)
                if gap is not None:
                    deficiencies.append(gap)
    return out, deficiencies


# ------------------------------- CLI ----------------------------------

def load_temporary_team(path: Optional[Path]) -> TemporaryTeamOverrides:
    """``{"student id": [{"staff": "id", "sessions": ["AM"]}, ...]}``; sessions default to both."""
    overrides = TemporaryTeamOverrides()
    if path is None:
        return overrides
    data = json.loads(resolve_data_path(Path(path)).read_text(encoding="utf-8"))
    for student_id, entries in data.items():
        for entry in entries:
            if isinstance(entry, str):
                overrides.add(student_id, entry)
            else:
                overrides.add(student_id, entry["staff"], entry.get("sessions") or ("AM", "PM"))
    return overrides


def write_deficiencies(rows: Iterable[Deficiency], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=DEFICIENCY_FIELDS)
        w.writeheader()
        for d in rows:
            w.writerow(d.to_row())


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Auto-assign staff to students for one day",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--staff", default="staff.csv", type=Path, help="Staff list export")
    ap.add_argument("--students", default="students.csv", type=Path, help="Student list export")
    ap.add_argument("--staff-url", default=None, help="Download the staff export to --staff first")
    ap.add_argument("--students-url", default=None, help="Download the student export to --students first")
    ap.add_argument("--refresh", action="store_true", help="Re-download exports even when cached")
    ap.add_argument("--schedule", default=None, type=Path, help="Existing assignments for the day (optional)")
    ap.add_argument("--date", default="", help="Schedule date when --schedule is empty or missing")
    ap.add_argument("--temp-team", default=None, type=Path, help="JSON file of same-day team additions")
    ap.add_argument("--config", default=None, type=Path, help="JSON overrides for DEFAULT_CONFIG")
    ap.add_argument("--reset", action="store_true", help="Drop unlocked assignments before assigning")
    ap.add_argument("--out", default=Path("schedule_auto.csv"), type=Path)
    ap.add_argument("--deficiencies", default=Path("deficiencies.csv"), type=Path)
    ap.add_argument("--log", default=Path("decision_log.csv"), type=Path)
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    cfg = load_config_file(args.config)
    staff = load_staff_csv(roster_source(args.staff, args.staff_url, force=args.refresh))
    students = load_students_csv(roster_source(args.students, args.students_url, force=args.refresh))
    schedule = load_schedule_csv(resolve_data_path(args.schedule) if args.schedule else None, args.date)
    if args.reset:
        schedule = clear_unlocked(schedule)

    logger = DecisionLogger()
    options = AssignOptions(temporary_team=load_temporary_team(args.temp_team), config=cfg)
    updated, deficiencies = auto_assign(schedule, staff, students, options, logger=logger)

    write_schedule_csv(updated, args.out)
    write_deficiencies(deficiencies, args.deficiencies)
    logger.write_csv(args.log)
    added = len(updated.assignments) - len(schedule.assignments)
    print(f"Wrote {len(updated.assignments)} assignments ({added} new) to {args.out}")
    print(f"Wrote {len(deficiencies)} deficiencies to {args.deficiencies}")
    print(f"Decision log saved to {args.log}")


if __name__ == "__main__":
    main()
