"""Record and CSV forms of the roster.

The list backend exports one row per staff member, client and assignment,
using the logical field names below. ``*_from_record`` accepts the loose
spreadsheet form (Yes/No flags, ``;``-separated team ids, JSON training
map) and ``*_to_record`` produces the canonical one, so a load/save cycle
normalizes the files.
"""

from __future__ import annotations

import csv
import json
import ssl
import urllib.request
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import certifi

from roster_model import (
    Assignment,
    DayAttendance,
    Schedule,
    Staff,
    Student,
    TraineeAssignment,
    trim,
)
from scheduler_config import resolve_data_path

ATTENDANCE_FIELDS = [
    "AbsentAM", "AbsentPM", "AbsentFullDay",
    "OutOfSessionAM", "OutOfSessionPM", "OutOfSessionFullDay",
]
STAFF_FIELDS = ["Id", "Title", "Role", "PrimaryProgram", "SecondaryProgram", "IsActive"] + ATTENDANCE_FIELDS
STUDENT_FIELDS = [
    "Id", "Title", "Program", "RatioAM", "RatioPM", "TeamIds", "PairedWith", "IsActive",
] + ATTENDANCE_FIELDS + ["TeamTrainingStatus"]
ASSIGNMENT_FIELDS = [
    "Id", "Date", "StaffId", "StudentId", "Session", "Program",
    "IsLocked", "Origin", "BypassTeam", "IsTrainee",
]

TRUE_MARKERS = {"YES", "Y", "TRUE", "1", "X"}


def flag(value) -> bool:
    return trim(value).upper() in TRUE_MARKERS


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def split_ids(value) -> List[str]:
    raw = trim(value).replace(",", ";")
    return [p.strip() for p in raw.split(";") if p.strip()]


def _attendance_from_record(rec: Dict[str, str]) -> DayAttendance:
    return DayAttendance.from_flags(
        absent_am=flag(rec.get("AbsentAM")),
        absent_pm=flag(rec.get("AbsentPM")),
        absent_full_day=flag(rec.get("AbsentFullDay")),
        out_am=flag(rec.get("OutOfSessionAM")),
        out_pm=flag(rec.get("OutOfSessionPM")),
        out_full_day=flag(rec.get("OutOfSessionFullDay")),
    )


def _attendance_to_record(att: DayAttendance) -> Dict[str, str]:
    f = att.to_flags()
    return {
        "AbsentAM": yes_no(f["absent_am"]),
        "AbsentPM": yes_no(f["absent_pm"]),
        "AbsentFullDay": yes_no(f["absent_full_day"]),
        "OutOfSessionAM": yes_no(f["out_am"]),
        "OutOfSessionPM": yes_no(f["out_pm"]),
        "OutOfSessionFullDay": yes_no(f["out_full_day"]),
    }


# ------------------------------ Staff ---------------------------------

def staff_from_record(rec: Dict[str, str]) -> Staff:
    sid = trim(rec.get("Id"))
    if not sid:
        raise ValueError(f"Staff record without Id: {rec!r}")
    active = rec.get("IsActive")
    return Staff(
        id=sid,
        name=trim(rec.get("Title")) or sid,
        role=trim(rec.get("Role")) or "RBT",
        primary_program=flag(rec.get("PrimaryProgram")),
        secondary_program=flag(rec.get("SecondaryProgram")),
        active=True if trim(active) == "" else flag(active),
        attendance=_attendance_from_record(rec),
    )


def staff_to_record(member: Staff) -> Dict[str, str]:
    rec = {
        "Id": member.id,
        "Title": member.name,
        "Role": member.role.value,
        "PrimaryProgram": yes_no(member.primary_program),
        "SecondaryProgram": yes_no(member.secondary_program),
        "IsActive": yes_no(member.active),
    }
    rec.update(_attendance_to_record(member.attendance))
    return rec


# ----------------------------- Students -------------------------------

def _training_from_field(value, student_id: str) -> Dict[str, str]:
    raw = trim(value)
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"TeamTrainingStatus for {student_id} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"TeamTrainingStatus for {student_id} must be a JSON object")
    return {str(k): str(v) for k, v in data.items()}


def student_from_record(rec: Dict[str, str]) -> Student:
    sid = trim(rec.get("Id"))
    if not sid:
        raise ValueError(f"Student record without Id: {rec!r}")
    active = rec.get("IsActive")
    return Student(
        id=sid,
        name=trim(rec.get("Title")) or sid,
        program=trim(rec.get("Program")) or "Primary",
        ratio_am=trim(rec.get("RatioAM")) or "1:1",
        ratio_pm=trim(rec.get("RatioPM")) or "1:1",
        team=split_ids(rec.get("TeamIds")),
        paired_with=trim(rec.get("PairedWith")) or None,
        attendance=_attendance_from_record(rec),
        training=_training_from_field(rec.get("TeamTrainingStatus"), sid),
        active=True if trim(active) == "" else flag(active),
    )


def student_to_record(student: Student) -> Dict[str, str]:
    rec = {
        "Id": student.id,
        "Title": student.name,
        "Program": student.program,
        "RatioAM": student.ratio_am.value,
        "RatioPM": student.ratio_pm.value,
        "TeamIds": ";".join(student.team),
        "PairedWith": student.paired_with or "",
        "IsActive": yes_no(student.active),
    }
    rec.update(_attendance_to_record(student.attendance))
    training = {k: v.value for k, v in sorted(student.training.items())}
    rec["TeamTrainingStatus"] = json.dumps(training, sort_keys=True) if training else ""
    return rec


# ---------------------------- Assignments -----------------------------

def assignment_from_record(rec: Dict[str, str]) -> Assignment:
    cls = TraineeAssignment if flag(rec.get("IsTrainee")) else Assignment
    aid = trim(rec.get("Id"))
    if not aid:
        raise ValueError(f"Assignment record without Id: {rec!r}")
    return cls(
        id=aid,
        staff_id=trim(rec.get("StaffId")),
        student_id=trim(rec.get("StudentId")),
        session=trim(rec.get("Session")).upper(),
        program=trim(rec.get("Program")) or "Primary",
        locked=flag(rec.get("IsLocked")),
        origin=trim(rec.get("Origin")) or "manual",
        bypass_team=flag(rec.get("BypassTeam")),
    )


def assignment_to_record(a: Assignment, date: str = "") -> Dict[str, str]:
    return {
        "Id": a.id,
        "Date": date,
        "StaffId": a.staff_id,
        "StudentId": a.student_id,
        "Session": a.session,
        "Program": a.program,
        "IsLocked": yes_no(a.locked),
        "Origin": a.origin.value,
        "BypassTeam": yes_no(a.bypass_team),
        "IsTrainee": yes_no(isinstance(a, TraineeAssignment)),
    }


# ------------------------------- CSV ----------------------------------

def read_records(path: Path) -> List[Dict[str, str]]:
    with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
        return [dict(row) for row in csv.DictReader(handle)]


def write_records(rows: Iterable[Dict[str, str]], fields: List[str], path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fields)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: row.get(k, "") for k in fields})


def load_staff_csv(path: Path) -> List[Staff]:
    return [staff_from_record(r) for r in read_records(path) if any(trim(v) for v in r.values())]


def load_students_csv(path: Path) -> List[Student]:
    return [student_from_record(r) for r in read_records(path) if any(trim(v) for v in r.values())]


def load_schedule_csv(path: Optional[Path], date: str = "") -> Schedule:
    """Read an assignment export; a missing path gives an empty schedule."""
    schedule = Schedule(date=date)
    if path is None or not Path(path).exists():
        return schedule
    for rec in read_records(path):
        if not any(trim(v) for v in rec.values()):
            continue
        if not schedule.date:
            schedule.date = trim(rec.get("Date"))
        a = assignment_from_record(rec)
        if isinstance(a, TraineeAssignment):
            schedule.add_trainee(a)
        else:
            schedule.add(a)
    return schedule


def write_staff_csv(staff: Iterable[Staff], path: Path) -> None:
    write_records((staff_to_record(m) for m in staff), STAFF_FIELDS, path)


def write_students_csv(students: Iterable[Student], path: Path) -> None:
    write_records((student_to_record(s) for s in students), STUDENT_FIELDS, path)


def write_schedule_csv(schedule: Schedule, path: Path) -> None:
    rows = [assignment_to_record(a, schedule.date) for a in schedule.assignments]
    rows += [assignment_to_record(a, schedule.date) for a in schedule.trainee_assignments]
    write_records(rows, ASSIGNMENT_FIELDS, path)


# ----------------------------- Download -------------------------------

USER_AGENT = "RosterEngine/1.0"


def download_if_needed(url: str, dest: Path, force: bool = False, *, timeout: float = 30.0) -> Path:
    """Fetch a list export over HTTPS unless ``dest`` already holds a copy.

    The payload goes to a ``.part`` file first so a failed fetch never
    replaces a good cached export.
    """
    dest = Path(dest)
    if dest.exists() and dest.stat().st_size and not force:
        return dest
    context = ssl.create_default_context(cafile=certifi.where())
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, "Accept": "text/csv"})
    with urllib.request.urlopen(request, context=context, timeout=timeout) as resp:
        payload = resp.read()
    if not payload.strip():
        raise ValueError(f"{url} returned an empty export")
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    partial.write_bytes(payload)
    partial.replace(dest)
    return dest


def roster_source(path: Path, url: Optional[str] = None, force: bool = False) -> Path:
    """Local roster file, refreshed from ``url`` when one is given."""
    if url:
        return download_if_needed(url, path, force=force)
    return resolve_data_path(Path(path))
