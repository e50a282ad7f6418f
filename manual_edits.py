"""Operator edits: add, remove, lock and unlock single assignments.

These are the only entry points that raise. Every check runs before the
first write, so a failed call leaves the schedule untouched; a successful
call repeats itself on an active 1:2 partner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from pairing import active_partner, mirror_create, mirror_lock, mirror_remove
from roster_model import (
    OVERLAP_STATUSES,
    Assignment,
    AssignmentLockedError,
    AvailabilityError,
    MissingEntityError,
    Origin,
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
    check_program,
    check_session,
    effective_team,
)


@dataclass
class AssignmentRequest:
    staff_id: str
    student_id: str
    session: str
    program: Optional[str] = None
    locked: bool = False


def _lookup(staff: Iterable[Staff], students: Iterable[Student], staff_id: str, student_id: str):
    staff_by_id: Dict[str, Staff] = {m.id: m for m in staff}
    students_by_id: Dict[str, Student] = {s.id: s for s in students}
    member = staff_by_id.get(staff_id)
    if member is None:
        raise MissingEntityError(f"Unknown staff id {staff_id!r}")
    student = students_by_id.get(student_id)
    if student is None:
        raise MissingEntityError(f"Unknown student id {student_id!r}")
    return member, student, students_by_id


def _check_student(
    schedule: Schedule,
    member: Staff,
    student: Student,
    session: str,
    program: str,
    bypass_team: bool,
    overrides: Optional[TemporaryTeamOverrides],
    group_only_roles: Iterable[str],
) -> None:
    if program != student.program:
        raise QualificationError(f"{student.name} is in the {student.program} program, not {program}")
    if not student.active:
        raise AvailabilityError(f"{student.name} is inactive")
    if not student.present_for(session):
        raise AvailabilityError(f"{student.name} is not present in {session}")
    if not bypass_team and member.id not in effective_team(student, session, overrides):
        raise TeamViolationError(f"{member.name} is not on {student.name}'s team")
    if student.training_status(member.id) in OVERLAP_STATUSES:
        raise QualificationError(
            f"{member.name} is still in training for {student.name}; use a trainee assignment"
        )
    if student.ratio_for(session) is Ratio.ONE_TO_ONE and not member.can_do_one_to_one(group_only_roles):
        raise QualificationError(f"{member.name} ({member.role.value}) may not run a 1:1 session")
    if schedule.worked_together(member.id, student.id):
        raise SameDayRepeatError(f"{member.name} already works with {student.name} today")

    held = {a.staff_id for a in schedule.for_student(student.id, session)}
    if member.id in held:
        raise SessionConflictError(f"{member.name} is already assigned to {student.name} in {session}")
    if len(held) >= student.required_staff(session):
        raise RatioUnmetError(
            f"{student.name} already has {len(held)} of {student.required_staff(session)} staff in {session}"
        )


def add_assignment(
    schedule: Schedule,
    request: AssignmentRequest,
    staff: Iterable[Staff],
    students: Iterable[Student],
    bypass_team: bool = False,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
    group_only_roles: Iterable[str] = (),
) -> Assignment:
    """Validate ``request`` and write it as a manual assignment (plus its mirror)."""

    member, student, students_by_id = _lookup(staff, students, request.staff_id, request.student_id)
    session = check_session(request.session)
    program = check_program(request.program or student.program)
    group_only = list(group_only_roles)

    if not member.can_do_direct_sessions():
        raise QualificationError(f"{member.name} ({member.role.value}) does not run direct sessions")
    if not member.can_work_program(program):
        raise QualificationError(f"{member.name} is not qualified for the {program} program")
    if not member.active or not member.available_for(session):
        raise AvailabilityError(f"{member.name} is not available in {session}")

    partner = active_partner(student, session, students_by_id)
    pair_ids = (student.id, partner.id) if partner is not None else ()
    if schedule.staff_busy(member.id, session, ignore_students=pair_ids):
        raise SessionConflictError(f"{member.name} already holds an assignment in {session}")

    _check_student(schedule, member, student, session, program, bypass_team, overrides, group_only)
    if partner is not None and partner.present_for(session):
        shared = {a.staff_id for a in schedule.for_student(partner.id, session)}
        if shared and member.id not in shared:
            raise RatioUnmetError(
                f"{partner.name} already shares {', '.join(sorted(shared))} in {session}"
            )
        if not shared:
            _check_student(schedule, member, partner, session, program, bypass_team, overrides, group_only)

    record = schedule.add(Assignment(
        id=schedule.next_id("A"), staff_id=member.id, student_id=student.id,
        session=session, program=program, locked=request.locked,
        origin=Origin.MANUAL, bypass_team=bypass_team,
    ))
    mirror_create(schedule, record, partner)
    return record


def _partner_for(record: Assignment, students: Iterable[Student]) -> Optional[Student]:
    by_id = {s.id: s for s in students}
    student = by_id.get(record.student_id)
    if student is None:
        return None
    return active_partner(student, record.session, by_id)


def _find(schedule: Schedule, assignment_id: str) -> Assignment:
    record = schedule.find(assignment_id)
    if record is None:
        raise MissingEntityError(f"Unknown assignment id {assignment_id!r}")
    return record


def remove_assignment(
    schedule: Schedule,
    assignment_id: str,
    students: Iterable[Student],
    force_unlock: bool = False,
) -> Assignment:
    """Remove an assignment and its mirror; locked ones need ``force_unlock``."""

    record = _find(schedule, assignment_id)
    if record.locked and not force_unlock:
        raise AssignmentLockedError(f"Assignment {assignment_id} is locked; unlock it first")
    schedule.remove(record.id)
    mirror_remove(schedule, record, _partner_for(record, students))
    return record


def lock_assignment(schedule: Schedule, assignment_id: str, students: Iterable[Student]) -> Assignment:
    record = _find(schedule, assignment_id)
    record.locked = True
    mirror_lock(schedule, record, _partner_for(record, students))
    return record


def unlock_assignment(schedule: Schedule, assignment_id: str, students: Iterable[Student]) -> Assignment:
    record = _find(schedule, assignment_id)
    record.locked = False
    mirror_lock(schedule, record, _partner_for(record, students))
    return record
