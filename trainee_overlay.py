"""Training-observation layer.

Trainee records sit beside the regular assignments: they are always locked,
never count toward a student's ratio and are only ever entered by an
operator. A staff member whose status for a student is ``overlap-staff`` or
``overlap-bcba`` lives here for that student and never in the regular
candidate list.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from availability import BUSY, NOT_ON_TEAM, PROGRAM, explain_rejection, resolve_candidates
from pairing import active_partner, mirror_create, mirror_remove
from roster_model import (
    OVERLAP_STATUSES,
    AvailabilityError,
    MissingEntityError,
    Origin,
    QualificationError,
    Schedule,
    SessionConflictError,
    Staff,
    Student,
    TeamViolationError,
    TemporaryTeamOverrides,
    TraineeAssignment,
    check_program,
    check_session,
    effective_team,
)


def trainee_pool(
    student: Student,
    session: str,
    staff: Iterable[Staff],
    schedule: Schedule,
    overrides: Optional[TemporaryTeamOverrides] = None,
) -> List[Staff]:
    """Staff who could be added as trainees for ``student`` in ``session``."""
    if not student.active or not student.present_for(session):
        return []
    return resolve_candidates(student, session, student.program, staff, schedule,
                              overrides=overrides, for_trainee=True)


def _check_trainee(
    schedule: Schedule,
    member: Staff,
    student: Student,
    session: str,
    program: str,
    pair_ids: Iterable[str],
    bypass_team: bool,
    overrides: Optional[TemporaryTeamOverrides],
) -> None:
    if student.training_status(member.id) not in OVERLAP_STATUSES:
        raise QualificationError(f"{member.name} is not in training for {student.name}")
    if not student.present_for(session):
        raise AvailabilityError(f"{student.name} is not present in {session}")
    if program != student.program:
        raise QualificationError(f"{student.name} is in the {student.program} program, not {program}")

    team = effective_team(student, session, overrides)
    reason = explain_rejection(member, student, session, program, schedule,
                               team=team, bypass_team=bypass_team, for_trainee=True,
                               ignore_students=pair_ids)
    if reason == NOT_ON_TEAM:
        raise TeamViolationError(f"{member.name} is not on {student.name}'s team")
    if reason == PROGRAM:
        raise QualificationError(f"{member.name} is not qualified for the {program} program")
    if reason == BUSY:
        raise SessionConflictError(f"{member.name} already holds an assignment in {session}")
    if reason:
        raise AvailabilityError(f"{member.name} is not available in {session} ({reason})")


def add_trainee_assignment(
    schedule: Schedule,
    staff_id: str,
    student_id: str,
    session: str,
    staff: Iterable[Staff],
    students: Iterable[Student],
    program: Optional[str] = None,
    *,
    bypass_team: bool = False,
    overrides: Optional[TemporaryTeamOverrides] = None,
) -> TraineeAssignment:
    """Add an overlap trainee for ``student``; a present 1:2 partner must accept them too."""
    staff_by_id = {m.id: m for m in staff}
    students_by_id = {s.id: s for s in students}
    member = staff_by_id.get(staff_id)
    if member is None:
        raise MissingEntityError(f"Unknown staff id {staff_id!r}")
    student = students_by_id.get(student_id)
    if student is None:
        raise MissingEntityError(f"Unknown student id {student_id!r}")
    session = check_session(session)
    program = check_program(program or student.program)

    partner = active_partner(student, session, students_by_id)
    pair_ids = (student.id, partner.id) if partner is not None else ()
    _check_trainee(schedule, member, student, session, program, pair_ids, bypass_team, overrides)
    if any(t.staff_id == member.id for t in schedule.trainees_for_student(student.id, session)):
        raise SessionConflictError(f"{member.name} is already a trainee for {student.name} in {session}")
    if partner is not None and partner.present_for(session):
        if not any(t.staff_id == member.id for t in schedule.trainees_for_student(partner.id, session)):
            _check_trainee(schedule, member, partner, session, program, pair_ids, bypass_team, overrides)

    record = schedule.add_trainee(TraineeAssignment(
        id=schedule.next_id("T"), staff_id=member.id, student_id=student.id,
        session=session, program=program, origin=Origin.MANUAL, bypass_team=bypass_team,
    ))
    mirror_create(schedule, record, partner)
    return record


def remove_trainee_assignment(schedule: Schedule, assignment_id: str, students: Iterable[Student]) -> TraineeAssignment:
    """Trainee records are operator-owned, so removal does not need an unlock."""
    record = schedule.find_trainee(assignment_id)
    if record is None:
        raise MissingEntityError(f"Unknown trainee assignment id {assignment_id!r}")
    by_id = {s.id: s for s in students}
    schedule.remove_trainee(record.id)
    student = by_id.get(record.student_id)
    if student is not None:
        mirror_remove(schedule, record, active_partner(student, record.session, by_id))
    return record
