"""Suggest staff swaps that free higher-tier staff.

A behavior specialist holding an ordinary session is usually better spent
elsewhere. For every unlocked assignment held by a ``SWAP_FROM_ROLES`` member
we look for an unassigned ``SWAP_TO_ROLES`` member on the student's team
whose training status is one of ``SWAP_STATUSES`` and who would pass the
normal availability checks (for both students of a 1:2 pair).

``find_swaps`` only reads. ``accept_swap`` applies one suggestion to a copy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from availability import (
    BUSY,
    INACTIVE,
    NOT_ON_TEAM,
    SAME_DAY,
    UNAVAILABLE,
    explain_rejection,
    rank_key,
)
from pairing import active_partner, mirror_create, mirror_remove
from roster_model import (
    AssignmentLockedError,
    Assignment,
    AvailabilityError,
    MissingEntityError,
    Origin,
    QualificationError,
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
from scheduler_config import build_config


@dataclass
class SwapSuggestion:
    assignment_id: str
    student_id: str
    student_name: str
    session: str
    program: str
    current_staff_id: str
    current_staff_name: str
    replacement_id: str
    replacement_name: str
    partner_id: Optional[str] = None

    @property
    def description(self) -> str:
        return (f"{self.session} {self.student_name}: {self.replacement_name} "
                f"could replace {self.current_staff_name}")


def _passes(member: Staff, student: Student, session: str, program: str, schedule: Schedule,
            overrides: Optional[TemporaryTeamOverrides], group_only: List[str]) -> bool:
    team = effective_team(student, session, overrides)
    return not explain_rejection(member, student, session, program, schedule,
                                 team=team, group_only_roles=group_only)


def find_swaps(
    schedule: Schedule,
    staff: Iterable[Staff],
    students: Iterable[Student],
    session: str,
    program: str,
    config: Optional[dict] = None,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
) -> List[SwapSuggestion]:
    cfg = build_config(config)
    session = check_session(session)
    program = check_program(program)
    staff = list(staff)
    staff_by_id = {m.id: m for m in staff}
    students_by_id = {s.id: s for s in students}
    from_roles = set(cfg["SWAP_FROM_ROLES"])
    to_roles = set(cfg["SWAP_TO_ROLES"])
    statuses = set(cfg["SWAP_STATUSES"])
    group_only = list(cfg["GROUP_ONLY_ROLES"])

    suggestions: List[SwapSuggestion] = []
    done: Set[tuple] = set()
    for a in schedule.for_session(session, program):
        holder = staff_by_id.get(a.staff_id)
        student = students_by_id.get(a.student_id)
        if a.locked or holder is None or student is None:
            continue
        if holder.role.value not in from_roles:
            continue
        partner = active_partner(student, session, students_by_id)
        group = frozenset({student.id, partner.id}) if partner else frozenset({student.id})
        if (a.staff_id, group) in done:
            continue
        done.add((a.staff_id, group))

        pool = [
            m for m in staff
            if m.role.value in to_roles
            and student.training_status(m.id).value in statuses
            and _passes(m, student, session, program, schedule, overrides, group_only)
        ]
        if partner is not None and partner.present_for(session):
            pool = [m for m in pool
                    if partner.training_status(m.id).value in statuses
                    and _passes(m, partner, session, program, schedule, overrides, group_only)]
        team = effective_team(student, session, overrides)
        pool.sort(key=lambda m: rank_key(m, student, schedule, team))
        for m in pool:
            suggestions.append(SwapSuggestion(
                assignment_id=a.id, student_id=student.id, student_name=student.name,
                session=session, program=program,
                current_staff_id=holder.id, current_staff_name=holder.name,
                replacement_id=m.id, replacement_name=m.name,
                partner_id=partner.id if partner else None,
            ))
    return suggestions


_SWAP_ERRORS = {
    INACTIVE: AvailabilityError,
    UNAVAILABLE: AvailabilityError,
    NOT_ON_TEAM: TeamViolationError,
    BUSY: SessionConflictError,
    SAME_DAY: SameDayRepeatError,
}


def _recheck(member: Staff, student: Student, record: Assignment, schedule: Schedule,
             overrides: Optional[TemporaryTeamOverrides], group_only: List[str]) -> None:
    team = effective_team(student, record.session, overrides)
    reason = explain_rejection(member, student, record.session, record.program, schedule,
                               team=team, group_only_roles=group_only)
    if reason:
        error = _SWAP_ERRORS.get(reason, QualificationError)
        raise error(f"{member.name} can no longer take {student.name} in {record.session} ({reason})")


def accept_swap(
    schedule: Schedule,
    suggestion: SwapSuggestion,
    staff: Iterable[Staff],
    students: Iterable[Student],
    config: Optional[dict] = None,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
) -> Schedule:
    """Return a copy with the suggestion applied (origin ``auto-swap``).

    The schedule may have moved on since ``find_swaps`` ran, so the
    replacement is checked again for the student and a present partner.
    """
    cfg = build_config(config)
    out = schedule.copy()
    record = out.find(suggestion.assignment_id)
    if record is None or record.staff_id != suggestion.current_staff_id:
        raise MissingEntityError(f"Assignment {suggestion.assignment_id} no longer matches the suggestion")
    if record.locked:
        raise AssignmentLockedError(f"Assignment {record.id} is locked")
    member = next((m for m in staff if m.id == suggestion.replacement_id), None)
    if member is None:
        raise MissingEntityError(f"Unknown staff id {suggestion.replacement_id!r}")

    students_by_id = {s.id: s for s in students}
    student = students_by_id.get(record.student_id)
    if student is None:
        raise MissingEntityError(f"Unknown student id {record.student_id!r}")
    partner = active_partner(student, record.session, students_by_id)
    out.remove(record.id)
    mirror_remove(out, record, partner)

    group_only = list(cfg["GROUP_ONLY_ROLES"])
    _recheck(member, student, record, out, overrides, group_only)
    if partner is not None and partner.present_for(record.session):
        _recheck(member, partner, record, out, overrides, group_only)

    fresh = out.add(Assignment(
        id=out.next_id("A"), staff_id=member.id, student_id=student.id,
        session=record.session, program=record.program, origin=Origin.AUTO_SWAP,
    ))
    mirror_create(out, fresh, partner)
    return out
