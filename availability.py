"""Candidate pool for one student in one session.

Every filter is a named check so the engine can say *why* a team member was
not usable (``explain_rejection``). The regular pool and the trainee pool
share the pipeline: the regular pool drops staff whose training status for
the student is an overlap status, the trainee pool keeps only those.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from roster_model import (
    OVERLAP_STATUSES,
    Ratio,
    Schedule,
    Staff,
    Student,
    TemporaryTeamOverrides,
    TrainingStatus,
    effective_team,
)

# Rejection codes, in pipeline order.
INACTIVE = "inactive"
UNAVAILABLE = "unavailable"
NOT_ON_TEAM = "not-on-team"
PROGRAM = "program"
BUSY = "busy"
SAME_DAY = "same-day"
NOT_DIRECT = "not-direct"
NO_ONE_TO_ONE = "no-1:1"
IN_TRAINING = "in-training"
NOT_IN_TRAINING = "not-in-training"


def explain_rejection(
    member: Staff,
    student: Student,
    session: str,
    program: str,
    schedule: Schedule,
    *,
    team: Sequence[str],
    bypass_team: bool = False,
    for_trainee: bool = False,
    group_only_roles: Iterable[str] = (),
    ignore_students: Iterable[str] = (),
) -> str:
    """Return the first failing filter for ``member`` or ``""`` when eligible."""

    if not member.active:
        return INACTIVE
    if not member.available_for(session, allow_out_of_session=for_trainee):
        return UNAVAILABLE
    if not bypass_team and member.id not in team:
        return NOT_ON_TEAM
    if not member.can_work_program(program):
        return PROGRAM
    if schedule.staff_busy(member.id, session, ignore_students=ignore_students):
        return BUSY

    status = student.training_status(member.id)
    if for_trainee:
        return "" if status in OVERLAP_STATUSES else NOT_IN_TRAINING

    if schedule.worked_together(member.id, student.id):
        return SAME_DAY
    if not member.can_do_direct_sessions():
        return NOT_DIRECT
    if student.ratio_for(session) is Ratio.ONE_TO_ONE and not member.can_do_one_to_one(group_only_roles):
        return NO_ONE_TO_ONE
    if status in OVERLAP_STATUSES:
        return IN_TRAINING
    return ""


def rank_key(member: Staff, student: Student, schedule: Schedule, team: Sequence[str]):
    team_pos = team.index(member.id) if member.id in team else len(team)
    trainer_rank = 0 if student.training_status(member.id) is TrainingStatus.TRAINER else 1
    return (member.tier, schedule.daily_load(member.id), trainer_rank, team_pos, member.id)


def resolve_candidates(
    student: Student,
    session: str,
    program: str,
    staff: Iterable[Staff],
    schedule: Schedule,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
    bypass_team: bool = False,
    for_trainee: bool = False,
    group_only_roles: Iterable[str] = (),
    exclude: Iterable[str] = (),
) -> List[Staff]:
    """Ordered eligible staff for ``student`` in ``session``.

    Order: qualification tier, then today's load (lightly loaded first), then
    trainers ahead of other ties, then the student's team order, then id.
    """

    team = effective_team(student, session, overrides)
    excluded = set(exclude)
    group_only = list(group_only_roles)
    pool = [
        m for m in staff
        if m.id not in excluded
        and not explain_rejection(
            m, student, session, program, schedule,
            team=team, bypass_team=bypass_team, for_trainee=for_trainee,
            group_only_roles=group_only,
        )
    ]
    pool.sort(key=lambda m: rank_key(m, student, schedule, team))
    return pool


def rejection_summary(
    student: Student,
    session: str,
    program: str,
    staff: Iterable[Staff],
    schedule: Schedule,
    *,
    overrides: Optional[TemporaryTeamOverrides] = None,
    group_only_roles: Iterable[str] = (),
) -> str:
    """Short ``"Name: reason"`` list for the student's team members."""
    team = effective_team(student, session, overrides)
    by_id = {m.id: m for m in staff}
    parts: List[str] = []
    for sid in team:
        member = by_id.get(sid)
        if member is None:
            parts.append(f"{sid}: unknown staff")
            continue
        reason = explain_rejection(
            member, student, session, program, schedule,
            team=team, group_only_roles=list(group_only_roles),
        )
        parts.append(f"{member.name}: {reason or 'eligible'}")
    return "; ".join(parts) if parts else "empty team"
