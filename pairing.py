"""1:2 pairing: symmetric partner lookup, mirrored writes and read fallback.

Two students share staff only when both name each other in ``paired_with``
and both are 1:2 for the session in question. The coordinator never keeps a
shared record: every staff or trainee write on one partner is repeated on
the other, with the same origin (manual creates are copied as
``auto-paired``) and the same lock state.

Older schedules may carry the shared staff member on one partner only;
``assignments_for`` reconciles that at read time instead of rewriting data.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from roster_model import (
    Assignment,
    Origin,
    Ratio,
    Schedule,
    SESSIONS,
    Student,
    TraineeAssignment,
)


# ------------------------------ Graph ---------------------------------

def pairing_graph(students: Iterable[Student]) -> nx.Graph:
    """Undirected graph of confirmed (mutual, same-program) pairs."""
    students = list(students)
    by_id = {s.id: s for s in students}
    graph = nx.Graph()
    for s in students:
        graph.add_node(s.id, name=s.name, program=s.program)
    for s in students:
        partner = partner_of(s, by_id)
        if partner is not None:
            graph.add_edge(s.id, partner.id)
    return graph


def partner_of(student: Student, by_id: Dict[str, Student]) -> Optional[Student]:
    if not student.paired_with or student.paired_with == student.id:
        return None
    partner = by_id.get(student.paired_with)
    if partner is None or partner.paired_with != student.id:
        return None
    if partner.program != student.program:
        return None
    return partner


def active_partner(student: Student, session: str, by_id: Dict[str, Student]) -> Optional[Student]:
    """Partner whose staffing must mirror ``student``'s in ``session``."""
    partner = partner_of(student, by_id)
    if partner is None or not partner.active:
        return None
    if student.ratio_for(session) is not Ratio.ONE_TO_TWO:
        return None
    if partner.ratio_for(session) is not Ratio.ONE_TO_TWO:
        return None
    return partner


def ratio_conflicts(students: Iterable[Student]) -> List[Tuple[str, str, str]]:
    """(student, partner, session) where one side is 2:1 and the other 1:2."""
    students = list(students)
    by_id = {s.id: s for s in students}
    out: List[Tuple[str, str, str]] = []
    for s in students:
        partner = partner_of(s, by_id)
        if partner is None or s.id > partner.id:
            continue
        for session in SESSIONS:
            ratios = {s.ratio_for(session), partner.ratio_for(session)}
            if ratios == {Ratio.TWO_TO_ONE, Ratio.ONE_TO_TWO}:
                out.append((s.id, partner.id, session))
    return out


def pairing_issues(students: Iterable[Student]) -> List[str]:
    """Human-readable problems in the pairing data; empty when clean."""
    students = list(students)
    by_id = {s.id: s for s in students}
    issues: List[str] = []
    for s in students:
        if not s.paired_with:
            continue
        if s.paired_with == s.id:
            issues.append(f"{s.name} is paired with itself")
            continue
        other = by_id.get(s.paired_with)
        if other is None:
            issues.append(f"{s.name} is paired with unknown student {s.paired_with}")
        elif other.paired_with != s.id:
            issues.append(f"{s.name} names {other.name} as partner but the pairing is one-sided")
        elif other.program != s.program:
            if s.id < other.id:
                issues.append(f"{s.name} and {other.name} are paired across programs")

    graph = pairing_graph(students)
    for sid, pid, session in ratio_conflicts(students):
        issues.append(
            f"{graph.nodes[sid]['name']} and {graph.nodes[pid]['name']} mix 2:1 and 1:2 in {session}; treated as unpaired"
        )
    return issues


# ---------------------------- Read fallback ---------------------------

def assignments_for(
    schedule: Schedule,
    student: Student,
    session: str,
    by_id: Dict[str, Student],
    *,
    trainee: bool = False,
) -> List[Assignment]:
    """Records for ``student``/``session``; falls back to the 1:2 partner's when empty."""
    own = (schedule.trainees_for_student(student.id, session) if trainee
           else schedule.for_student(student.id, session))
    if own or student.ratio_for(session) is not Ratio.ONE_TO_TWO:
        return own
    partner = partner_of(student, by_id)
    if partner is None:
        return own
    return (schedule.trainees_for_student(partner.id, session) if trainee
            else schedule.for_student(partner.id, session))


# ------------------------------ Mirroring -----------------------------

def _mirror_of(schedule: Schedule, record: Assignment, partner: Student) -> Optional[Assignment]:
    pool = (schedule.trainee_assignments if isinstance(record, TraineeAssignment)
            else schedule.assignments)
    for a in pool:
        if (a.student_id == partner.id and a.staff_id == record.staff_id
                and a.session == record.session and a.program == record.program):
            return a
    return None


def mirror_create(schedule: Schedule, record: Assignment, partner: Optional[Student]) -> Optional[Assignment]:
    """Copy ``record`` onto ``partner`` if the partner is present and lacks it."""
    if partner is None or not partner.present_for(record.session):
        return None
    if _mirror_of(schedule, record, partner) is not None:
        return None
    origin = Origin.AUTO_PAIRED if record.origin is Origin.MANUAL else record.origin
    if isinstance(record, TraineeAssignment):
        twin = TraineeAssignment(
            id=schedule.next_id("T"), staff_id=record.staff_id, student_id=partner.id,
            session=record.session, program=record.program, origin=origin,
            bypass_team=record.bypass_team,
        )
        return schedule.add_trainee(twin)
    twin = Assignment(
        id=schedule.next_id("A"), staff_id=record.staff_id, student_id=partner.id,
        session=record.session, program=record.program, locked=record.locked,
        origin=origin, bypass_team=record.bypass_team,
    )
    return schedule.add(twin)


def mirror_remove(schedule: Schedule, record: Assignment, partner: Optional[Student]) -> Optional[Assignment]:
    if partner is None:
        return None
    twin = _mirror_of(schedule, record, partner)
    if twin is None:
        return None
    if isinstance(twin, TraineeAssignment):
        schedule.remove_trainee(twin.id)
    else:
        schedule.remove(twin.id)
    return twin


def mirror_lock(schedule: Schedule, record: Assignment, partner: Optional[Student]) -> Optional[Assignment]:
    if partner is None:
        return None
    twin = _mirror_of(schedule, record, partner)
    if twin is not None and not isinstance(twin, TraineeAssignment):
        twin.locked = record.locked
    return twin
