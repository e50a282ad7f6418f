from __future__ import annotations

import pytest

from roster_model import (
    Assignment,
    AssignmentLockedError,
    Origin,
    SameDayRepeatError,
    SessionConflictError,
    TrainingStatus,
)
from swap_advisor import accept_swap, find_swaps
from tests.utils import empty_schedule, make_pair, make_staff, make_student, staff_sets


def _add(sched, aid, staff_id, student_id, session="AM", **kw):
    return sched.add(Assignment(id=aid, staff_id=staff_id, student_id=student_id,
                                session=session, program="Primary", **kw))


def test_bs_session_gets_rbt_suggestions() -> None:
    staff = [
        make_staff("BS1", role="BS"),
        make_staff("R1"),
        make_staff("R2"),
        make_staff("R3"),
        make_staff("R4", absent=("AM",)),
    ]
    student = make_student("S", ["BS1", "R1", "R2", "R3", "R4"],
                           training={"R2": "trainer", "R3": "overlap-staff"})
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S")
    before = list(sched.assignments)

    swaps = find_swaps(sched, staff, [student], "AM", "Primary")
    assert [s.replacement_id for s in swaps] == ["R2", "R1"]
    assert swaps[0].current_staff_id == "BS1"
    assert "R2 could replace BS1" in swaps[0].description
    assert sched.assignments == before


def test_locked_and_rbt_sessions_are_left_alone() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1"), make_staff("R2")]
    students = [make_student("S1", ["BS1", "R2"]), make_student("S2", ["R1", "R2"])]
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S1", locked=True)
    _add(sched, "A2", "R1", "S2")
    assert find_swaps(sched, staff, students, "AM", "Primary") == []


def test_busy_rbt_is_not_offered() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1")]
    students = [make_student("S1", ["BS1", "R1"]), make_student("S2", ["R1"])]
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S1")
    _add(sched, "A2", "R1", "S2")
    assert find_swaps(sched, staff, students, "AM", "Primary") == []


def test_pair_swap_checks_both_partners_and_is_suggested_once() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1"), make_staff("R2")]
    x, y = make_pair("X", "Y", ["BS1", "R1", "R2"])
    y.training["R2"] = TrainingStatus.OVERLAP_STAFF
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "X")
    _add(sched, "A2", "BS1", "Y", origin=Origin.AUTO_PAIRED)
    swaps = find_swaps(sched, staff, [x, y], "AM", "Primary")
    assert [(s.assignment_id, s.replacement_id, s.partner_id) for s in swaps] == [("A1", "R1", "Y")]


def test_accept_swap_replaces_record_and_mirror() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1")]
    x, y = make_pair("X", "Y", ["BS1", "R1"])
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "X")
    _add(sched, "A2", "BS1", "Y", origin=Origin.AUTO_PAIRED)
    suggestion = find_swaps(sched, staff, [x, y], "AM", "Primary")[0]

    out = accept_swap(sched, suggestion, staff, [x, y])
    assert staff_sets(out, "X", "AM") == staff_sets(out, "Y", "AM") == {"R1"}
    assert {a.origin for a in out.assignments} == {Origin.AUTO_SWAP}
    assert staff_sets(sched, "X", "AM") == {"BS1"}


def test_accept_swap_refuses_locked_record() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1")]
    student = make_student("S", ["BS1", "R1"])
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S")
    suggestion = find_swaps(sched, staff, [student], "AM", "Primary")[0]
    sched.find("A1").locked = True
    with pytest.raises(AssignmentLockedError):
        accept_swap(sched, suggestion, staff, [student])


def test_accept_swap_rechecks_replacement_against_current_schedule() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1")]
    students = [make_student("S1", ["BS1", "R1"]), make_student("S2", ["R1"])]
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S1")
    suggestion = find_swaps(sched, staff, students, "AM", "Primary")[0]
    assert suggestion.replacement_id == "R1"

    _add(sched, "A2", "R1", "S2")
    with pytest.raises(SessionConflictError):
        accept_swap(sched, suggestion, staff, students)
    assert staff_sets(sched, "S1", "AM") == {"BS1"}


def test_accept_swap_refuses_same_day_repeat() -> None:
    staff = [make_staff("BS1", role="BS"), make_staff("R1")]
    student = make_student("S", ["BS1", "R1"])
    sched = empty_schedule()
    _add(sched, "A1", "BS1", "S")
    suggestion = find_swaps(sched, staff, [student], "AM", "Primary")[0]
    _add(sched, "A2", "R1", "S", session="PM")
    with pytest.raises(SameDayRepeatError):
        accept_swap(sched, suggestion, staff, [student])
