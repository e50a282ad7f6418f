from __future__ import annotations

import pytest

from roster_model import (
    Assignment,
    DayAttendance,
    Origin,
    Presence,
    Ratio,
    Role,
    Schedule,
    TemporaryTeamOverrides,
    TraineeAssignment,
    TrainingStatus,
    effective_team,
    parse_role,
)
from tests.utils import make_staff, make_student


def test_full_day_flag_covers_both_sessions() -> None:
    att = DayAttendance.from_flags(absent_full_day=True)
    assert att.am is Presence.ABSENT and att.pm is Presence.ABSENT
    assert att.to_flags()["absent_full_day"] is True


def test_absence_wins_over_out_of_session() -> None:
    att = DayAttendance.from_flags(absent_am=True, out_am=True, out_pm=True)
    assert att.for_session("AM") is Presence.ABSENT
    assert att.for_session("PM") is Presence.OUT_OF_SESSION


def test_out_of_session_only_tolerated_when_asked() -> None:
    member = make_staff("S1", out=("AM",))
    assert not member.available_for("AM")
    assert member.available_for("AM", allow_out_of_session=True)
    assert member.available_for("PM")


def test_ratio_parse_and_staff_needed() -> None:
    assert Ratio.parse("2:1").staff_needed == 2
    assert Ratio.parse("1:2").staff_needed == 1
    assert Ratio.parse("") is Ratio.ONE_TO_ONE
    with pytest.raises(ValueError):
        Ratio.parse("3:1")


def test_role_aliases_and_unknown_roles() -> None:
    assert parse_role("Behavior Specialist") is Role.BS
    assert parse_role("rbt") is Role.RBT
    with pytest.raises(ValueError):
        parse_role("Janitor")


def test_oversight_roles_never_direct() -> None:
    bcba = make_staff("B1", role="BCBA")
    assert not bcba.can_do_direct_sessions()
    assert not bcba.can_do_one_to_one()
    bs = make_staff("B2", role="BS")
    assert bs.can_do_one_to_one()
    assert not bs.can_do_one_to_one(group_only_roles=["BS"])


def test_student_defaults_and_training_map() -> None:
    student = make_student("C1", [" S1 ", "", "S2"], training={"S2": "Overlap-Staff"})
    assert student.team == ["S1", "S2"]
    assert student.training_status("S1") is TrainingStatus.SOLO
    assert student.training_status("S2") is TrainingStatus.OVERLAP_STAFF
    assert student.paired_with is None
    assert student.required_staff("AM") == 1


def test_trainee_assignment_is_always_locked() -> None:
    t = TraineeAssignment(id="T1", staff_id="S1", student_id="C1", session="AM", program="Primary", locked=False)
    assert t.locked is True


def test_assignment_rejects_unknown_session() -> None:
    with pytest.raises(ValueError):
        Assignment(id="A1", staff_id="S1", student_id="C1", session="EVE", program="Primary")


def test_schedule_queries_and_copy() -> None:
    sched = Schedule(date="2024-05-06")
    sched.add(Assignment(id=sched.next_id(), staff_id="S1", student_id="C1", session="AM",
                         program="Primary", origin=Origin.AUTO))
    sched.add_trainee(TraineeAssignment(id=sched.next_id("T"), staff_id="S2", student_id="C1",
                                        session="PM", program="Primary"))
    assert [a.id for a in sched.assignments] == ["A1"]
    assert sched.trainee_assignments[0].id == "T2"
    assert sched.staff_busy("S1", "AM")
    assert not sched.staff_busy("S1", "PM")
    assert sched.staff_busy("S2", "PM")
    assert not sched.staff_busy("S2", "PM", ignore_students=["C1"])
    assert sched.worked_together("S1", "C1")
    assert sched.daily_load("S1") == 1

    clone = sched.copy()
    clone.remove("A1")
    assert sched.find("A1") is not None
    assert clone.find("A1") is None


def test_next_id_skips_taken_ids() -> None:
    sched = Schedule(date="d")
    sched.add(Assignment(id="A1", staff_id="S1", student_id="C1", session="AM", program="Primary"))
    assert sched.next_id() == "A2"


def test_temporary_team_overrides_are_session_scoped() -> None:
    student = make_student("C1", ["S1"])
    overrides = TemporaryTeamOverrides()
    overrides.add("C1", "S9", sessions=["PM"])
    assert effective_team(student, "AM", overrides) == ["S1"]
    assert effective_team(student, "PM", overrides) == ["S1", "S9"]
    assert student.team == ["S1"]
