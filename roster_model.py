"""Roster value types for one program day.

Staff, students (clients), assignments and the day's schedule, plus the
small enumerations they are built from. Everything here is plain in-memory
data; the engine modules (``availability``, ``auto_assign``, ``pairing``,
``trainee_overlay``, ``validate_schedule``, ``swap_advisor``) operate on it.

Attendance is stored as one ``Presence`` per session instead of loose flags:
``DayAttendance.from_flags`` is the only place that interprets the
AM / PM / FullDay flag form, and FullDay always lands on both sessions.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

SESSIONS: Tuple[str, ...] = ("AM", "PM")
PROGRAMS: Tuple[str, ...] = ("Primary", "Secondary")


def trim(s) -> str:
    return ("" if s is None else str(s)).strip()


def check_session(session: str) -> str:
    if session not in SESSIONS:
        raise ValueError(f"Unknown session {session!r} (expected one of {', '.join(SESSIONS)})")
    return session


def check_program(program: str) -> str:
    for p in PROGRAMS:
        if trim(program).lower() == p.lower():
            return p
    raise ValueError(f"Unknown program {program!r} (expected one of {', '.join(PROGRAMS)})")


# ------------------------------ Enums ---------------------------------

class Ratio(str, Enum):
    ONE_TO_ONE = "1:1"
    TWO_TO_ONE = "2:1"
    ONE_TO_TWO = "1:2"

    @property
    def staff_needed(self) -> int:
        return 2 if self is Ratio.TWO_TO_ONE else 1

    @classmethod
    def parse(cls, value) -> "Ratio":
        if isinstance(value, cls):
            return value
        raw = trim(value) or "1:1"
        for r in cls:
            if r.value == raw:
                return r
        raise ValueError(f"Unknown ratio {value!r}")


class Role(str, Enum):
    RBT = "RBT"
    BS = "BS"
    BCBA = "BCBA"
    EA = "EA"
    MHA = "MHA"
    CC = "CC"
    TRAINER = "Trainer"
    TEACHER = "Teacher"
    DIRECTOR = "Director"


# Lower tier = preferred for direct work. Only RBT and BS may hold sessions.
ROLE_TIERS: Dict[Role, int] = {
    Role.RBT: 1,
    Role.BS: 2,
    Role.BCBA: 3,
    Role.EA: 4,
    Role.MHA: 5,
    Role.CC: 6,
    Role.TRAINER: 7,
    Role.TEACHER: 8,
    Role.DIRECTOR: 9,
}
DIRECT_SERVICE_ROLES = frozenset({Role.RBT, Role.BS})

ROLE_ALIASES: Dict[str, Role] = {
    "registered behavior technician": Role.RBT,
    "behavior specialist": Role.BS,
    "educational assistant": Role.EA,
    "mental health assistant": Role.MHA,
    "clinical coordinator": Role.CC,
}


def parse_role(value) -> Role:
    if isinstance(value, Role):
        return value
    raw = trim(value)
    for role in Role:
        if raw.lower() == role.value.lower():
            return role
    alias = ROLE_ALIASES.get(raw.lower())
    if alias is None:
        raise ValueError(f"Unknown staff role {value!r}")
    return alias


class TrainingStatus(str, Enum):
    TRAINER = "trainer"
    OVERLAP_STAFF = "overlap-staff"
    OVERLAP_BCBA = "overlap-bcba"
    CERTIFIED = "certified"
    SOLO = "solo"

    @classmethod
    def parse(cls, value) -> "TrainingStatus":
        if isinstance(value, cls):
            return value
        raw = trim(value).lower()
        for st in cls:
            if st.value == raw:
                return st
        raise ValueError(f"Unknown training status {value!r}")


OVERLAP_STATUSES = frozenset({TrainingStatus.OVERLAP_STAFF, TrainingStatus.OVERLAP_BCBA})


class Presence(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    OUT_OF_SESSION = "out-of-session"


class Origin(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    AUTO_PAIRED = "auto-paired"
    AUTO_SWAP = "auto-swap"


# ------------------------------ Errors --------------------------------

class RosterError(Exception):
    """Base class for rule violations raised by the mutation entry points."""

    kind = "RosterError"


class QualificationError(RosterError):
    kind = "QualificationError"


class SessionConflictError(RosterError):
    kind = "SessionConflictError"


class SameDayRepeatError(RosterError):
    kind = "SameDayRepeatError"


class RatioUnmetError(RosterError):
    kind = "RatioUnmetError"


class TeamViolationError(RosterError):
    kind = "TeamViolationError"


class MissingEntityError(RosterError):
    kind = "MissingEntityError"


class AssignmentLockedError(RosterError):
    kind = "AssignmentLockedError"


class AvailabilityError(RosterError):
    kind = "AvailabilityError"


# ----------------------------- Attendance -----------------------------

@dataclass(frozen=True)
class DayAttendance:
    am: Presence = Presence.PRESENT
    pm: Presence = Presence.PRESENT

    @classmethod
    def from_flags(
        cls,
        *,
        absent_am: bool = False,
        absent_pm: bool = False,
        absent_full_day: bool = False,
        out_am: bool = False,
        out_pm: bool = False,
        out_full_day: bool = False,
    ) -> "DayAttendance":
        """Collapse the six attendance flags; absence wins over out-of-session."""

        def one(absent: bool, out: bool) -> Presence:
            if absent:
                return Presence.ABSENT
            if out:
                return Presence.OUT_OF_SESSION
            return Presence.PRESENT

        return cls(
            am=one(absent_am or absent_full_day, out_am or out_full_day),
            pm=one(absent_pm or absent_full_day, out_pm or out_full_day),
        )

    def for_session(self, session: str) -> Presence:
        return self.am if check_session(session) == "AM" else self.pm

    def to_flags(self) -> Dict[str, bool]:
        absent = {s: self.for_session(s) is Presence.ABSENT for s in SESSIONS}
        out = {s: self.for_session(s) is Presence.OUT_OF_SESSION for s in SESSIONS}
        return {
            "absent_am": absent["AM"],
            "absent_pm": absent["PM"],
            "absent_full_day": absent["AM"] and absent["PM"],
            "out_am": out["AM"],
            "out_pm": out["PM"],
            "out_full_day": out["AM"] and out["PM"],
        }


# ------------------------------ People --------------------------------

@dataclass
class Staff:
    id: str
    name: str
    role: Role = Role.RBT
    primary_program: bool = False
    secondary_program: bool = False
    active: bool = True
    attendance: DayAttendance = field(default_factory=DayAttendance)

    def __post_init__(self):
        self.id = trim(self.id)
        self.role = parse_role(self.role)

    @property
    def tier(self) -> int:
        return ROLE_TIERS[self.role]

    def available_for(self, session: str, allow_out_of_session: bool = False) -> bool:
        presence = self.attendance.for_session(session)
        if presence is Presence.PRESENT:
            return True
        return allow_out_of_session and presence is Presence.OUT_OF_SESSION

    def can_work_program(self, program: str) -> bool:
        program = check_program(program)
        return self.primary_program if program == "Primary" else self.secondary_program

    def can_do_direct_sessions(self) -> bool:
        return self.role in DIRECT_SERVICE_ROLES

    def can_do_one_to_one(self, group_only_roles: Iterable[str] = ()) -> bool:
        if not self.can_do_direct_sessions():
            return False
        return self.role.value not in set(group_only_roles)


@dataclass
class Student:
    id: str
    name: str
    program: str = "Primary"
    ratio_am: Ratio = Ratio.ONE_TO_ONE
    ratio_pm: Ratio = Ratio.ONE_TO_ONE
    team: List[str] = field(default_factory=list)
    paired_with: Optional[str] = None
    attendance: DayAttendance = field(default_factory=DayAttendance)
    training: Dict[str, TrainingStatus] = field(default_factory=dict)
    active: bool = True

    def __post_init__(self):
        self.id = trim(self.id)
        self.program = check_program(self.program)
        self.ratio_am = Ratio.parse(self.ratio_am)
        self.ratio_pm = Ratio.parse(self.ratio_pm)
        self.team = [trim(t) for t in self.team if trim(t)]
        self.paired_with = trim(self.paired_with) or None
        self.training = {trim(k): TrainingStatus.parse(v) for k, v in self.training.items() if trim(k)}

    def ratio_for(self, session: str) -> Ratio:
        return self.ratio_am if check_session(session) == "AM" else self.ratio_pm

    def required_staff(self, session: str) -> int:
        return self.ratio_for(session).staff_needed

    def present_for(self, session: str) -> bool:
        return self.attendance.for_session(session) is Presence.PRESENT

    def training_status(self, staff_id: str) -> TrainingStatus:
        return self.training.get(staff_id, TrainingStatus.SOLO)

    def is_paired(self) -> bool:
        return self.paired_with is not None

    def in_team(self, staff_id: str) -> bool:
        return staff_id in self.team


# ---------------------------- Assignments -----------------------------

@dataclass
class Assignment:
    id: str
    staff_id: str
    student_id: str
    session: str
    program: str
    locked: bool = False
    origin: Origin = Origin.MANUAL
    bypass_team: bool = False

    def __post_init__(self):
        check_session(self.session)
        self.program = check_program(self.program)
        self.origin = Origin(self.origin)

    def key(self) -> Tuple[str, str, str, str]:
        return (self.session, self.program, self.student_id, self.staff_id)


@dataclass
class TraineeAssignment(Assignment):
    """Training-observation record; always locked, never counts toward ratio."""

    locked: bool = True

    def __post_init__(self):
        super().__post_init__()
        self.locked = True


@dataclass
class TemporaryTeamOverrides:
    """Same-day team additions: student id -> [(staff id, sessions)]."""

    additions: Dict[str, List[Tuple[str, Tuple[str, ...]]]] = field(default_factory=dict)

    def add(self, student_id: str, staff_id: str, sessions: Iterable[str] = SESSIONS) -> None:
        sess = tuple(check_session(s) for s in sessions)
        self.additions.setdefault(student_id, []).append((staff_id, sess))

    def extra_team(self, student_id: str, session: str) -> List[str]:
        return [sid for sid, sess in self.additions.get(student_id, []) if session in sess]


def effective_team(student: Student, session: str, overrides: Optional[TemporaryTeamOverrides] = None) -> List[str]:
    """Student's team followed by any temporary additions for ``session``."""
    team = list(student.team)
    if overrides is not None:
        for sid in overrides.extra_team(student.id, session):
            if sid not in team:
                team.append(sid)
    return team


# ------------------------------ Schedule ------------------------------

@dataclass
class Schedule:
    date: str
    assignments: List[Assignment] = field(default_factory=list)
    trainee_assignments: List[TraineeAssignment] = field(default_factory=list)
    seq: int = field(default=0, repr=False)

    def next_id(self, prefix: str = "A") -> str:
        taken = {a.id for a in self.assignments} | {a.id for a in self.trainee_assignments}
        while True:
            self.seq += 1
            candidate = f"{prefix}{self.seq}"
            if candidate not in taken:
                return candidate

    def copy(self) -> "Schedule":
        return copy.deepcopy(self)

    # --- lookups ---
    def find(self, assignment_id: str) -> Optional[Assignment]:
        return next((a for a in self.assignments if a.id == assignment_id), None)

    def find_trainee(self, assignment_id: str) -> Optional[TraineeAssignment]:
        return next((a for a in self.trainee_assignments if a.id == assignment_id), None)

    def for_session(self, session: str, program: Optional[str] = None) -> List[Assignment]:
        return [a for a in self.assignments
                if a.session == session and (program is None or a.program == program)]

    def for_staff(self, staff_id: str, session: Optional[str] = None) -> List[Assignment]:
        return [a for a in self.assignments
                if a.staff_id == staff_id and (session is None or a.session == session)]

    def for_student(self, student_id: str, session: Optional[str] = None) -> List[Assignment]:
        return [a for a in self.assignments
                if a.student_id == student_id and (session is None or a.session == session)]

    def trainees_for_student(self, student_id: str, session: Optional[str] = None) -> List[TraineeAssignment]:
        return [a for a in self.trainee_assignments
                if a.student_id == student_id and (session is None or a.session == session)]

    def trainees_for_staff(self, staff_id: str, session: Optional[str] = None) -> List[TraineeAssignment]:
        return [a for a in self.trainee_assignments
                if a.staff_id == staff_id and (session is None or a.session == session)]

    # --- rule queries ---
    def staff_busy(self, staff_id: str, session: str, ignore_students: Iterable[str] = ()) -> bool:
        """True if the staff member already holds a regular or overlay record this session."""
        ignored = set(ignore_students)
        for a in self.for_staff(staff_id, session):
            if a.student_id not in ignored:
                return True
        for a in self.trainees_for_staff(staff_id, session):
            if a.student_id not in ignored:
                return True
        return False

    def worked_together(self, staff_id: str, student_id: str) -> bool:
        return any(a.staff_id == staff_id and a.student_id == student_id for a in self.assignments)

    def daily_load(self, staff_id: str) -> int:
        """Sessions booked today; a mirrored 1:2 pair counts once."""
        return len({a.session for a in self.for_staff(staff_id)})

    # --- writes ---
    def add(self, assignment: Assignment) -> Assignment:
        self.assignments.append(assignment)
        return assignment

    def add_trainee(self, assignment: TraineeAssignment) -> TraineeAssignment:
        self.trainee_assignments.append(assignment)
        return assignment

    def remove(self, assignment_id: str) -> None:
        self.assignments = [a for a in self.assignments if a.id != assignment_id]

    def remove_trainee(self, assignment_id: str) -> None:
        self.trainee_assignments = [a for a in self.trainee_assignments if a.id != assignment_id]
