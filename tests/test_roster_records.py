from __future__ import annotations

import json
from pathlib import Path

import pytest

import roster_records
from roster_model import Assignment, Presence, Role, TraineeAssignment, TrainingStatus
from roster_records import (
    STAFF_FIELDS,
    STUDENT_FIELDS,
    load_schedule_csv,
    load_staff_csv,
    load_students_csv,
    staff_from_record,
    student_from_record,
    student_to_record,
    write_schedule_csv,
)
from tests.utils import empty_schedule, make_pair, write_rows


def test_staff_from_loose_spreadsheet_row() -> None:
    member = staff_from_record({
        "Id": " S1 ", "Title": "Sam", "Role": "Behavior Specialist",
        "PrimaryProgram": "yes", "SecondaryProgram": "", "IsActive": "",
        "AbsentFullDay": "TRUE", "OutOfSessionPM": "x",
    })
    assert member.id == "S1" and member.role is Role.BS
    assert member.primary_program and not member.secondary_program
    assert member.active
    assert member.attendance.am is Presence.ABSENT
    assert member.attendance.pm is Presence.ABSENT


def test_student_training_map_is_json() -> None:
    student = student_from_record({
        "Id": "C1", "Title": "Casey", "Program": "secondary",
        "RatioAM": "2:1", "RatioPM": "", "TeamIds": "S1; S2,S3",
        "TeamTrainingStatus": json.dumps({"S3": "overlap-bcba"}),
    })
    assert student.program == "Secondary"
    assert student.ratio_pm.value == "1:1"
    assert student.team == ["S1", "S2", "S3"]
    assert student.training_status("S3") is TrainingStatus.OVERLAP_BCBA

    rec = student_to_record(student)
    assert rec["TeamIds"] == "S1;S2;S3"
    assert json.loads(rec["TeamTrainingStatus"]) == {"S3": "overlap-bcba"}


def test_bad_records_raise_value_error() -> None:
    with pytest.raises(ValueError):
        student_from_record({"Id": "C1", "TeamTrainingStatus": "{not json"})
    with pytest.raises(ValueError):
        staff_from_record({"Id": "S1", "Role": "Pilot"})
    with pytest.raises(ValueError):
        staff_from_record({"Title": "No id"})


def test_csv_loaders_skip_blank_rows(tmp_path: Path) -> None:
    staff_path = tmp_path / "staff.csv"
    write_rows(staff_path, STAFF_FIELDS, [
        {"Id": "S1", "Title": "Sam", "Role": "RBT", "PrimaryProgram": "Yes"},
        {},
    ])
    students_path = tmp_path / "students.csv"
    write_rows(students_path, STUDENT_FIELDS, [
        {"Id": "C1", "Title": "Casey", "TeamIds": "S1", "PairedWith": "C2", "RatioAM": "1:2"},
    ])
    assert [m.id for m in load_staff_csv(staff_path)] == ["S1"]
    [student] = load_students_csv(students_path)
    assert student.paired_with == "C2"


def test_schedule_csv_keeps_overlay_and_flags(tmp_path: Path) -> None:
    sched = empty_schedule("2024-05-06")
    sched.add(Assignment(id="A1", staff_id="S1", student_id="C1", session="AM",
                         program="Primary", locked=True, bypass_team=True))
    sched.add_trainee(TraineeAssignment(id="T1", staff_id="S2", student_id="C1",
                                        session="PM", program="Primary"))
    path = tmp_path / "schedule.csv"
    write_schedule_csv(sched, path)

    loaded = load_schedule_csv(path)
    assert loaded.date == "2024-05-06"
    assert loaded.find("A1").locked and loaded.find("A1").bypass_team
    assert isinstance(loaded.find_trainee("T1"), TraineeAssignment)
    assert load_schedule_csv(tmp_path / "missing.csv", "d").assignments == []


def test_pair_survives_record_form() -> None:
    x, y = make_pair("X", "Y", ["S1"])
    again = student_from_record(student_to_record(x))
    assert again == x


def test_download_if_needed_uses_cache(tmp_path: Path, monkeypatch) -> None:
    dest = tmp_path / "staff.csv"
    dest.write_text("cached", encoding="utf-8")

    def boom(*args, **kwargs):
        raise AssertionError("network should not be used")

    monkeypatch.setattr(roster_records.urllib.request, "urlopen", boom)
    assert roster_records.download_if_needed("https://example.invalid/x.csv", dest) == dest
    assert dest.read_text(encoding="utf-8") == "cached"


def test_download_if_needed_fetches_with_certifi_context(tmp_path: Path, monkeypatch) -> None:
    seen = {}

    class FakeResponse:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def read(self):
            return b"Id,Title\nS1,Sam\n"

    def fake_urlopen(req, context=None, timeout=None):
        seen["url"] = req.full_url
        seen["context"] = context
        seen["timeout"] = timeout
        return FakeResponse()

    monkeypatch.setattr(roster_records.urllib.request, "urlopen", fake_urlopen)
    dest = tmp_path / "cache" / "staff.csv"
    roster_records.download_if_needed("https://example.invalid/staff.csv", dest, force=True)
    assert dest.read_bytes().startswith(b"Id,Title")
    assert seen["url"] == "https://example.invalid/staff.csv"
    assert seen["context"] is not None
    assert seen["timeout"] == 30.0
    assert not dest.with_name("staff.csv.part").exists()


def test_empty_download_keeps_cached_export(tmp_path: Path, monkeypatch) -> None:
    dest = tmp_path / "staff.csv"
    dest.write_text("Id,Title\nS1,Sam\n", encoding="utf-8")

    class EmptyResponse:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def read(self):
            return b"  \n"

    monkeypatch.setattr(roster_records.urllib.request, "urlopen", lambda *a, **kw: EmptyResponse())
    with pytest.raises(ValueError):
        roster_records.download_if_needed("https://example.invalid/staff.csv", dest, force=True)
    assert dest.read_text(encoding="utf-8").startswith("Id,Title")


def test_roster_source_without_url_is_local(tmp_path: Path, monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise AssertionError("network should not be used")

    monkeypatch.setattr(roster_records.urllib.request, "urlopen", boom)
    path = tmp_path / "students.csv"
    path.write_text("Id\n", encoding="utf-8")
    assert roster_records.roster_source(path) == path
