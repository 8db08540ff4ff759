from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from college_attendance.core.enums import AttendanceStatus, Role
from college_attendance.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from college_attendance.users.model import Actor

from conftest import CE301_ID, CE302_ID, STUDENT_ID


def mark_data(**overrides) -> dict:
    data = {
        "subject": CE301_ID,
        "date": "2025-09-03",
        "startTime": "09:00",
        "endTime": "10:00",
        "status": "present",
        "classType": "lecture",
        "room": "R101",
    }
    data.update(overrides)
    return data


def test_mark_records_academic_year_and_defaults(attendance_service, student, fixed_now):
    record = attendance_service.mark(student, mark_data())

    assert record.attendance_id == 1
    assert record.student_id == STUDENT_ID
    assert record.marked_by == STUDENT_ID
    assert record.marked_at == fixed_now
    assert record.academic_year == "2025-2026"
    assert record.status == AttendanceStatus.PRESENT
    assert record.is_late_marked  # marked 10:30, class ended 10:00


def test_duplicate_occurrence_is_rejected_but_other_start_time_is_not(attendance_service, student):
    attendance_service.mark(student, mark_data())

    with pytest.raises(ConflictError):
        attendance_service.mark(student, mark_data(status="absent"))

    second = attendance_service.mark(student, mark_data(startTime="10:00", endTime="11:00"))
    assert second.attendance_id == 2


def test_mark_validates_every_field(attendance_service, student):
    with pytest.raises(ValidationError) as exc:
        attendance_service.mark(student, {"date": "03-09-2025", "startTime": "10:00", "endTime": "09:00", "status": "maybe"})
    messages = " ".join(exc.value.errors)
    assert "Subject is required" in messages
    assert "Invalid date" in messages
    assert "Attendance status" in messages


def test_mark_rejects_unknown_subject(attendance_service, student):
    with pytest.raises(ValidationError):
        attendance_service.mark(student, mark_data(subject=999))


def test_students_only_mark_themselves(attendance_service, student, admin):
    with pytest.raises(AuthorizationError):
        attendance_service.mark(student, mark_data(student=99))

    record = attendance_service.mark(admin, mark_data(student=STUDENT_ID))
    assert record.student_id == STUDENT_ID
    assert record.marked_by == admin.user_id


def test_admin_cannot_mark_attendance_for_admin_accounts(attendance_service, admin):
    with pytest.raises(ValidationError):
        attendance_service.mark(admin, mark_data())


def test_status_change_appends_exactly_one_history_entry(attendance_service, student, admin, fixed_now):
    record = attendance_service.mark(student, mark_data(status="absent"))

    changed = attendance_service.change_status(admin, record.attendance_id, status="present", reason="Medical note")
    assert changed.status == AttendanceStatus.PRESENT
    assert changed.is_modified
    assert len(changed.modification_history) == 1
    entry = changed.modification_history[0]
    assert (entry.previous_status, entry.new_status, entry.modified_by) == (
        AttendanceStatus.ABSENT,
        AttendanceStatus.PRESENT,
        admin.user_id,
    )
    assert entry.reason == "Medical note"
    assert entry.modified_at == fixed_now

    # Same status again records nothing.
    again = attendance_service.change_status(admin, record.attendance_id, status="present")
    assert len(again.modification_history) == 1
    assert len(attendance_service.get(admin, record.attendance_id).modification_history) == 1


def test_default_reason_is_used_when_none_given(attendance_service, student, admin):
    record = attendance_service.mark(student, mark_data(status="absent"))
    changed = attendance_service.change_status(admin, record.attendance_id, status="late")
    assert changed.modification_history[0].reason == "Status updated"


def test_only_admins_change_status(attendance_service, student):
    record = attendance_service.mark(student, mark_data())
    with pytest.raises(AuthorizationError):
        attendance_service.change_status(student, record.attendance_id, status="absent")


def test_status_change_outside_edit_window_is_rejected(attendance_service, student, admin, fixed_now):
    record = attendance_service.mark(student, mark_data(date="2025-08-20"))
    with pytest.raises(ValidationError):
        attendance_service.change_status(
            admin, record.attendance_id, status="absent", now=fixed_now + timedelta(days=1)
        )


def test_can_modify_counts_partial_days_as_whole_days(attendance_service, student):
    record = attendance_service.mark(student, mark_data(date="2025-09-01"))
    assert record.can_modify(datetime(2025, 9, 8, 0, 0), window_days=7)
    assert not record.can_modify(datetime(2025, 9, 8, 0, 1), window_days=7)


def test_students_cannot_read_other_students_records(attendance_service, student, admin):
    record = attendance_service.mark(admin, mark_data(student=STUDENT_ID))
    other = Actor(user_id=77, role=Role.STUDENT, branch_id=4, semester=3)

    with pytest.raises(AuthorizationError):
        attendance_service.get(other, record.attendance_id)
    with pytest.raises(AuthorizationError):
        attendance_service.list_for_student(other, student_id=STUDENT_ID)


def test_student_summary_flags_subjects_below_minimum(attendance_service, student):
    for i, status in enumerate(["present", "present", "absent", "late"]):
        attendance_service.mark(student, mark_data(date=f"2025-09-0{i + 1}", status=status))
    attendance_service.mark(student, mark_data(subject=CE302_ID, status="present"))

    rows = attendance_service.student_summary(student)

    assert [r["subjectCode"] for r in rows] == ["CE301", "CE302"]
    ce301 = rows[0]
    assert (ce301["totalClasses"], ce301["presentCount"], ce301["absentCount"], ce301["lateCount"]) == (4, 2, 1, 1)
    assert ce301["presentCount"] + ce301["absentCount"] + ce301["lateCount"] == ce301["totalClasses"]
    assert ce301["attendancePercentage"] == 50.0
    assert ce301["belowMinimum"] is True
    assert rows[1]["attendancePercentage"] == 100.0
    assert rows[1]["belowMinimum"] is False


def test_subject_summary_sorted_by_percentage(attendance_service, users, admin):
    users.rows[3] = replace(users.rows[STUDENT_ID], user_id=3, email="b@college.edu", student_id="CE250002")
    bob = Actor(user_id=3, role=Role.STUDENT, branch_id=4, semester=3)
    asha = Actor(user_id=STUDENT_ID, role=Role.STUDENT, branch_id=4, semester=3)

    attendance_service.mark(asha, mark_data(status="absent"))
    attendance_service.mark(bob, mark_data(status="present"))

    rows = attendance_service.subject_summary(current_role=Role.ADMIN, subject_id=CE301_ID)
    assert [r["studentId"] for r in rows] == [3, STUDENT_ID]

    rows = attendance_service.subject_summary(current_role=Role.ADMIN, subject_id=CE301_ID, order="asc")
    assert [r["studentId"] for r in rows] == [STUDENT_ID, 3]

    average = attendance_service.subject_average(current_role=Role.ADMIN, subject_id=CE301_ID)
    assert average == {"subjectId": CE301_ID, "averageAttendance": 50.0, "studentCount": 2}

    with pytest.raises(AuthorizationError):
        attendance_service.subject_summary(current_role=Role.STUDENT, subject_id=CE301_ID)


def test_daily_count_for_a_day_without_records_is_zero(attendance_service):
    result = attendance_service.daily_count(current_role=Role.ADMIN)
    assert result == {
        "present": 0,
        "absent": 0,
        "late": 0,
        "total": 0,
        "date": "2025-09-03",
        "attendancePercentage": 0.0,
    }


def test_daily_count_totals(attendance_service, student):
    attendance_service.mark(student, mark_data(status="present"))
    attendance_service.mark(student, mark_data(startTime="11:00", endTime="12:00", status="late"))

    result = attendance_service.daily_count(current_role=Role.ADMIN)
    assert (result["present"], result["late"], result["total"]) == (1, 1, 2)
    assert result["attendancePercentage"] == 50.0


def test_trends_are_oldest_first(attendance_service, student):
    attendance_service.mark(student, mark_data(date="2025-09-02"))
    attendance_service.mark(student, mark_data(date="2025-08-28", status="absent"))

    trend = attendance_service.trends(student, days=30)
    assert [t["date"] for t in trend] == ["2025-08-28", "2025-09-02"]
    assert trend[0]["attendancePercentage"] == 0.0


def test_report_rows_are_flat(attendance_service, student):
    attendance_service.mark(student, mark_data())
    rows = attendance_service.report_rows(student)
    assert rows == [
        {
            "subject_code": "CE301",
            "subject_name": "Structural Analysis",
            "total_classes": 1,
            "present": 1,
            "absent": 0,
            "late": 0,
            "attendance_percentage": "100.00",
            "minimum_attendance": 75,
            "below_minimum": "no",
        }
    ]


def test_students_with_attendance_lists_every_enrolled_student(attendance_service, users):
    users.rows[3] = replace(
        users.rows[STUDENT_ID], user_id=3, name="Bala", email="bala@college.edu", student_id="CE250002"
    )
    users.rows[4] = replace(users.rows[STUDENT_ID], user_id=4, name="Chitra", email="c@college.edu", semester=5)
    asha = Actor(user_id=STUDENT_ID, role=Role.STUDENT, branch_id=4, semester=3)

    attendance_service.mark(asha, mark_data(status="present"))
    attendance_service.mark(asha, mark_data(startTime="10:00", endTime="11:00", status="late"))

    rows = attendance_service.students_with_attendance(current_role=Role.ADMIN, subject_id=CE301_ID)

    assert [r["student"]["name"] for r in rows] == ["Asha", "Bala"]
    assert rows[0]["totalClasses"] == 2
    assert rows[0]["attendedClasses"] == 1
    assert rows[0]["attendancePercentage"] == 50.0
    assert rows[1]["totalClasses"] == 0

    with pytest.raises(NotFoundError):
        attendance_service.students_with_attendance(current_role=Role.ADMIN, subject_id=999)
    with pytest.raises(AuthorizationError):
        attendance_service.students_with_attendance(current_role=Role.STUDENT, subject_id=CE301_ID)
