import pytest

from college_attendance.core.enums import Role
from college_attendance.core.exceptions import AuthorizationError

from conftest import ADMIN_ID, CE301_ID, CE302_ID


def publish_timetable(timetable_service):
    timetable_service.create_or_merge(
        current_role=Role.ADMIN,
        data={
            "branch": "CE",
            "semester": 3,
            "academicYear": "2025-2026",
            "effectiveFrom": "2025-07-01",
            "schedule": [
                {
                    "day": "Wednesday",
                    "timeSlots": [
                        {"startTime": "09:00", "endTime": "10:00", "subject": CE301_ID, "room": "R101"},
                        {"startTime": "11:00", "endTime": "13:00", "subject": CE302_ID, "room": "LAB-1", "type": "lab"},
                    ],
                }
            ],
        },
    )


def add_event(calendar_service, **data):
    base = {"title": "Event", "startDate": "2025-09-03", "endDate": "2025-09-03", "type": "event"}
    return calendar_service.create(current_role=Role.ADMIN, created_by=ADMIN_ID, data={**base, **data})


def test_student_dashboard_on_a_teaching_day(dashboard_service, timetable_service, attendance_service, calendar_service, student):
    publish_timetable(timetable_service)
    attendance_service.mark(
        student,
        {"subject": CE301_ID, "date": "2025-09-03", "startTime": "09:00", "endTime": "10:00", "status": "present"},
    )
    add_event(calendar_service, title="Mid-terms", type="exam", startDate="2025-09-20", endDate="2025-09-25")

    view = dashboard_service.student_view(student)

    assert view["isHoliday"] is False
    assert [c["startTime"] for c in view["todayClasses"]] == ["09:00", "11:00"]
    assert view["nextClass"]["subject"]["code"] == "CE302"
    assert view["totalClasses"] == 1
    assert view["attendancePercentage"] == 100.0
    assert [s["subjectCode"] for s in view["subjects"]] == ["CE301"]
    assert view["subjectsBelowMinimum"] == 0
    assert [e["title"] for e in view["upcomingEvents"]] == ["Mid-terms"]


def test_holiday_hides_todays_classes(dashboard_service, timetable_service, calendar_service, student):
    publish_timetable(timetable_service)
    add_event(calendar_service, title="Ganesh Chaturthi", type="holiday")

    view = dashboard_service.student_view(student)

    assert view["isHoliday"] is True
    assert view["todayClasses"] == []
    assert view["nextClass"] is not None


def test_holiday_for_another_branch_does_not_apply(dashboard_service, timetable_service, calendar_service, student):
    publish_timetable(timetable_service)
    add_event(calendar_service, title="CSE fest", type="holiday", branches=[1])

    view = dashboard_service.student_view(student)

    assert view["isHoliday"] is False
    assert len(view["todayClasses"]) == 2


def test_student_without_timetable_gets_empty_schedule(dashboard_service, student):
    view = dashboard_service.student_view(student)

    assert view["todayClasses"] == []
    assert view["nextClass"] is None
    assert view["attendancePercentage"] == 0.0


def test_admin_view_and_role_checks(dashboard_service, admin, student):
    assert dashboard_service.admin_view(admin)["dailyAttendance"]["total"] == 0
    with pytest.raises(AuthorizationError):
        dashboard_service.student_view(admin)
    with pytest.raises(AuthorizationError):
        dashboard_service.admin_view(student)


def test_attendance_overview_has_monthly_series(dashboard_service, attendance_service, student):
    for day, status in (("2025-08-29", "absent"), ("2025-09-01", "present")):
        attendance_service.mark(
            student,
            {"subject": CE301_ID, "date": day, "startTime": "09:00", "endTime": "10:00", "status": status},
        )

    overview = dashboard_service.attendance_overview(student)

    assert overview["totalClasses"] == 2
    assert [m["month"] for m in overview["monthlyAttendance"]] == ["2025-08", "2025-09"]
