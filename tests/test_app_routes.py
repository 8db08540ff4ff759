import pytest

from college_attendance.branches.service import BranchService
from college_attendance.container import Container
from college_attendance.main import create_app
from college_attendance.subjects.service import SubjectService
from college_attendance.users.service import AuthService, UserService

from conftest import CE301_ID, CE_ID, STUDENT_ID


@pytest.fixture
def client(
    monkeypatch,
    fixed_now,
    branches,
    subjects,
    users,
    timetables,
    attendance_repo,
    calendar_repo,
    timetable_service,
    attendance_service,
    calendar_service,
    dashboard_service,
):
    monkeypatch.setenv("APP_ENV", "testing")
    container = Container(
        conn=None,
        clock=lambda: fixed_now,
        branches_repo=branches,
        subjects_repo=subjects,
        users_repo=users,
        timetables_repo=timetables,
        attendance_repo=attendance_repo,
        calendar_repo=calendar_repo,
        branch_service=BranchService(branches, users),
        subject_service=SubjectService(subjects, branches),
        auth_service=AuthService(users, branches),
        user_service=UserService(users),
        timetable_service=timetable_service,
        attendance_service=attendance_service,
        calendar_service=calendar_service,
        dashboard_service=dashboard_service,
    )
    app = create_app(container=container)
    return app.test_client()


def login(client, email: str, password: str):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "OK"


def test_protected_routes_need_a_session(client):
    resp = client.get("/api/timetable/today")
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "message": "Not authorized, please log in"}


def test_login_and_me(client):
    resp = login(client, "student@college.edu", "student123")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["studentId"] == "CE250001"

    me = client.get("/api/auth/me").get_json()["data"]
    assert me["email"] == "student@college.edu"

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_bad_credentials_are_401(client):
    assert login(client, "student@college.edu", "nope").status_code == 401


def test_students_cannot_use_admin_routes(client):
    login(client, "student@college.edu", "student123")
    resp = client.post("/api/timetable", json={})
    assert resp.status_code == 403


def test_admin_timetable_flow_and_conflict_status(client):
    login(client, "admin@college.edu", "admin123")
    body = {
        "branch": "CE",
        "semester": 3,
        "academicYear": "2025-2026",
        "schedule": [
            {"day": "Wednesday", "timeSlots": [{"startTime": "11:00", "endTime": "12:00", "subject": CE301_ID}]}
        ],
    }
    created = client.post("/api/timetable", json=body)
    assert created.status_code == 201
    timetable_id = created.get_json()["data"]["id"]

    merged = client.post("/api/timetable", json=body)
    assert merged.status_code == 200

    clash = client.post(
        f"/api/timetable/{timetable_id}/timeslot",
        json={"day": "Wednesday", "startTime": "11:30", "endTime": "12:30", "subject": CE301_ID},
    )
    assert clash.status_code == 409
    assert clash.get_json()["success"] is False

    invalid = client.post("/api/timetable", json={"semester": 3})
    assert invalid.status_code == 400
    assert invalid.get_json()["errors"]


def test_student_marks_attendance_and_sees_summary(client):
    login(client, "student@college.edu", "student123")
    mark = {"subject": CE301_ID, "date": "2025-09-03", "startTime": "09:00", "endTime": "10:00", "status": "present"}

    assert client.post("/api/attendance", json=mark).status_code == 201
    assert client.post("/api/attendance", json=mark).status_code == 409

    summary = client.get("/api/attendance/summary/student").get_json()
    assert summary["count"] == 1
    assert summary["data"][0]["attendancePercentage"] == 100.0

    report = client.get("/api/attendance/report.csv")
    assert report.status_code == 200
    assert report.mimetype == "text/csv"
    assert "CE301" in report.data.decode("utf-8-sig")


def test_calendar_routes(client):
    login(client, "admin@college.edu", "admin123")
    created = client.post(
        "/api/calendar",
        json={"title": "Teachers Day", "startDate": "2025-09-05", "endDate": "2025-09-05", "type": "holiday"},
    )
    assert created.status_code == 201

    check = client.get("/api/calendar/is-holiday?date=2025-09-05").get_json()["data"]
    assert check == {"date": "2025-09-05", "isHoliday": True}

    upcoming = client.get("/api/calendar/upcoming").get_json()
    assert [e["title"] for e in upcoming["data"]] == ["Teachers Day"]


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_numeric_json_values_are_taken_as_text(client):
    login(client, "admin@college.edu", "admin123")
    timetable = client.post(
        "/api/timetable",
        json={
            "branch": "CE",
            "semester": 3,
            "academicYear": "2025-2026",
            "schedule": [
                {
                    "day": "Thursday",
                    "timeSlots": [{"startTime": "09:00", "endTime": "10:00", "subject": CE301_ID, "room": 101}],
                }
            ],
        },
    )
    assert timetable.status_code == 201
    assert timetable.get_json()["data"]["schedule"][0]["timeSlots"][0]["room"] == "101"

    mark = {
        "student": STUDENT_ID,
        "subject": CE301_ID,
        "date": "2025-09-03",
        "startTime": "09:00",
        "endTime": "10:00",
        "status": "present",
        "room": 101,
    }
    marked = client.post("/api/attendance", json=mark)
    assert marked.status_code == 201
    assert marked.get_json()["data"]["room"] == "101"

    bad_time = client.post("/api/attendance", json={**mark, "startTime": 9, "endTime": 10})
    assert bad_time.status_code == 400
    assert bad_time.get_json()["errors"]

    event = client.post(
        "/api/calendar",
        json={
            "title": "Survey camp",
            "startDate": "2025-09-10",
            "endDate": "2025-09-10",
            "type": "event",
            "description": 2025,
            "location": 101,
        },
    )
    assert event.status_code == 201
    assert event.get_json()["data"]["description"] == "2025"
    assert event.get_json()["data"]["location"] == "101"


def test_register_accepts_numeric_phone(client):
    resp = client.post(
        "/api/auth/register",
        json={
            "name": "Ravi",
            "email": "ravi@college.edu",
            "password": "secret1",
            "phone": 9876543210,
            "branch": CE_ID,
            "semester": 3,
        },
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"]["phone"] == "9876543210"

    short = client.post(
        "/api/auth/register",
        json={"name": "Meena", "email": "meena@college.edu", "password": "secret1", "phone": 12345},
    )
    assert short.status_code == 400


def test_update_profile_and_password(client):
    login(client, "student@college.edu", "student123")

    profile = client.put("/api/auth/updateprofile", json={"name": "Asha K", "phone": 9876543210, "role": "admin"})
    assert profile.status_code == 200
    assert profile.get_json()["message"] == "Profile updated successfully"
    me = client.get("/api/auth/me").get_json()["data"]
    assert (me["name"], me["phone"], me["role"]) == ("Asha K", "9876543210", "student")

    taken = client.put("/api/auth/updateprofile", json={"email": "admin@college.edu"})
    assert taken.status_code == 409

    wrong = client.put("/api/auth/updatepassword", json={"currentPassword": "nope", "newPassword": "fresh123"})
    assert wrong.status_code == 400
    assert wrong.get_json()["message"] == "Current password is incorrect"

    changed = client.put(
        "/api/auth/updatepassword", json={"currentPassword": "student123", "newPassword": "fresh123"}
    )
    assert changed.status_code == 200

    client.post("/api/auth/logout")
    assert login(client, "student@college.edu", "student123").status_code == 401
    assert login(client, "student@college.edu", "fresh123").status_code == 200


def test_branch_counts_and_enrolment_routes(client):
    login(client, "admin@college.edu", "admin123")

    counts = {b["code"]: b["totalStudents"] for b in client.get("/api/branches/with-counts").get_json()["data"]}
    assert counts == {"CE": 1, "CSE": 0}

    enrolled = client.get(f"/api/branches/{CE_ID}/students?semester=3").get_json()
    assert [s["studentId"] for s in enrolled["data"]] == ["CE250001"]
    assert client.get(f"/api/branches/{CE_ID}/students?semester=12").status_code == 400

    taught = client.get("/api/subjects/faculty?email=RAO@college.edu").get_json()
    assert [s["code"] for s in taught["data"]] == ["CE301", "CE302"]
    assert client.get("/api/subjects/faculty").status_code == 400

    roster = client.get(f"/api/subjects/{CE301_ID}/students").get_json()["data"]
    assert roster == [
        {
            "student": {"id": STUDENT_ID, "name": "Asha", "studentId": "CE250001", "email": "student@college.edu"},
            "totalClasses": 0,
            "attendedClasses": 0,
            "attendancePercentage": 0.0,
        }
    ]


def test_enrolment_routes_are_admin_only(client):
    login(client, "student@college.edu", "student123")
    assert client.get("/api/branches/with-counts").status_code == 403
    assert client.get(f"/api/subjects/{CE301_ID}/students").status_code == 403
