from __future__ import annotations

import copy
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, Optional

import pytest
from werkzeug.security import generate_password_hash

from college_attendance.academic_calendar.model import CalendarEvent
from college_attendance.academic_calendar.service import CalendarService
from college_attendance.attendance.model import AttendanceRecord
from college_attendance.attendance.service import AttendanceService
from college_attendance.branches.model import Branch
from college_attendance.core.enums import HOLIDAY_EVENT_TYPES, Role, SubjectType
from college_attendance.core.exceptions import ConflictError
from college_attendance.dashboard.service import DashboardService
from college_attendance.subjects.model import Faculty, Subject
from college_attendance.timetables.model import Timetable
from college_attendance.timetables.service import TimetableService
from college_attendance.users.model import Actor, User

CE_ID = 4
CE301_ID = 1
CE302_ID = 2
ADMIN_ID = 1
STUDENT_ID = 2


class InMemoryBranches:
    def __init__(self, branches: Iterable[Branch] = ()):
        self.rows: dict[int, Branch] = {b.branch_id: b for b in branches}

    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        return self.rows.get(branch_id)

    def get_by_code(self, code: str) -> Optional[Branch]:
        return next((b for b in self.rows.values() if b.code == code.upper()), None)

    def get_by_name(self, name: str) -> Optional[Branch]:
        return next((b for b in self.rows.values() if b.name == name), None)

    def list_active(self):
        return sorted((b for b in self.rows.values() if b.is_active), key=lambda b: b.name)

    def create(self, branch: Branch) -> int:
        if any(b.code == branch.code or b.name == branch.name for b in self.rows.values()):
            raise ConflictError("Branch name or code already exists")
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(branch, branch_id=new_id)
        return new_id

    def update(self, branch: Branch) -> bool:
        self.rows[branch.branch_id] = branch
        return True

    def set_active(self, branch_id: int, is_active: bool) -> bool:
        self.rows[branch_id] = replace(self.rows[branch_id], is_active=is_active)
        return True


class InMemorySubjects:
    def __init__(self, subjects: Iterable[Subject] = ()):
        self.rows: dict[int, Subject] = {s.subject_id: s for s in subjects}

    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        return self.rows.get(subject_id)

    def get_many(self, subject_ids) -> dict[int, Subject]:
        return {i: self.rows[i] for i in subject_ids if i in self.rows}

    def list(self, *, branch_id=None, semester=None, active_only=True):
        items = [
            s
            for s in self.rows.values()
            if (branch_id is None or s.branch_id == branch_id)
            and (semester is None or s.semester == semester)
            and (s.is_active or not active_only)
        ]
        return sorted(items, key=lambda s: s.code)

    def list_by_faculty(self, faculty_email: str):
        items = [
            s
            for s in self.rows.values()
            if s.is_active and (s.faculty.email or "").lower() == faculty_email.lower()
        ]
        return sorted(items, key=lambda s: (s.semester, s.code))

    def create(self, subject: Subject) -> int:
        key = (subject.code, subject.branch_id, subject.semester)
        if any((s.code, s.branch_id, s.semester) == key for s in self.rows.values()):
            raise ConflictError("Subject with this code already exists for this branch and semester")
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(subject, subject_id=new_id)
        return new_id

    def update(self, subject: Subject) -> bool:
        self.rows[subject.subject_id] = subject
        return True

    def set_active(self, subject_id: int, is_active: bool) -> bool:
        self.rows[subject_id] = replace(self.rows[subject_id], is_active=is_active)
        return True


class InMemoryUsers:
    def __init__(self, users: Iterable[User] = ()):
        self.rows: dict[int, User] = {u.user_id: u for u in users}
        self.last_login: dict[int, datetime] = {}

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.rows.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.rows.values() if u.email == email), None)

    def get_many(self, user_ids) -> dict[int, User]:
        return {i: self.rows[i] for i in user_ids if i in self.rows}

    def student_id_exists(self, student_id: str) -> bool:
        return any(u.student_id == student_id for u in self.rows.values())

    def create_user(self, user: User) -> int:
        if self.get_by_email(user.email):
            raise ConflictError("User with this email already exists")
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(user, user_id=new_id)
        return new_id

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        self.last_login[user_id] = at

    def list_students(self, *, branch_id=None, semester=None):
        return [
            u
            for u in self.rows.values()
            if u.role == Role.STUDENT
            and u.is_active
            and (branch_id is None or u.branch_id == branch_id)
            and (semester is None or u.semester == semester)
        ]

    def update_profile(self, user: User) -> bool:
        owner = self.get_by_email(user.email)
        if owner and owner.user_id != user.user_id:
            raise ConflictError("User with this email already exists")
        self.rows[user.user_id] = replace(self.rows[user.user_id], name=user.name, email=user.email, phone=user.phone)
        return True

    def update_password(self, user_id: int, password_hash: str) -> bool:
        self.rows[user_id] = replace(self.rows[user_id], password_hash=password_hash)
        return True

    def count_students_by_branch(self) -> dict[int, int]:
        counts: dict[int, int] = {}
        for u in self.list_students():
            if u.branch_id is not None:
                counts[u.branch_id] = counts.get(u.branch_id, 0) + 1
        return counts


class InMemoryTimetables:
    """Stores deep copies so callers only see changes they saved."""

    def __init__(self):
        self.rows: dict[int, Timetable] = {}
        self._id = 0

    def get_by_id(self, timetable_id: int) -> Optional[Timetable]:
        row = self.rows.get(timetable_id)
        return copy.deepcopy(row) if row else None

    def find_current(self, *, branch_id: int, semester: int, now: datetime) -> Optional[Timetable]:
        matches = [
            t
            for t in self.rows.values()
            if t.branch_id == branch_id and t.semester == semester and t.is_currently_active(now)
        ]
        matches.sort(key=lambda t: t.version, reverse=True)
        return copy.deepcopy(matches[0]) if matches else None

    def find_active(self, *, branch_id: int, semester: int, academic_year: str) -> Optional[Timetable]:
        matches = [
            t
            for t in self.rows.values()
            if t.is_active and (t.branch_id, t.semester, t.academic_year) == (branch_id, semester, academic_year)
        ]
        matches.sort(key=lambda t: t.version, reverse=True)
        return copy.deepcopy(matches[0]) if matches else None

    def list(self, *, branch_id=None, semester=None, academic_year=None, active_only=True):
        items = [
            t
            for t in self.rows.values()
            if (branch_id is None or t.branch_id == branch_id)
            and (semester is None or t.semester == semester)
            and (academic_year is None or t.academic_year == academic_year)
            and (t.is_active or not active_only)
        ]
        items.sort(key=lambda t: (t.branch_id, t.semester, -t.version))
        return [copy.deepcopy(t) for t in items]

    def list_versions(self, *, branch_id: int, semester: int, academic_year=None):
        return self.list(branch_id=branch_id, semester=semester, academic_year=academic_year, active_only=False)

    def max_version(self, *, branch_id: int, semester: int, academic_year: str) -> int:
        return max(
            (
                t.version
                for t in self.rows.values()
                if (t.branch_id, t.semester, t.academic_year) == (branch_id, semester, academic_year)
            ),
            default=0,
        )

    def _insert(self, timetable: Timetable) -> int:
        key = (timetable.branch_id, timetable.semester, timetable.academic_year, timetable.version)
        if any((t.branch_id, t.semester, t.academic_year, t.version) == key for t in self.rows.values()):
            raise ConflictError("A timetable with this version already exists")
        self._id += 1
        stored = copy.deepcopy(timetable)
        stored.timetable_id = self._id
        stored.revision = 0
        self.rows[self._id] = stored
        return self._id

    def create(self, timetable: Timetable) -> int:
        return self._insert(timetable)

    def save(self, timetable: Timetable) -> None:
        stored = self.rows.get(timetable.timetable_id)
        if stored is None or stored.revision != timetable.revision:
            raise ConflictError("Timetable was modified by someone else, reload and try again")
        timetable.revision += 1
        self.rows[timetable.timetable_id] = copy.deepcopy(timetable)

    def supersede(self, current: Timetable, successor: Timetable) -> int:
        stored = self.rows.get(current.timetable_id)
        if stored is None or stored.revision != current.revision or not stored.is_active:
            raise ConflictError("Timetable was already superseded or modified, reload and try again")
        new_id = self._insert(successor)
        current.revision += 1
        stored.is_active = False
        stored.effective_to = current.effective_to
        stored.revision = current.revision
        return new_id

    def delete(self, timetable_id: int) -> bool:
        return self.rows.pop(timetable_id, None) is not None


class InMemoryAttendance:
    def __init__(self):
        self.rows: dict[int, AttendanceRecord] = {}
        self._id = 0

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        row = self.rows.get(attendance_id)
        return copy.deepcopy(row) if row else None

    def find_occurrence(self, *, student_id, subject_id, class_date, start_time) -> Optional[AttendanceRecord]:
        for r in self.rows.values():
            if (r.student_id, r.subject_id, r.class_date, r.start_time) == (student_id, subject_id, class_date, start_time):
                return copy.deepcopy(r)
        return None

    def create(self, record: AttendanceRecord) -> int:
        if self.find_occurrence(
            student_id=record.student_id,
            subject_id=record.subject_id,
            class_date=record.class_date,
            start_time=record.start_time,
        ):
            raise ConflictError("Attendance already marked for this class")
        self._id += 1
        stored = copy.deepcopy(record)
        stored.attendance_id = self._id
        self.rows[self._id] = stored
        return self._id

    def save_status(self, record: AttendanceRecord) -> None:
        self.rows[record.attendance_id] = copy.deepcopy(record)

    def list_records(self, *, student_id=None, subject_id=None, start=None, end=None):
        items = [
            r
            for r in self.rows.values()
            if (student_id is None or r.student_id == student_id)
            and (subject_id is None or r.subject_id == subject_id)
            and (start is None or r.class_date >= start)
            and (end is None or r.class_date <= end)
        ]
        items.sort(key=lambda r: (r.class_date, r.start_time), reverse=True)
        return [copy.deepcopy(r) for r in items]

    def count_by_status(self, day: date) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.rows.values():
            if r.class_date == day:
                counts[r.status.value] = counts.get(r.status.value, 0) + 1
        return counts


class InMemoryCalendar:
    def __init__(self):
        self.rows: dict[int, CalendarEvent] = {}

    def get_by_id(self, event_id: int) -> Optional[CalendarEvent]:
        return self.rows.get(event_id)

    def list_overlapping(self, start, end, *, holidays_only=False):
        items = [
            e
            for e in self.rows.values()
            if e.is_active and e.overlaps(start, end) and (not holidays_only or e.type in HOLIDAY_EVENT_TYPES)
        ]
        return sorted(items, key=lambda e: (e.start_date, e.event_id))

    def list_by_type(self, event_type, *, academic_year=None):
        items = [
            e
            for e in self.rows.values()
            if e.is_active and e.type == event_type and (academic_year is None or e.academic_year == academic_year)
        ]
        return sorted(items, key=lambda e: (e.start_date, e.event_id))

    def create(self, event: CalendarEvent) -> int:
        new_id = max(self.rows, default=0) + 1
        self.rows[new_id] = replace(event, event_id=new_id)
        return new_id

    def create_many(self, events) -> list[int]:
        return [self.create(e) for e in events]

    def update(self, event: CalendarEvent) -> None:
        self.rows[event.event_id] = event

    def set_active(self, event_id: int, is_active: bool) -> None:
        self.rows[event_id] = replace(self.rows[event_id], is_active=is_active)

    def delete(self, event_id: int) -> None:
        self.rows.pop(event_id, None)


def make_subject(subject_id: int, code: str, name: str, *, semester: int = 3, kind=SubjectType.THEORY) -> Subject:
    return Subject(
        subject_id=subject_id,
        name=name,
        code=code,
        branch_id=CE_ID,
        semester=semester,
        credits=4,
        type=kind,
        faculty=Faculty(name="Dr. Rao", email="rao@college.edu"),
    )


@pytest.fixture
def fixed_now() -> datetime:
    # Wednesday
    return datetime(2025, 9, 3, 10, 30)


@pytest.fixture
def branches() -> InMemoryBranches:
    return InMemoryBranches(
        [
            Branch(branch_id=1, name="Computer Science and Engineering", code="CSE", department="Engineering"),
            Branch(branch_id=CE_ID, name="Civil Engineering", code="CE", department="Engineering"),
        ]
    )


@pytest.fixture
def subjects() -> InMemorySubjects:
    return InMemorySubjects(
        [
            make_subject(CE301_ID, "CE301", "Structural Analysis"),
            make_subject(CE302_ID, "CE302", "Surveying Lab", kind=SubjectType.PRACTICAL),
        ]
    )


@pytest.fixture
def users() -> InMemoryUsers:
    return InMemoryUsers(
        [
            User(
                user_id=ADMIN_ID,
                name="Admin",
                email="admin@college.edu",
                password_hash=generate_password_hash("admin123"),
                role=Role.ADMIN,
            ),
            User(
                user_id=STUDENT_ID,
                name="Asha",
                email="student@college.edu",
                password_hash=generate_password_hash("student123"),
                role=Role.STUDENT,
                student_id="CE250001",
                branch_id=CE_ID,
                semester=3,
            ),
        ]
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture
def student() -> Actor:
    return Actor(user_id=STUDENT_ID, role=Role.STUDENT, branch_id=CE_ID, semester=3)


@pytest.fixture
def timetables() -> InMemoryTimetables:
    return InMemoryTimetables()


@pytest.fixture
def attendance_repo() -> InMemoryAttendance:
    return InMemoryAttendance()


@pytest.fixture
def calendar_repo() -> InMemoryCalendar:
    return InMemoryCalendar()


@pytest.fixture
def timetable_service(timetables, subjects, branches, fixed_now) -> TimetableService:
    return TimetableService(timetables, subjects, branches, clock=lambda: fixed_now)


@pytest.fixture
def attendance_service(attendance_repo, subjects, users, fixed_now) -> AttendanceService:
    return AttendanceService(attendance_repo, subjects, users, clock=lambda: fixed_now)


@pytest.fixture
def calendar_service(calendar_repo, branches, fixed_now) -> CalendarService:
    return CalendarService(calendar_repo, branches, clock=lambda: fixed_now)


@pytest.fixture
def dashboard_service(timetable_service, attendance_service, calendar_service, fixed_now) -> DashboardService:
    return DashboardService(timetable_service, attendance_service, calendar_service, clock=lambda: fixed_now)
