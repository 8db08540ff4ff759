from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from .academic_calendar.mysql_calendar_repository import MySQLCalendarRepository
from .academic_calendar.service import CalendarService
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .branches.mysql_branch_repository import MySQLBranchRepository
from .branches.service import BranchService
from .common.datetime_utils import make_clock
from .core.constants import DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS
from .dashboard.service import DashboardService
from .database.connection import DBConfig, DatabaseConnection
from .subjects.mysql_subject_repository import MySQLSubjectRepository
from .subjects.service import SubjectService
from .timetables.mysql_timetable_repository import MySQLTimetableRepository
from .timetables.service import TimetableService
from .users.mysql_user_repository import MySQLUserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection
    clock: Callable[[], datetime]

    branches_repo: MySQLBranchRepository
    subjects_repo: MySQLSubjectRepository
    users_repo: MySQLUserRepository
    timetables_repo: MySQLTimetableRepository
    attendance_repo: MySQLAttendanceRepository
    calendar_repo: MySQLCalendarRepository

    branch_service: BranchService
    subject_service: SubjectService
    auth_service: AuthService
    user_service: UserService
    timetable_service: TimetableService
    attendance_service: AttendanceService
    calendar_service: CalendarService
    dashboard_service: DashboardService


def build_container(
    *,
    db_config: dict,
    timezone: str = "",
    edit_window_days: int = DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))
    clock = make_clock(timezone or None)

    branches_repo = MySQLBranchRepository(conn)
    subjects_repo = MySQLSubjectRepository(conn)
    users_repo = MySQLUserRepository(conn)
    timetables_repo = MySQLTimetableRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    calendar_repo = MySQLCalendarRepository(conn)

    branch_service = BranchService(branches_repo, users_repo)
    subject_service = SubjectService(subjects_repo, branches_repo)
    auth_service = AuthService(users_repo, branches_repo)
    user_service = UserService(users_repo)
    timetable_service = TimetableService(
        timetables_repo, subjects_repo, branches_repo, clock=clock, timezone=timezone or None
    )
    attendance_service = AttendanceService(
        attendance_repo,
        subjects_repo,
        users_repo,
        clock=clock,
        edit_window_days=edit_window_days,
    )
    calendar_service = CalendarService(calendar_repo, branches_repo, clock=clock)
    dashboard_service = DashboardService(timetable_service, attendance_service, calendar_service, clock=clock)

    return Container(
        conn=conn,
        clock=clock,
        branches_repo=branches_repo,
        subjects_repo=subjects_repo,
        users_repo=users_repo,
        timetables_repo=timetables_repo,
        attendance_repo=attendance_repo,
        calendar_repo=calendar_repo,
        branch_service=branch_service,
        subject_service=subject_service,
        auth_service=auth_service,
        user_service=user_service,
        timetable_service=timetable_service,
        attendance_service=attendance_service,
        calendar_service=calendar_service,
        dashboard_service=dashboard_service,
    )
