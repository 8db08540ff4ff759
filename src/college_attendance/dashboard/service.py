from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Optional

from ..academic_calendar.service import CalendarService
from ..attendance.service import AttendanceService
from ..attendance.summary import monthly_trend
from ..core.constants import DEFAULT_UPCOMING_DAYS
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError
from ..timetables.service import TimetableService
from ..users.model import Actor

logger = logging.getLogger(__name__)


class DashboardService:
    """Read-only composition of timetable, attendance and calendar views."""

    def __init__(
        self,
        timetables: TimetableService,
        attendance: AttendanceService,
        calendar: CalendarService,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._timetables = timetables
        self._attendance = attendance
        self._calendar = calendar
        self._clock = clock

    def student_view(self, actor: Actor, *, now: Optional[datetime] = None) -> dict:
        if actor.role != Role.STUDENT:
            raise AuthorizationError("Dashboard is only available to students")
        now = now or self._clock()
        today = now.date()

        subjects = self._attendance.student_summary(actor)
        overall = self._attendance.overall_for_student(actor.user_id)
        is_holiday = self._calendar.is_date_holiday(today, actor.branch_id, actor.semester)

        today_classes: list[dict] = []
        next_class = None
        try:
            if not is_holiday:
                today_classes = self._timetables.slots_response(self._timetables.get_today(actor, now=now).slots)
            upcoming_class = self._timetables.get_next_class(actor, now=now)
            if upcoming_class is not None:
                next_class = self._timetables.next_class_response(upcoming_class)
        except NotFoundError:
            logger.info("No active timetable for branch %s semester %s", actor.branch_id, actor.semester)

        events = self._calendar.get_upcoming_events(
            DEFAULT_UPCOMING_DAYS, actor.branch_id, actor.semester, today=today
        )
        return {
            "date": today.isoformat(),
            "isHoliday": is_holiday,
            **overall.to_dict(),
            "subjects": subjects,
            "subjectsBelowMinimum": sum(1 for s in subjects if s["belowMinimum"]),
            "todayClasses": today_classes,
            "nextClass": next_class,
            "upcomingEvents": self._calendar.describe(events),
        }

    def attendance_overview(self, actor: Actor, *, student_id: Optional[int] = None) -> dict:
        records = self._attendance.list_for_student(actor, student_id=student_id)
        overall = self._attendance.overall_for_student(student_id or actor.user_id)
        return {**overall.to_dict(), "monthlyAttendance": monthly_trend(records)}

    def admin_view(self, actor: Actor, *, day: Optional[date] = None) -> dict:
        return {"dailyAttendance": self._attendance.daily_count(current_role=actor.role, day=day)}
