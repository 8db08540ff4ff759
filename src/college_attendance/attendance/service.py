from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import academic_year_for, normalize_hhmm, parse_iso_date
from ..common.validators import FieldErrors, optional_text, require_choice, require_max_length
from ..core.constants import DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS, DEFAULT_TREND_DAYS
from ..core.enums import AttendanceStatus, ClassType, Role
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..subjects.repository import SubjectRepository
from ..users.model import Actor
from ..users.repository import UserRepository
from .model import AttendanceRecord
from .repository import AttendanceRepository
from .summary import AttendanceTally, daily_trend, percentage, tally, tally_by

logger = logging.getLogger(__name__)


def _as_id(value, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")


def _check_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end < start:
        raise ValidationError("End date must be on or after start date")


class AttendanceService:
    """Use cases: mark attendance, correct it, and report on it."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        subjects: SubjectRepository,
        users: UserRepository,
        *,
        clock: Callable[[], datetime] = datetime.now,
        edit_window_days: int = DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS,
    ):
        self._attendance = attendance
        self._subjects = subjects
        self._users = users
        self._clock = clock
        self._edit_window_days = edit_window_days

    # --- writes ----------------------------------------------------------------

    def mark(self, actor: Actor, data: dict, *, now: Optional[datetime] = None) -> AttendanceRecord:
        """Record one mark. Students may only mark themselves; admins may mark anyone."""
        now = now or self._clock()

        student_id = actor.user_id
        if data.get("student") not in (None, ""):
            requested = _as_id(data["student"], "Student")
            if requested != actor.user_id:
                if not actor.is_admin:
                    raise AuthorizationError("Students can only mark their own attendance")
                student_id = requested

        errors = FieldErrors()
        subject_id = None
        if data.get("subject") in (None, ""):
            errors.add("Subject is required")
        else:
            subject_id = errors.check(_as_id, data["subject"], "Subject")
        class_date = errors.check(parse_iso_date, data.get("date") or "")
        start_time = errors.check(normalize_hhmm, data.get("startTime"), "Start time")
        end_time = errors.check(normalize_hhmm, data.get("endTime"), "End time")
        status = errors.check(require_choice, data.get("status"), AttendanceStatus, "Attendance status")
        class_type = errors.check(
            require_choice, data.get("classType") or ClassType.LECTURE.value, ClassType, "Class type"
        )
        room = optional_text(data.get("room"))
        errors.check(require_max_length, room, "Room number", 20)
        notes = optional_text(data.get("notes"))
        errors.check(require_max_length, notes, "Notes", 200)
        if start_time and end_time and end_time <= start_time:
            errors.add("End time must be after start time")
        errors.raise_if_any("Invalid attendance record")

        subject = self._subjects.get_by_id(subject_id)
        if not subject or not subject.is_active:
            raise ValidationError("Invalid subject ID")

        student = self._users.get_by_id(student_id)
        if not student or student.role != Role.STUDENT:
            raise ValidationError("Attendance can only be marked for a student")

        if self._attendance.find_occurrence(
            student_id=student_id, subject_id=subject.subject_id, class_date=class_date, start_time=start_time
        ):
            raise ConflictError("Attendance already marked for this class")

        record = AttendanceRecord(
            attendance_id=0,
            student_id=student_id,
            subject_id=subject.subject_id,
            class_date=class_date,
            start_time=start_time,
            end_time=end_time,
            status=status,
            marked_by=actor.user_id,
            marked_at=now,
            academic_year=academic_year_for(class_date),
            class_type=class_type,
            room=room,
            notes=notes,
        )
        record.attendance_id = self._attendance.create(record)
        logger.info(
            "Attendance %s marked %s for student %s subject %s on %s %s",
            record.attendance_id,
            status.value,
            student_id,
            subject.subject_id,
            class_date.isoformat(),
            start_time,
        )
        return record

    def change_status(
        self,
        actor: Actor,
        attendance_id: int,
        *,
        status: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can modify attendance")
        now = now or self._clock()

        new_status = require_choice(status, AttendanceStatus, "Attendance status")
        reason = optional_text(reason)
        require_max_length(reason, "Reason", 200)

        record = self.get(actor, attendance_id)
        if not record.can_modify(now, self._edit_window_days):
            raise ValidationError(
                f"Attendance can only be modified within {self._edit_window_days} days of the class"
            )

        previous = record.status
        if record.modify_status(new_status, actor.user_id, reason, now=now):
            self._attendance.save_status(record)
            logger.info(
                "Attendance %s changed %s -> %s by %s", record.attendance_id, previous.value, new_status.value, actor.user_id
            )
        return record

    # --- reads --------------------------------------------------------------------

    def get(self, actor: Actor, attendance_id: int) -> AttendanceRecord:
        record = self._attendance.get_by_id(int(attendance_id))
        if not record:
            raise NotFoundError("Attendance record not found")
        if not actor.is_admin and record.student_id != actor.user_id:
            raise AuthorizationError("You can only view your own attendance")
        return record

    def _student_scope(self, actor: Actor, student_id: Optional[int]) -> int:
        if student_id is None or int(student_id) == actor.user_id:
            return actor.user_id
        if not actor.is_admin:
            raise AuthorizationError("You can only view your own attendance")
        return int(student_id)

    def list_for_student(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        _check_range(start, end)
        return self._attendance.list_records(
            student_id=self._student_scope(actor, student_id), subject_id=subject_id, start=start, end=end
        )

    def student_summary(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[dict]:
        """Per-subject totals for one student, with a below-minimum flag."""
        _check_range(start, end)
        records = self._attendance.list_records(
            student_id=self._student_scope(actor, student_id), subject_id=subject_id, start=start, end=end
        )
        groups = tally_by(records, lambda r: r.subject_id)
        subjects = self._subjects.get_many(groups.keys())

        out: list[dict] = []
        for sid, t in groups.items():
            subject = subjects.get(sid)
            if subject is None:
                continue
            out.append(
                {
                    "subjectId": sid,
                    "subjectName": subject.name,
                    "subjectCode": subject.code,
                    **t.to_dict(),
                    "minimumAttendance": subject.minimum_attendance,
                    "belowMinimum": t.percentage < subject.minimum_attendance,
                }
            )
        out.sort(key=lambda row: row["subjectCode"])
        return out

    def overall_for_student(self, student_id: int) -> AttendanceTally:
        return tally(self._attendance.list_records(student_id=int(student_id)))

    def subject_summary(
        self,
        *,
        current_role: Role,
        subject_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        order: str = "desc",
    ) -> list[dict]:
        """Per-student totals for one subject, sorted by percentage (descending by default)."""
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")
        if order not in ("asc", "desc"):
            raise ValidationError("order must be 'asc' or 'desc'")
        _check_range(start, end)

        records = self._attendance.list_records(subject_id=int(subject_id), start=start, end=end)
        groups = tally_by(records, lambda r: r.student_id)
        students = self._users.get_many(groups.keys())

        out: list[dict] = []
        for uid, t in groups.items():
            student = students.get(uid)
            if student is None:
                continue
            out.append(
                {
                    "studentId": uid,
                    "studentName": student.name,
                    "studentNumber": student.student_id,
                    **t.to_dict(),
                }
            )
        out.sort(key=lambda row: row["attendancePercentage"], reverse=(order == "desc"))
        return out

    def subject_average(
        self,
        *,
        current_role: Role,
        subject_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict:
        rows = self.subject_summary(current_role=current_role, subject_id=subject_id, start=start, end=end)
        if not rows:
            return {"subjectId": int(subject_id), "averageAttendance": 0.0, "studentCount": 0}
        average = round(sum(r["attendancePercentage"] for r in rows) / len(rows), 2)
        return {"subjectId": int(subject_id), "averageAttendance": average, "studentCount": len(rows)}

    def students_with_attendance(self, *, current_role: Role, subject_id: int) -> list[dict]:
        """Every enrolled student of a subject (its branch and semester) with their totals, by name.

        Students with no marks yet are listed with zero counts.
        """
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        subject = self._subjects.get_by_id(int(subject_id))
        if not subject:
            raise NotFoundError("Subject not found")

        students = self._users.list_students(branch_id=subject.branch_id, semester=subject.semester)
        groups = tally_by(self._attendance.list_records(subject_id=subject.subject_id), lambda r: r.student_id)

        out: list[dict] = []
        for student in sorted(students, key=lambda s: s.name):
            t = groups.get(student.user_id, AttendanceTally())
            out.append(
                {
                    "student": {
                        "id": student.user_id,
                        "name": student.name,
                        "studentId": student.student_id,
                        "email": student.email,
                    },
                    "totalClasses": t.total,
                    "attendedClasses": t.present,
                    "attendancePercentage": t.percentage,
                }
            )
        return out

    def daily_count(self, *, current_role: Role, day: Optional[date] = None) -> dict:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")
        day = day or self._clock().date()

        counts = self._attendance.count_by_status(day)
        result = {s.value: int(counts.get(s.value, 0)) for s in AttendanceStatus}
        result["total"] = sum(result.values())
        result["date"] = day.isoformat()
        result["attendancePercentage"] = percentage(result[AttendanceStatus.PRESENT.value], result["total"])
        return result

    def trends(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        days: int = DEFAULT_TREND_DAYS,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        """Per-day series over the trailing ``days`` days, oldest first."""
        if days < 1 or days > 365:
            raise ValidationError("days must be between 1 and 365")
        now = now or self._clock()
        records = self._attendance.list_records(
            student_id=self._student_scope(actor, student_id),
            start=(now - timedelta(days=days)).date(),
            end=now.date(),
        )
        return daily_trend(records)

    def report_rows(
        self,
        actor: Actor,
        *,
        student_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[dict]:
        """Flat rows for the CSV export of a student's summary."""
        rows = self.student_summary(actor, student_id=student_id, start=start, end=end)
        return [
            {
                "subject_code": r["subjectCode"],
                "subject_name": r["subjectName"],
                "total_classes": r["totalClasses"],
                "present": r["presentCount"],
                "absent": r["absentCount"],
                "late": r["lateCount"],
                "attendance_percentage": f"{r['attendancePercentage']:.2f}",
                "minimum_attendance": r["minimumAttendance"],
                "below_minimum": "yes" if r["belowMinimum"] else "no",
            }
            for r in rows
        ]

    def describe(self, records: Sequence[AttendanceRecord]) -> list[dict]:
        subjects = self._subjects.get_many(r.subject_id for r in records)
        students = self._users.get_many(r.student_id for r in records)
        return [r.to_dict(subject=subjects.get(r.subject_id), student=students.get(r.student_id)) for r in records]
