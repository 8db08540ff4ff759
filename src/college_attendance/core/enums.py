from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for authorization checks."""

    ADMIN = "admin"
    STUDENT = "student"


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def ordered(cls) -> list["Weekday"]:
        return list(cls)

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        """Map ``date.weekday()`` (Monday=0) to a Weekday."""
        return cls.ordered()[index % 7]

    @property
    def index(self) -> int:
        return Weekday.ordered().index(self)


class ClassType(str, Enum):
    """Kind of scheduled class (timetable slot / attendance record)."""

    LECTURE = "lecture"
    LAB = "lab"
    TUTORIAL = "tutorial"
    SEMINAR = "seminar"


class SubjectType(str, Enum):
    THEORY = "theory"
    PRACTICAL = "practical"
    PROJECT = "project"
    SEMINAR = "seminar"


class AttendanceStatus(str, Enum):
    """Attendance status stored in the database."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class EventType(str, Enum):
    HOLIDAY = "holiday"
    EXAM = "exam"
    SEMESTER_START = "semester-start"
    SEMESTER_END = "semester-end"
    REGISTRATION = "registration"
    EVENT = "event"
    BREAK = "break"


class RecurrencePattern(str, Enum):
    YEARLY = "yearly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"


class EventPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


HOLIDAY_EVENT_TYPES = frozenset({EventType.HOLIDAY, EventType.BREAK})
