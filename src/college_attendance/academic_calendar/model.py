"""Academic calendar events.

An event targets branches and semesters through an :class:`Audience`. The
stored form is a plain list where an empty list means "everyone"; inside the
domain that case is carried explicitly so it cannot be inverted by accident.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, Mapping, Optional

from dateutil.relativedelta import relativedelta

from ..common.datetime_utils import academic_year_for
from ..core.constants import DEFAULT_EVENT_COLOR
from ..core.enums import HOLIDAY_EVENT_TYPES, EventPriority, EventType, RecurrencePattern


@dataclass(frozen=True)
class Audience:
    """Either everyone (``members is None``) or an explicit set of ids."""

    members: Optional[frozenset] = None

    @classmethod
    def everyone(cls) -> "Audience":
        return cls(None)

    @classmethod
    def from_list(cls, values: Optional[Iterable[int]]) -> "Audience":
        members = frozenset(int(v) for v in (values or []))
        return cls(members) if members else cls.everyone()

    @property
    def is_everyone(self) -> bool:
        return self.members is None

    def includes(self, value: Optional[int]) -> bool:
        """A missing ``value`` means the caller is not filtering on this axis."""
        if value is None or self.members is None:
            return True
        return int(value) in self.members

    def to_list(self) -> list[int]:
        return [] if self.members is None else sorted(self.members)


_RECURRENCE_STEP = {
    RecurrencePattern.WEEKLY: lambda n: relativedelta(weeks=n),
    RecurrencePattern.MONTHLY: lambda n: relativedelta(months=n),
    RecurrencePattern.YEARLY: lambda n: relativedelta(years=n),
}


@dataclass(frozen=True)
class CalendarEvent:
    event_id: int
    title: str
    start_date: date
    end_date: date
    type: EventType
    academic_year: str
    created_by: int
    description: Optional[str] = None
    branches: Audience = field(default_factory=Audience.everyone)
    semesters: Audience = field(default_factory=Audience.everyone)
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    is_active: bool = True
    priority: EventPriority = EventPriority.MEDIUM
    color: str = DEFAULT_EVENT_COLOR
    location: Optional[str] = None
    notify_before: int = 1

    def applies_to(self, branch_id: Optional[int] = None, semester: Optional[int] = None) -> bool:
        return self.branches.includes(branch_id) and self.semesters.includes(semester)

    def is_holiday(self) -> bool:
        return self.type in HOLIDAY_EVENT_TYPES

    def overlaps(self, start: date, end: date) -> bool:
        # Starts inside the range, ends inside it, or spans it.
        return (
            start <= self.start_date <= end
            or start <= self.end_date <= end
            or (self.start_date <= start and self.end_date >= end)
        )

    @property
    def duration_in_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def is_currently_active(self, today: date) -> bool:
        return self.is_active and self.start_date <= today <= self.end_date

    def is_upcoming(self, today: date) -> bool:
        return self.is_active and self.start_date > today

    def occurrence(self, n: int) -> "CalendarEvent":
        """The ``n``-th repetition as a standalone, non-recurring event.

        Month and year steps land on the last day of shorter months
        (Jan 31 + 1 month -> Feb 28/29).
        """
        if not self.is_recurring or self.recurrence_pattern is None:
            raise ValueError("event is not recurring")
        step = _RECURRENCE_STEP[self.recurrence_pattern](n)
        start = self.start_date + step
        return replace(
            self,
            event_id=0,
            start_date=start,
            end_date=self.end_date + step,
            academic_year=academic_year_for(start),
            is_recurring=False,
            recurrence_pattern=None,
            is_active=True,
        )

    def to_dict(self, *, today: Optional[date] = None, branch_refs: Optional[Mapping[int, dict]] = None) -> dict:
        branch_ids = self.branches.to_list()
        out = {
            "id": self.event_id,
            "title": self.title,
            "description": self.description,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "type": self.type.value,
            "academicYear": self.academic_year,
            "branches": [branch_refs.get(b, {"id": b}) for b in branch_ids] if branch_refs is not None else branch_ids,
            "semesters": self.semesters.to_list(),
            "isRecurring": self.is_recurring,
            "recurrencePattern": self.recurrence_pattern.value if self.recurrence_pattern else None,
            "isActive": self.is_active,
            "priority": self.priority.value,
            "color": self.color,
            "location": self.location,
            "createdBy": self.created_by,
            "notifyBefore": self.notify_before,
            "isHoliday": self.is_holiday(),
            "durationInDays": self.duration_in_days,
        }
        if today is not None:
            out["isCurrentlyActive"] = self.is_currently_active(today)
            out["isUpcoming"] = self.is_upcoming(today)
        return out
