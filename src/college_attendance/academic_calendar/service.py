from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ..branches.repository import BranchRepository
from ..common.datetime_utils import academic_year_for, is_academic_year, parse_iso_date
from ..common.validators import (
    HEX_COLOR_RE,
    FieldErrors,
    optional_pattern,
    optional_text,
    require_choice,
    require_int_range,
    require_max_length,
    require_non_empty,
)
from ..core.constants import DEFAULT_EVENT_COLOR, DEFAULT_UPCOMING_DAYS, MAX_SEMESTER, MIN_SEMESTER
from ..core.enums import EventPriority, EventType, RecurrencePattern, Role
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import Audience, CalendarEvent
from .repository import CalendarRepository

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 100


def _require_admin(current_role: Role) -> None:
    if current_role != Role.ADMIN:
        raise AuthorizationError("Access restricted to administrators only")


def _check_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("End date must be on or after start date")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class CalendarService:
    """Use cases: maintain calendar events and answer date-range questions."""

    def __init__(
        self,
        events: CalendarRepository,
        branches: BranchRepository,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._events = events
        self._branches = branches
        self._clock = clock

    def today(self) -> date:
        return self._clock().date()

    # --- queries ------------------------------------------------------------------

    def get(self, event_id: int) -> CalendarEvent:
        event = self._events.get_by_id(int(event_id))
        if not event:
            raise NotFoundError("Calendar event not found")
        return event

    def get_events_for_date_range(
        self,
        start: date,
        end: date,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
        *,
        event_type: Optional[EventType] = None,
    ) -> list[CalendarEvent]:
        _check_range(start, end)
        return [
            e
            for e in self._events.list_overlapping(start, end)
            if e.applies_to(branch_id, semester) and (event_type is None or e.type == event_type)
        ]

    def get_holidays_for_date_range(
        self,
        start: date,
        end: date,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
    ) -> list[CalendarEvent]:
        _check_range(start, end)
        return [
            e
            for e in self._events.list_overlapping(start, end, holidays_only=True)
            if e.applies_to(branch_id, semester)
        ]

    def is_date_holiday(self, day: date, branch_id: Optional[int] = None, semester: Optional[int] = None) -> bool:
        return bool(self.get_holidays_for_date_range(day, day, branch_id, semester))

    def get_upcoming_events(
        self,
        days: int = DEFAULT_UPCOMING_DAYS,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> list[CalendarEvent]:
        if days < 0:
            raise ValidationError("days cannot be negative")
        today = today or self.today()
        return self.get_events_for_date_range(today, today + timedelta(days=days), branch_id, semester)

    def get_events_by_type(
        self,
        event_type,
        academic_year: Optional[str] = None,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
    ) -> list[CalendarEvent]:
        event_type = require_choice(event_type, EventType, "Event type")
        if academic_year and not is_academic_year(academic_year):
            raise ValidationError("Academic year must be in format YYYY-YYYY")
        return [
            e
            for e in self._events.list_by_type(event_type, academic_year=academic_year)
            if e.applies_to(branch_id, semester)
        ]

    def branch_refs(self) -> dict[int, dict]:
        return {b.branch_id: {"id": b.branch_id, "name": b.name, "code": b.code} for b in self._branches.list_active()}

    def describe(self, events: Sequence[CalendarEvent]) -> list[dict]:
        refs = self.branch_refs() if events else {}
        today = self.today()
        return [e.to_dict(today=today, branch_refs=refs) for e in events]

    # --- writes -------------------------------------------------------------------

    def create(self, *, current_role: Role, created_by: int, data: dict) -> CalendarEvent:
        _require_admin(current_role)
        event = self._build(data, event_id=0, created_by=created_by)
        event = replace(event, event_id=self._events.create(event))
        logger.info("Created calendar event %s %r (%s)", event.event_id, event.title, event.type.value)
        return event

    def update(self, *, current_role: Role, event_id: int, data: dict) -> CalendarEvent:
        _require_admin(current_role)
        existing = self.get(event_id)
        merged = {**_event_to_input(existing), **data}
        event = self._build(merged, event_id=existing.event_id, created_by=existing.created_by)
        event = replace(event, is_active=_as_bool(merged.get("isActive", existing.is_active)))
        self._events.update(event)
        return event

    def deactivate(self, *, current_role: Role, event_id: int) -> None:
        _require_admin(current_role)
        self.get(event_id)
        self._events.set_active(int(event_id), False)
        logger.info("Deactivated calendar event %s", event_id)

    def delete(self, *, current_role: Role, event_id: int) -> None:
        _require_admin(current_role)
        self.get(event_id)
        self._events.delete(int(event_id))
        logger.info("Deleted calendar event %s", event_id)

    def create_recurring_events(self, *, current_role: Role, event_id: int, occurrences: int = 1) -> list[CalendarEvent]:
        """Materialize ``occurrences`` standalone copies of a recurring event.

        Copy ``i`` is shifted by ``i`` pattern units from the source dates. The
        source keeps its recurring flag; copies are ordinary events.
        """
        _require_admin(current_role)
        occurrences = require_int_range(occurrences, "Number of occurrences", 1, MAX_OCCURRENCES)
        source = self.get(event_id)
        if not source.is_recurring or source.recurrence_pattern is None:
            raise ValidationError("Event is not set as recurring")

        copies = [source.occurrence(i) for i in range(1, occurrences + 1)]
        ids = self._events.create_many(copies)
        logger.info("Created %s occurrences of calendar event %s", len(ids), source.event_id)
        return [replace(e, event_id=i) for e, i in zip(copies, ids)]

    # --- helpers ------------------------------------------------------------------

    def _parse_branches(self, raw, errors: FieldErrors) -> Audience:
        if raw in (None, ""):
            return Audience.everyone()
        if not isinstance(raw, list):
            errors.add("Branches must be a list of branch ids")
            return Audience.everyone()
        ids: list[int] = []
        for value in raw:
            if isinstance(value, dict):
                value = value.get("id")
            try:
                branch_id = int(value)
            except (TypeError, ValueError):
                errors.add(f"Invalid branch id: {value!r}")
                continue
            if not self._branches.get_by_id(branch_id):
                errors.add(f"Branch {branch_id} does not exist")
                continue
            ids.append(branch_id)
        return Audience.from_list(ids)

    @staticmethod
    def _parse_semesters(raw, errors: FieldErrors) -> Audience:
        if raw in (None, ""):
            return Audience.everyone()
        if not isinstance(raw, list):
            errors.add("Semesters must be a list of numbers")
            return Audience.everyone()
        values = [errors.check(require_int_range, v, "Semester", MIN_SEMESTER, MAX_SEMESTER) for v in raw]
        return Audience.from_list(v for v in values if v is not None)

    def _build(self, data: dict, *, event_id: int, created_by: int) -> CalendarEvent:
        errors = FieldErrors()
        title = errors.check(require_non_empty, data.get("title"), "Event title")
        if title:
            errors.check(require_max_length, title, "Title", 100)
        description = optional_text(data.get("description"))
        errors.check(require_max_length, description, "Description", 500)

        start_date = end_date = None
        if not data.get("startDate"):
            errors.add("Start date is required")
        else:
            start_date = errors.check(parse_iso_date, str(data["startDate"])[:10])
        if not data.get("endDate"):
            errors.add("End date is required")
        else:
            end_date = errors.check(parse_iso_date, str(data["endDate"])[:10])
        if start_date and end_date and end_date < start_date:
            errors.add("End date must be after or same as start date")

        event_type = None
        if not data.get("type"):
            errors.add("Event type is required")
        else:
            event_type = errors.check(require_choice, data["type"], EventType, "Event type")

        academic_year = optional_text(data.get("academicYear")) or ""
        if not academic_year and start_date:
            academic_year = academic_year_for(start_date)
        elif academic_year and not is_academic_year(academic_year):
            errors.add("Academic year must be in format YYYY-YYYY")

        is_recurring = _as_bool(data.get("isRecurring", False))
        recurrence_pattern = None
        if data.get("recurrencePattern"):
            recurrence_pattern = errors.check(
                require_choice, data["recurrencePattern"], RecurrencePattern, "Recurrence pattern"
            )
        elif is_recurring:
            errors.add("Recurrence pattern is required for recurring events")
        if not is_recurring:
            recurrence_pattern = None

        priority = errors.check(
            require_choice, data.get("priority") or EventPriority.MEDIUM.value, EventPriority, "Priority"
        )
        color = errors.check(optional_pattern, data.get("color"), HEX_COLOR_RE, "hex color") or DEFAULT_EVENT_COLOR
        location = optional_text(data.get("location"))
        errors.check(require_max_length, location, "Location", 100)

        notify_before = 1
        if data.get("notifyBefore") not in (None, ""):
            try:
                notify_before = int(data["notifyBefore"])
            except (TypeError, ValueError):
                errors.add("Notification days must be a number")
            else:
                if notify_before < 0:
                    errors.add("Notification days cannot be negative")

        branches = self._parse_branches(data.get("branches"), errors)
        semesters = self._parse_semesters(data.get("semesters"), errors)
        errors.raise_if_any("Invalid calendar event")

        return CalendarEvent(
            event_id=event_id,
            title=title,
            description=description,
            start_date=start_date,
            end_date=end_date,
            type=event_type,
            academic_year=academic_year,
            branches=branches,
            semesters=semesters,
            is_recurring=is_recurring,
            recurrence_pattern=recurrence_pattern,
            priority=priority,
            color=color,
            location=location,
            created_by=int(created_by),
            notify_before=notify_before,
        )


def _event_to_input(event: CalendarEvent) -> dict:
    return {
        "title": event.title,
        "description": event.description,
        "startDate": event.start_date.isoformat(),
        "endDate": event.end_date.isoformat(),
        "type": event.type.value,
        "academicYear": event.academic_year,
        "branches": event.branches.to_list(),
        "semesters": event.semesters.to_list(),
        "isRecurring": event.is_recurring,
        "recurrencePattern": event.recurrence_pattern.value if event.recurrence_pattern else None,
        "priority": event.priority.value,
        "color": event.color,
        "location": event.location,
        "notifyBefore": event.notify_before,
    }
