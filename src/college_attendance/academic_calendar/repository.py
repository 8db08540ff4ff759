from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..core.enums import EventType
from .model import CalendarEvent


class CalendarRepository(Protocol):
    def get_by_id(self, event_id: int) -> Optional[CalendarEvent]:
        raise NotImplementedError

    def list_overlapping(self, start: date, end: date, *, holidays_only: bool = False) -> Sequence[CalendarEvent]:
        """Active events whose [start_date, end_date] intersects [start, end], by start date."""

        raise NotImplementedError

    def list_by_type(self, event_type: EventType, *, academic_year: Optional[str] = None) -> Sequence[CalendarEvent]:
        """Active events of one type, by start date."""

        raise NotImplementedError

    def create(self, event: CalendarEvent) -> int:
        raise NotImplementedError

    def create_many(self, events: Sequence[CalendarEvent]) -> list[int]:
        """Insert all events in one transaction; return their ids in order."""

        raise NotImplementedError

    def update(self, event: CalendarEvent) -> None:
        raise NotImplementedError

    def set_active(self, event_id: int, is_active: bool) -> None:
        raise NotImplementedError

    def delete(self, event_id: int) -> None:
        raise NotImplementedError
