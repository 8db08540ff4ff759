from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import HOLIDAY_EVENT_TYPES, EventPriority, EventType, RecurrencePattern
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, placeholders
from .model import Audience, CalendarEvent
from .repository import CalendarRepository

_COLUMNS = """
    event_id, title, description, start_date, end_date, type, academic_year, branches, semesters,
    is_recurring, recurrence_pattern, is_active, priority, color, location, created_by, notify_before
"""


def _row_to_event(r: dict) -> CalendarEvent:
    return CalendarEvent(
        event_id=int(r["event_id"]),
        title=r["title"],
        description=r.get("description"),
        start_date=r["start_date"],
        end_date=r["end_date"],
        type=EventType(r["type"]),
        academic_year=r["academic_year"],
        branches=Audience.from_list(load_json(r.get("branches"), [])),
        semesters=Audience.from_list(load_json(r.get("semesters"), [])),
        is_recurring=bool(r["is_recurring"]),
        recurrence_pattern=RecurrencePattern(r["recurrence_pattern"]) if r.get("recurrence_pattern") else None,
        is_active=bool(r["is_active"]),
        priority=EventPriority(r["priority"]),
        color=r["color"],
        location=r.get("location"),
        created_by=int(r["created_by"]),
        notify_before=int(r["notify_before"]),
    )


def _event_params(e: CalendarEvent) -> tuple:
    return (
        e.title,
        e.description,
        e.start_date,
        e.end_date,
        e.type.value,
        e.academic_year,
        dump_json(e.branches.to_list()),
        dump_json(e.semesters.to_list()),
        1 if e.is_recurring else 0,
        e.recurrence_pattern.value if e.recurrence_pattern else None,
        1 if e.is_active else 0,
        e.priority.value,
        e.color,
        e.location,
        e.created_by,
        e.notify_before,
    )


_INSERT = """
    INSERT INTO calendar_events(title, description, start_date, end_date, type, academic_year, branches,
                                semesters, is_recurring, recurrence_pattern, is_active, priority, color,
                                location, created_by, notify_before)
    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
"""


class MySQLCalendarRepository(CalendarRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, event_id: int) -> Optional[CalendarEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM calendar_events WHERE event_id=%s", (int(event_id),))
            r = fetchone(cur)
            return _row_to_event(r) if r else None

    def list_overlapping(self, start: date, end: date, *, holidays_only: bool = False) -> Sequence[CalendarEvent]:
        params: list[object] = [start, end, start, end, start, end]
        type_clause = ""
        if holidays_only:
            types = sorted(t.value for t in HOLIDAY_EVENT_TYPES)
            type_clause = f"AND type IN ({placeholders(len(types))})"
            params.extend(types)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM calendar_events
                WHERE is_active=1
                  AND (
                        (start_date BETWEEN %s AND %s)
                     OR (end_date BETWEEN %s AND %s)
                     OR (start_date <= %s AND end_date >= %s)
                  )
                  {type_clause}
                ORDER BY start_date ASC, event_id ASC
                """,
                tuple(params),
            )
            return [_row_to_event(r) for r in fetchall(cur)]

    def list_by_type(self, event_type: EventType, *, academic_year: Optional[str] = None) -> Sequence[CalendarEvent]:
        sql = f"SELECT {_COLUMNS} FROM calendar_events WHERE is_active=1 AND type=%s"
        params: list[object] = [event_type.value]
        if academic_year:
            sql += " AND academic_year=%s"
            params.append(academic_year)
        sql += " ORDER BY start_date ASC, event_id ASC"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_event(r) for r in fetchall(cur)]

    def create(self, event: CalendarEvent) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_INSERT, _event_params(event))
            return int(cur.lastrowid)

    def create_many(self, events: Sequence[CalendarEvent]) -> list[int]:
        ids: list[int] = []
        with db_cursor(self._conn_factory) as (_, cur):
            for event in events:
                cur.execute(_INSERT, _event_params(event))
                ids.append(int(cur.lastrowid))
        return ids

    def update(self, event: CalendarEvent) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE calendar_events
                SET title=%s, description=%s, start_date=%s, end_date=%s, type=%s, academic_year=%s,
                    branches=%s, semesters=%s, is_recurring=%s, recurrence_pattern=%s, is_active=%s,
                    priority=%s, color=%s, location=%s, created_by=%s, notify_before=%s
                WHERE event_id=%s
                """,
                _event_params(event) + (event.event_id,),
            )

    def set_active(self, event_id: int, is_active: bool) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE calendar_events SET is_active=%s WHERE event_id=%s", (1 if is_active else 0, int(event_id))
            )

    def delete(self, event_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM calendar_events WHERE event_id=%s", (int(event_id),))
