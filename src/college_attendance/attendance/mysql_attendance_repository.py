from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus, ClassType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, unique_guard
from .model import AttendanceRecord, ModificationEntry
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, student_id, subject_id, class_date, start_time, end_time, status, marked_by,
    marked_at, class_type, room, notes, is_modified, modification_history, academic_year
"""


def _row_to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        student_id=int(r["student_id"]),
        subject_id=int(r["subject_id"]),
        class_date=r["class_date"],
        start_time=r["start_time"],
        end_time=r["end_time"],
        status=AttendanceStatus(r["status"]),
        marked_by=int(r["marked_by"]),
        marked_at=r["marked_at"],
        class_type=ClassType(r["class_type"]),
        room=r.get("room"),
        notes=r.get("notes"),
        is_modified=bool(r["is_modified"]),
        modification_history=[ModificationEntry.from_document(d) for d in load_json(r.get("modification_history"), [])],
        academic_year=r["academic_year"],
    )


def _history_json(record: AttendanceRecord) -> str:
    return dump_json([m.to_document() for m in record.modification_history])


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def find_occurrence(
        self, *, student_id: int, subject_id: int, class_date: date, start_time: str
    ) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE student_id=%s AND subject_id=%s AND class_date=%s AND start_time=%s
                """,
                (int(student_id), int(subject_id), class_date, start_time),
            )
            r = fetchone(cur)
            return _row_to_record(r) if r else None

    def create(self, record: AttendanceRecord) -> int:
        with unique_guard("Attendance already marked for this class"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_records(student_id, subject_id, class_date, start_time, end_time, status,
                                               marked_by, marked_at, class_type, room, notes, is_modified,
                                               modification_history, academic_year)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    record.student_id,
                    record.subject_id,
                    record.class_date,
                    record.start_time,
                    record.end_time,
                    record.status.value,
                    record.marked_by,
                    record.marked_at,
                    record.class_type.value,
                    record.room,
                    record.notes,
                    1 if record.is_modified else 0,
                    _history_json(record),
                    record.academic_year,
                ),
            )
            return int(cur.lastrowid)

    def save_status(self, record: AttendanceRecord) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET status=%s, is_modified=%s, modification_history=%s
                WHERE attendance_id=%s
                """,
                (record.status.value, 1 if record.is_modified else 0, _history_json(record), record.attendance_id),
            )

    def list_records(
        self,
        *,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["1=1"]
        params: list[object] = []
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(int(student_id))
        if subject_id is not None:
            clauses.append("subject_id=%s")
            params.append(int(subject_id))
        if start is not None:
            clauses.append("class_date >= %s")
            params.append(start)
        if end is not None:
            clauses.append("class_date <= %s")
            params.append(end)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE {where}
                ORDER BY class_date DESC, start_time DESC
                """,
                tuple(params),
            )
            return [_row_to_record(r) for r in fetchall(cur)]

    def count_by_status(self, day: date) -> dict[str, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT status, COUNT(*) AS cnt
                FROM attendance_records
                WHERE class_date=%s
                GROUP BY status
                """,
                (day,),
            )
            return {r["status"]: int(r["cnt"]) for r in fetchall(cur)}
