from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, unique_guard
from .model import Timetable, schedule_from_document, schedule_to_document
from .repository import TimetableRepository

_COLUMNS = """
    timetable_id, branch_id, semester, academic_year, version, is_active,
    effective_from, effective_to, notes, schedule, revision
"""

_DUPLICATE_VERSION = "A timetable with this version already exists for the branch, semester and academic year"
_STALE = "Timetable was modified by another request, reload and try again"


def _row_to_timetable(r: dict) -> Timetable:
    return Timetable(
        timetable_id=int(r["timetable_id"]),
        branch_id=int(r["branch_id"]),
        semester=int(r["semester"]),
        academic_year=r["academic_year"],
        version=int(r["version"]),
        is_active=bool(r["is_active"]),
        effective_from=r["effective_from"],
        effective_to=r.get("effective_to"),
        notes=r.get("notes"),
        schedule=schedule_from_document(load_json(r.get("schedule"), [])),
        revision=int(r.get("revision") or 0),
    )


def _insert(cur, t: Timetable) -> int:
    cur.execute(
        """
        INSERT INTO timetables(branch_id, semester, academic_year, version, is_active,
                               effective_from, effective_to, notes, schedule, revision)
        VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,0)
        """,
        (
            t.branch_id,
            t.semester,
            t.academic_year,
            t.version,
            1 if t.is_active else 0,
            t.effective_from,
            t.effective_to,
            t.notes,
            dump_json(schedule_to_document(t.schedule)),
        ),
    )
    return int(cur.lastrowid)


class MySQLTimetableRepository(TimetableRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, timetable_id: int) -> Optional[Timetable]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM timetables WHERE timetable_id=%s", (int(timetable_id),))
            r = fetchone(cur)
            return _row_to_timetable(r) if r else None

    def find_current(self, *, branch_id: int, semester: int, now: datetime) -> Optional[Timetable]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM timetables
                WHERE branch_id=%s AND semester=%s AND is_active=1
                  AND effective_from <= %s
                  AND (effective_to IS NULL OR effective_to >= %s)
                ORDER BY version DESC
                LIMIT 1
                """,
                (int(branch_id), int(semester), now, now),
            )
            r = fetchone(cur)
            return _row_to_timetable(r) if r else None

    def find_active(self, *, branch_id: int, semester: int, academic_year: str) -> Optional[Timetable]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM timetables
                WHERE branch_id=%s AND semester=%s AND academic_year=%s AND is_active=1
                ORDER BY version DESC
                LIMIT 1
                """,
                (int(branch_id), int(semester), academic_year),
            )
            r = fetchone(cur)
            return _row_to_timetable(r) if r else None

    def list(
        self,
        *,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
        academic_year: Optional[str] = None,
        active_only: bool = True,
    ) -> Sequence[Timetable]:
        clauses = ["1=1"]
        params: list[object] = []
        if active_only:
            clauses.append("is_active=1")
        if branch_id is not None:
            clauses.append("branch_id=%s")
            params.append(int(branch_id))
        if semester is not None:
            clauses.append("semester=%s")
            params.append(int(semester))
        if academic_year:
            clauses.append("academic_year=%s")
            params.append(academic_year)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timetables WHERE {where} ORDER BY branch_id ASC, semester ASC, version DESC",
                tuple(params),
            )
            return [_row_to_timetable(r) for r in fetchall(cur)]

    def list_versions(self, *, branch_id: int, semester: int, academic_year: Optional[str] = None) -> Sequence[Timetable]:
        clauses = ["branch_id=%s", "semester=%s"]
        params: list[object] = [int(branch_id), int(semester)]
        if academic_year:
            clauses.append("academic_year=%s")
            params.append(academic_year)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM timetables WHERE {where} ORDER BY academic_year DESC, version DESC",
                tuple(params),
            )
            return [_row_to_timetable(r) for r in fetchall(cur)]

    def max_version(self, *, branch_id: int, semester: int, academic_year: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT COALESCE(MAX(version), 0) AS max_version
                FROM timetables
                WHERE branch_id=%s AND semester=%s AND academic_year=%s
                """,
                (int(branch_id), int(semester), academic_year),
            )
            r = fetchone(cur)
            return int(r["max_version"]) if r else 0

    def create(self, timetable: Timetable) -> int:
        with unique_guard(_DUPLICATE_VERSION), db_cursor(self._conn_factory) as (_, cur):
            return _insert(cur, timetable)

    def save(self, timetable: Timetable) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timetables
                SET schedule=%s, notes=%s, effective_from=%s, effective_to=%s, is_active=%s,
                    revision=revision+1
                WHERE timetable_id=%s AND revision=%s
                """,
                (
                    dump_json(schedule_to_document(timetable.schedule)),
                    timetable.notes,
                    timetable.effective_from,
                    timetable.effective_to,
                    1 if timetable.is_active else 0,
                    timetable.timetable_id,
                    timetable.revision,
                ),
            )
            if cur.rowcount == 0:
                raise ConflictError(_STALE)
        timetable.revision += 1

    def supersede(self, current: Timetable, successor: Timetable) -> int:
        # Deactivate + insert commit together or not at all.
        with unique_guard(_DUPLICATE_VERSION), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timetables
                SET is_active=0, effective_to=%s, revision=revision+1
                WHERE timetable_id=%s AND revision=%s AND is_active=1
                """,
                (current.effective_to, current.timetable_id, current.revision),
            )
            if cur.rowcount == 0:
                raise ConflictError("Timetable was already superseded or modified, reload and try again")
            new_id = _insert(cur, successor)
        current.revision += 1
        return new_id

    def delete(self, timetable_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM timetables WHERE timetable_id=%s", (int(timetable_id),))
            return cur.rowcount > 0
