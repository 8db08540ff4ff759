from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import SubjectType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders, unique_guard
from .model import Faculty, Subject
from .repository import SubjectRepository

_COLUMNS = """
    subject_id, name, code, branch_id, semester, credits, type, faculty_name, faculty_email,
    faculty_phone, faculty_department, description, minimum_attendance, room, is_active
"""

_DUPLICATE = "Subject code already exists for this branch and semester"


def _row_to_subject(r: dict) -> Subject:
    return Subject(
        subject_id=int(r["subject_id"]),
        name=r["name"],
        code=r["code"],
        branch_id=int(r["branch_id"]),
        semester=int(r["semester"]),
        credits=int(r["credits"]),
        type=SubjectType(r["type"]),
        faculty=Faculty(
            name=r["faculty_name"],
            email=r.get("faculty_email"),
            phone=r.get("faculty_phone"),
            department=r.get("faculty_department"),
        ),
        description=r.get("description"),
        minimum_attendance=int(r["minimum_attendance"]),
        room=r.get("room"),
        is_active=bool(r["is_active"]),
    )


def _params(s: Subject) -> tuple:
    return (
        s.name,
        s.code,
        s.branch_id,
        s.semester,
        s.credits,
        s.type.value,
        s.faculty.name,
        s.faculty.email,
        s.faculty.phone,
        s.faculty.department,
        s.description,
        s.minimum_attendance,
        s.room,
        1 if s.is_active else 0,
    )


class MySQLSubjectRepository(SubjectRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects WHERE subject_id=%s", (int(subject_id),))
            r = fetchone(cur)
            return _row_to_subject(r) if r else None

    def get_many(self, subject_ids: Iterable[int]) -> dict[int, Subject]:
        ids = sorted({int(i) for i in subject_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects WHERE subject_id IN ({placeholders(len(ids))})", tuple(ids))
            return {s.subject_id: s for s in map(_row_to_subject, fetchall(cur))}

    def list(self, *, branch_id: Optional[int] = None, semester: Optional[int] = None, active_only: bool = True) -> Sequence[Subject]:
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

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM subjects WHERE {where} ORDER BY semester ASC, code ASC", tuple(params))
            return [_row_to_subject(r) for r in fetchall(cur)]

    def list_by_faculty(self, faculty_email: str) -> Sequence[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM subjects WHERE LOWER(faculty_email)=%s AND is_active=1 ORDER BY semester ASC, code ASC",
                (faculty_email.lower(),),
            )
            return [_row_to_subject(r) for r in fetchall(cur)]

    def create(self, subject: Subject) -> int:
        with unique_guard(_DUPLICATE), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO subjects(name, code, branch_id, semester, credits, type, faculty_name, faculty_email,
                                     faculty_phone, faculty_department, description, minimum_attendance, room, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                _params(subject),
            )
            return int(cur.lastrowid)

    def update(self, subject: Subject) -> bool:
        with unique_guard(_DUPLICATE), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE subjects
                SET name=%s, code=%s, branch_id=%s, semester=%s, credits=%s, type=%s, faculty_name=%s,
                    faculty_email=%s, faculty_phone=%s, faculty_department=%s, description=%s,
                    minimum_attendance=%s, room=%s, is_active=%s
                WHERE subject_id=%s
                """,
                _params(subject) + (subject.subject_id,),
            )
            return cur.rowcount >= 0

    def set_active(self, subject_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE subjects SET is_active=%s WHERE subject_id=%s", (1 if is_active else 0, int(subject_id)))
            return cur.rowcount > 0
