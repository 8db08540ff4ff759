from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, placeholders, unique_guard
from .model import User
from .repository import UserRepository

_COLUMNS = """
    user_id, name, email, phone, password_hash, role, student_id, branch_id, semester, is_active, last_login
"""


def _row_to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        name=row["name"],
        email=row["email"],
        phone=row.get("phone"),
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        student_id=row.get("student_id"),
        branch_id=row.get("branch_id"),
        semester=row.get("semester"),
        is_active=bool(row.get("is_active", True)),
        last_login=row.get("last_login"),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE email=%s", (email.lower(),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = sorted({int(i) for i in user_ids})
        if not ids:
            return {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({placeholders(len(ids))})", tuple(ids))
            return {u.user_id: u for u in map(_row_to_user, fetchall(cur))}

    def student_id_exists(self, student_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT 1 AS found FROM users WHERE student_id=%s", (student_id,))
            return fetchone(cur) is not None

    def create_user(self, user: User) -> int:
        with unique_guard("User with this email already exists"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(name, email, phone, password_hash, role, student_id, branch_id, semester, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (
                    user.name,
                    user.email,
                    user.phone,
                    user.password_hash,
                    user.role.value,
                    user.student_id,
                    user.branch_id,
                    user.semester,
                ),
            )
            return int(cur.lastrowid)

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET last_login=%s WHERE user_id=%s", (at, int(user_id)))

    def list_students(self, *, branch_id: Optional[int] = None, semester: Optional[int] = None) -> Sequence[User]:
        clauses = ["role='student'", "is_active=1"]
        params: list[object] = []
        if branch_id is not None:
            clauses.append("branch_id=%s")
            params.append(int(branch_id))
        if semester is not None:
            clauses.append("semester=%s")
            params.append(int(semester))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM users WHERE {where} ORDER BY name ASC", tuple(params))
            return [_row_to_user(r) for r in fetchall(cur)]

    def update_profile(self, user: User) -> bool:
        with unique_guard("User with this email already exists"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE users SET name=%s, email=%s, phone=%s WHERE user_id=%s",
                (user.name, user.email, user.phone, int(user.user_id)),
            )
            return cur.rowcount >= 0

    def update_password(self, user_id: int, password_hash: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE users SET password_hash=%s WHERE user_id=%s", (password_hash, int(user_id)))
            return cur.rowcount > 0

    def count_students_by_branch(self) -> dict[int, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT branch_id, COUNT(*) AS cnt
                FROM users
                WHERE role='student' AND is_active=1 AND branch_id IS NOT NULL
                GROUP BY branch_id
                """
            )
            return {int(r["branch_id"]): int(r["cnt"]) for r in fetchall(cur)}
