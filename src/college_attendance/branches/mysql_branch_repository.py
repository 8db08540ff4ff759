from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, unique_guard
from .model import Branch, HeadOfDepartment
from .repository import BranchRepository

_COLUMNS = """
    branch_id, name, code, department, total_semesters, is_active, description,
    established_year, hod_name, hod_email, hod_phone
"""


def _row_to_branch(r: dict) -> Branch:
    return Branch(
        branch_id=int(r["branch_id"]),
        name=r["name"],
        code=r["code"],
        department=r["department"],
        total_semesters=int(r["total_semesters"]),
        is_active=bool(r["is_active"]),
        description=r.get("description"),
        established_year=int(r["established_year"]) if r.get("established_year") else None,
        head_of_department=HeadOfDepartment(
            name=r.get("hod_name"),
            email=r.get("hod_email"),
            phone=r.get("hod_phone"),
        ),
    )


class MySQLBranchRepository(BranchRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _get_one(self, where: str, value) -> Optional[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM branches WHERE {where}=%s", (value,))
            r = fetchone(cur)
            return _row_to_branch(r) if r else None

    def get_by_id(self, branch_id: int) -> Optional[Branch]:
        return self._get_one("branch_id", int(branch_id))

    def get_by_code(self, code: str) -> Optional[Branch]:
        return self._get_one("code", code.upper())

    def get_by_name(self, name: str) -> Optional[Branch]:
        return self._get_one("name", name)

    def list_active(self) -> Sequence[Branch]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM branches WHERE is_active=1 ORDER BY name ASC")
            return [_row_to_branch(r) for r in fetchall(cur)]

    def create(self, branch: Branch) -> int:
        hod = branch.head_of_department
        with unique_guard("Branch name or code already exists"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO branches(name, code, department, total_semesters, is_active, description,
                                     established_year, hod_name, hod_email, hod_phone)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    branch.name,
                    branch.code,
                    branch.department,
                    branch.total_semesters,
                    1 if branch.is_active else 0,
                    branch.description,
                    branch.established_year,
                    hod.name,
                    hod.email,
                    hod.phone,
                ),
            )
            return int(cur.lastrowid)

    def update(self, branch: Branch) -> bool:
        hod = branch.head_of_department
        with unique_guard("Branch name or code already exists"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE branches
                SET name=%s, code=%s, department=%s, total_semesters=%s, is_active=%s, description=%s,
                    established_year=%s, hod_name=%s, hod_email=%s, hod_phone=%s
                WHERE branch_id=%s
                """,
                (
                    branch.name,
                    branch.code,
                    branch.department,
                    branch.total_semesters,
                    1 if branch.is_active else 0,
                    branch.description,
                    branch.established_year,
                    hod.name,
                    hod.email,
                    hod.phone,
                    branch.branch_id,
                ),
            )
            # 0 affected rows when nothing changed; existence is checked by the service
            return cur.rowcount >= 0

    def set_active(self, branch_id: int, is_active: bool) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("UPDATE branches SET is_active=%s WHERE branch_id=%s", (1 if is_active else 0, int(branch_id)))
            return cur.rowcount > 0
