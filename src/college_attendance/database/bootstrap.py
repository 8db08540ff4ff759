from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable

from werkzeug.security import generate_password_hash

from ..common.datetime_utils import academic_year_for
from ..timetables.model import DaySchedule, TimeSlot, schedule_to_document
from .connection import DatabaseConnection, DBConfig
from .mysql_base import dump_json

logger = logging.getLogger(__name__)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_line_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def _iter_sql_statements(sql: str) -> Iterable[str]:
    # Minimal SQL splitter for schema/seed files (handles ';' inside quotes).
    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            continue

        if ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _exec_sql_file(db_config: dict, path: str | Path) -> None:
    sql = Path(path).read_text(encoding="utf-8")
    sql = _strip_line_comments(_strip_create_db_and_use(sql))

    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        for stmt in _iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = DatabaseConnection(target).connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    _exec_sql_file(db_config, schema_path)
    logger.info("Applied schema %s", schema_path)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    _exec_sql_file(db_config, seed_path)
    logger.info("Applied seed %s", seed_path)


def ensure_demo_data(db_config: dict, *, now: datetime | None = None) -> None:
    """Upsert demo accounts and a CE semester-3 timetable.

    Requires the reference rows from seed.sql (branch CE, subjects CE301/CE302).
    """

    now = now or datetime.now()
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor(dictionary=True)

        cur.execute("SELECT branch_id FROM branches WHERE code=%s", ("CE",))
        row = cur.fetchone()
        if not row:
            raise RuntimeError("Missing branch CE, apply seed.sql first")
        ce_branch = int(row["branch_id"])

        subject_ids: dict[str, int] = {}
        for code in ("CE301", "CE302"):
            cur.execute("SELECT subject_id FROM subjects WHERE code=%s AND branch_id=%s AND semester=3", (code, ce_branch))
            r = cur.fetchone()
            if not r:
                raise RuntimeError(f"Missing subject {code}, apply seed.sql first")
            subject_ids[code] = int(r["subject_id"])

        def upsert_user(name: str, email: str, password: str, role: str, **student) -> None:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            if cur.fetchone():
                cur.execute(
                    "UPDATE users SET name=%s, password_hash=%s, role=%s, is_active=1 WHERE email=%s",
                    (name, password_hash, role, email),
                )
                return
            cur.execute(
                """
                INSERT INTO users (name, email, password_hash, role, student_id, branch_id, semester)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    name,
                    email,
                    password_hash,
                    role,
                    student.get("student_id"),
                    student.get("branch_id"),
                    student.get("semester"),
                ),
            )

        upsert_user("Admin Demo", "admin@college.edu", "admin123", "admin")
        upsert_user(
            "Student Demo",
            "student@college.edu",
            "student123",
            "student",
            student_id=f"CE{now:%y}0001",
            branch_id=ce_branch,
            semester=3,
        )

        academic_year = academic_year_for(now.date())
        cur.execute(
            "SELECT timetable_id FROM timetables WHERE branch_id=%s AND semester=3 AND academic_year=%s LIMIT 1",
            (ce_branch, academic_year),
        )
        if not cur.fetchone():
            schedule = [
                DaySchedule.of(
                    "Monday",
                    [TimeSlot.create(start_time="09:00", end_time="10:00", subject_id=subject_ids["CE301"], room="C-101")],
                ),
                DaySchedule.of(
                    "Wednesday",
                    [
                        TimeSlot.create(start_time="09:00", end_time="10:00", subject_id=subject_ids["CE301"], room="C-101"),
                        TimeSlot.create(
                            start_time="11:00", end_time="13:00", subject_id=subject_ids["CE302"], room="LAB-2", type="lab"
                        ),
                    ],
                ),
            ]
            cur.execute(
                """
                INSERT INTO timetables (branch_id, semester, academic_year, version, is_active, effective_from, schedule)
                VALUES (%s, 3, %s, 1, 1, %s, %s)
                """,
                (ce_branch, academic_year, now, dump_json(schedule_to_document(schedule))),
            )

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> list[str]:
    conn = DatabaseConnection(DBConfig.from_dict(db_config)).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
