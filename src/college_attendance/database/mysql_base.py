from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import ConflictError
from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def unique_guard(message: str) -> Iterator[None]:
    """Translate a MySQL duplicate-key error into ConflictError."""
    try:
        yield
    except mysql.connector.IntegrityError as e:
        if getattr(e, "errno", None) == errorcode.ER_DUP_ENTRY:
            raise ConflictError(message) from e
        raise


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Unsupported JSON value type: {type(value)!r}")


def dump_json(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def load_json(value: Any, default: Any = None) -> Any:
    """Decode a JSON column.

    mysql-connector returns JSON columns as str (pure) or bytes (C ext).
    """

    if value is None or value == "":
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def placeholders(count: int) -> str:
    return ",".join(["%s"] * count)
