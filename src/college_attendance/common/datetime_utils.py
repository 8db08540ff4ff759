from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from ..core.constants import ACADEMIC_YEAR_START_MONTH
from ..core.exceptions import ValidationError

_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")
_ACADEMIC_YEAR_RE = re.compile(r"^\d{4}-\d{4}$")

ONE_MILLISECOND = timedelta(milliseconds=1)


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def to_local_naive(moment: datetime, tz_name: Optional[str] = None) -> datetime:
    """Wall-clock time of an aware ``moment`` in ``tz_name`` (server local when empty)."""
    if moment.tzinfo is None:
        return moment
    local = moment.astimezone(ZoneInfo(tz_name)) if tz_name else moment.astimezone()
    return local.replace(tzinfo=None)


def parse_iso_datetime(value: str, tz_name: Optional[str] = None) -> datetime:
    """Parse an ISO-8601 datetime (a bare date means midnight).

    Input with an offset ("Z", "+05:30") is converted to the wall clock of
    ``tz_name`` so it compares correctly with :func:`now_local`.
    """
    try:
        if len(value) == 10:
            return datetime.combine(parse_iso_date(value), datetime.min.time())
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid datetime {value!r}")
    return to_local_naive(moment, tz_name)


def normalize_hhmm(value, field_name: str = "time") -> str:
    """Validate an "HH:MM" 24-hour time and zero-pad the hour.

    Slot times are compared as strings, so they must be fixed width.
    """
    m = _TIME_RE.match("" if value is None else str(value).strip())
    if not m:
        raise ValidationError(f"{field_name} must be a valid time in HH:MM format")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def format_hhmm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def is_academic_year(value: str) -> bool:
    return bool(value and _ACADEMIC_YEAR_RE.match(value))


def academic_year_for(day: date) -> str:
    """Academic year label (YYYY-YYYY) containing ``day``."""
    if day.month >= ACADEMIC_YEAR_START_MONTH:
        return f"{day.year}-{day.year + 1}"
    return f"{day.year - 1}-{day.year}"


def now_local(tz_name: Optional[str] = None) -> datetime:
    """Current wall-clock time as a naive datetime.

    With ``tz_name`` the time is taken in that zone, otherwise server local.
    Wrapped so services can receive it as a clock and tests can pin it.
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)
    return datetime.now()


def make_clock(tz_name: Optional[str] = None):
    def clock() -> datetime:
        return now_local(tz_name)

    return clock


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Local midnight-to-midnight window for one calendar day."""
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1) - ONE_MILLISECOND


def isoformat_or_none(value) -> Optional[str]:
    return value.isoformat() if value is not None else None
