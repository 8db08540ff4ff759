"""Attendance aggregation helpers (pure functions over records)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Hashable, Iterable, TypeVar

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord

K = TypeVar("K", bound=Hashable)


def percentage(part: int, total: int) -> float:
    """part/total as a percentage rounded to 2 places; 0 when total is 0."""
    if total <= 0:
        return 0.0
    return round(part / total * 100, 2)


@dataclass(frozen=True)
class AttendanceTally:
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0

    @property
    def percentage(self) -> float:
        return percentage(self.present, self.total)

    def add(self, status: AttendanceStatus) -> "AttendanceTally":
        return AttendanceTally(
            total=self.total + 1,
            present=self.present + (status == AttendanceStatus.PRESENT),
            absent=self.absent + (status == AttendanceStatus.ABSENT),
            late=self.late + (status == AttendanceStatus.LATE),
        )

    def to_dict(self) -> dict:
        return {
            "totalClasses": self.total,
            "presentCount": self.present,
            "absentCount": self.absent,
            "lateCount": self.late,
            "attendancePercentage": self.percentage,
        }


def tally(records: Iterable[AttendanceRecord]) -> AttendanceTally:
    result = AttendanceTally()
    for r in records:
        result = result.add(r.status)
    return result


def tally_by(records: Iterable[AttendanceRecord], key: Callable[[AttendanceRecord], K]) -> dict[K, AttendanceTally]:
    groups: dict[K, AttendanceTally] = {}
    for r in records:
        k = key(r)
        groups[k] = groups.get(k, AttendanceTally()).add(r.status)
    return groups


def daily_trend(records: Iterable[AttendanceRecord]) -> list[dict]:
    """Per-day totals, oldest day first."""
    by_day: dict[date, AttendanceTally] = tally_by(records, lambda r: r.class_date)
    return [
        {
            "date": day.isoformat(),
            "totalClasses": t.total,
            "presentCount": t.present,
            "attendancePercentage": t.percentage,
        }
        for day, t in sorted(by_day.items())
    ]


def monthly_trend(records: Iterable[AttendanceRecord]) -> list[dict]:
    """Per-month totals keyed "YYYY-MM", oldest month first."""
    by_month = tally_by(records, lambda r: r.class_date.strftime("%Y-%m"))
    return [
        {
            "month": month,
            "totalClasses": t.total,
            "presentCount": t.present,
            "attendancePercentage": t.percentage,
        }
        for month, t in sorted(by_month.items())
    ]
