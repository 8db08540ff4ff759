from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def find_occurrence(
        self, *, student_id: int, subject_id: int, class_date: date, start_time: str
    ) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def create(self, record: AttendanceRecord) -> int:
        """Insert and return attendance_id. Duplicate occurrence -> ConflictError."""

        raise NotImplementedError

    def save_status(self, record: AttendanceRecord) -> None:
        """Persist status, is_modified and modification_history."""

        raise NotImplementedError

    def list_records(
        self,
        *,
        student_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Sequence[AttendanceRecord]:
        """Records filtered by the given keys, newest class first. Dates are inclusive."""

        raise NotImplementedError

    def count_by_status(self, day: date) -> dict[str, int]:
        """{status value: count} for one calendar day."""

        raise NotImplementedError
