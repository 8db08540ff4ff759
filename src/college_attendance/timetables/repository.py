from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import Timetable


class TimetableRepository(Protocol):
    def get_by_id(self, timetable_id: int) -> Optional[Timetable]:
        raise NotImplementedError

    def find_current(self, *, branch_id: int, semester: int, now: datetime) -> Optional[Timetable]:
        """Active timetable whose effective window contains ``now``.

        If several match, the highest version wins.
        """

        raise NotImplementedError

    def find_active(self, *, branch_id: int, semester: int, academic_year: str) -> Optional[Timetable]:
        raise NotImplementedError

    def list(
        self,
        *,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
        academic_year: Optional[str] = None,
        active_only: bool = True,
    ) -> Sequence[Timetable]:
        raise NotImplementedError

    def list_versions(self, *, branch_id: int, semester: int, academic_year: Optional[str] = None) -> Sequence[Timetable]:
        """All versions, newest first."""

        raise NotImplementedError

    def max_version(self, *, branch_id: int, semester: int, academic_year: str) -> int:
        """Highest version for the key, 0 when there is none."""

        raise NotImplementedError

    def create(self, timetable: Timetable) -> int:
        """Insert and return timetable_id. Duplicate version -> ConflictError."""

        raise NotImplementedError

    def save(self, timetable: Timetable) -> None:
        """Persist schedule/notes/dates/is_active if ``timetable.revision`` is still current.

        Bumps ``timetable.revision`` on success; a stale revision raises ConflictError.
        """

        raise NotImplementedError

    def supersede(self, current: Timetable, successor: Timetable) -> int:
        """Atomically deactivate ``current`` (revision-checked) and insert ``successor``.

        Returns the new timetable_id. Raises ConflictError if ``current`` changed or
        was already superseded, or if the successor's version is taken.
        """

        raise NotImplementedError

    def delete(self, timetable_id: int) -> bool:
        raise NotImplementedError
