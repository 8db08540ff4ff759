from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import Subject


class SubjectRepository(Protocol):
    def get_by_id(self, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def get_many(self, subject_ids: Iterable[int]) -> dict[int, Subject]:
        """Lookup by ids; missing ids are simply absent from the result."""

        raise NotImplementedError

    def list(self, *, branch_id: Optional[int] = None, semester: Optional[int] = None, active_only: bool = True) -> Sequence[Subject]:
        raise NotImplementedError

    def create(self, subject: Subject) -> int:
        """Insert and return subject_id. Raises ConflictError on a duplicate (code, branch, semester)."""

        raise NotImplementedError

    def update(self, subject: Subject) -> bool:
        raise NotImplementedError

    def set_active(self, subject_id: int, is_active: bool) -> bool:
        raise NotImplementedError

    def list_by_faculty(self, faculty_email: str) -> Sequence[Subject]:
        """Active subjects taught by the faculty member with this email."""

        raise NotImplementedError
