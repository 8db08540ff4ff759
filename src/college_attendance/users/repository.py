from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        raise NotImplementedError

    def student_id_exists(self, student_id: str) -> bool:
        raise NotImplementedError

    def create_user(self, user: User) -> int:
        """Insert and return user_id. Raises ConflictError on duplicate email/student_id."""

        raise NotImplementedError

    def touch_last_login(self, user_id: int, at: datetime) -> None:
        raise NotImplementedError

    def list_students(self, *, branch_id: Optional[int] = None, semester: Optional[int] = None) -> Sequence[User]:
        raise NotImplementedError

    def update_profile(self, user: User) -> bool:
        """Persist name, email and phone. Raises ConflictError on a duplicate email."""

        raise NotImplementedError

    def update_password(self, user_id: int, password_hash: str) -> bool:
        raise NotImplementedError

    def count_students_by_branch(self) -> dict[int, int]:
        """Active students per branch_id."""

        raise NotImplementedError
