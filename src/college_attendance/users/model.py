from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: User.

    Plain data object, no DB access. Students carry branch, semester and student_id.
    """

    user_id: int
    name: str
    email: str
    password_hash: str
    role: Role
    phone: Optional[str] = None
    student_id: Optional[str] = None
    branch_id: Optional[int] = None
    semester: Optional[int] = None
    is_active: bool = True
    last_login: Optional[datetime] = None

    @property
    def display_id(self) -> str:
        return self.student_id or self.email

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role.value,
            "studentId": self.student_id,
            "branch": self.branch_id,
            "semester": self.semester,
            "isActive": self.is_active,
            "lastLogin": self.last_login.isoformat() if self.last_login else None,
        }


@dataclass(frozen=True)
class Actor:
    """The logged-in user as stored in the Flask session."""

    user_id: int
    role: Role
    branch_id: Optional[int] = None
    semester: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
