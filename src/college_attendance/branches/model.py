from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class HeadOfDepartment:
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email, "phone": self.phone}


@dataclass(frozen=True)
class Branch:
    """Academic branch (programme). Never hard-deleted, only deactivated."""

    branch_id: int
    name: str
    code: str
    department: str
    total_semesters: int = 8
    is_active: bool = True
    description: Optional[str] = None
    established_year: Optional[int] = None
    head_of_department: HeadOfDepartment = HeadOfDepartment()

    def to_dict(self) -> dict:
        return {
            "id": self.branch_id,
            "name": self.name,
            "code": self.code,
            "department": self.department,
            "totalSemesters": self.total_semesters,
            "isActive": self.is_active,
            "description": self.description,
            "establishedYear": self.established_year,
            "headOfDepartment": self.head_of_department.to_dict(),
        }
