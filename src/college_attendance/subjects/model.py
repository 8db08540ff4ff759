from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.constants import DEFAULT_MINIMUM_ATTENDANCE
from ..core.enums import SubjectType


@dataclass(frozen=True)
class Faculty:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None

    def to_dict(self) -> dict:
        return {"name": self.name, "email": self.email, "phone": self.phone, "department": self.department}


@dataclass(frozen=True)
class Subject:
    """A course offered to one branch in one semester.

    (code, branch_id, semester) is unique.
    """

    subject_id: int
    name: str
    code: str
    branch_id: int
    semester: int
    credits: int
    type: SubjectType
    faculty: Faculty
    description: Optional[str] = None
    minimum_attendance: int = DEFAULT_MINIMUM_ATTENDANCE
    room: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.subject_id,
            "name": self.name,
            "code": self.code,
            "branch": self.branch_id,
            "semester": self.semester,
            "credits": self.credits,
            "type": self.type.value,
            "faculty": self.faculty.to_dict(),
            "description": self.description,
            "minimumAttendance": self.minimum_attendance,
            "room": self.room,
            "isActive": self.is_active,
        }

    def to_ref(self) -> dict:
        """Short form embedded in timetable/attendance responses."""
        return {"id": self.subject_id, "name": self.name, "code": self.code}
