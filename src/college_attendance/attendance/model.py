from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional

from ..core.constants import DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS
from ..core.enums import AttendanceStatus, ClassType


@dataclass(frozen=True)
class ModificationEntry:
    previous_status: AttendanceStatus
    new_status: AttendanceStatus
    modified_by: int
    modified_at: datetime
    reason: str

    def to_document(self) -> dict:
        return {
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "modified_by": self.modified_by,
            "modified_at": self.modified_at.isoformat(),
            "reason": self.reason,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "ModificationEntry":
        return cls(
            previous_status=AttendanceStatus(doc["previous_status"]),
            new_status=AttendanceStatus(doc["new_status"]),
            modified_by=int(doc["modified_by"]),
            modified_at=datetime.fromisoformat(doc["modified_at"]),
            reason=doc.get("reason") or "",
        )

    def to_dict(self) -> dict:
        return {
            "previousStatus": self.previous_status.value,
            "newStatus": self.new_status.value,
            "modifiedBy": self.modified_by,
            "modifiedAt": self.modified_at.isoformat(),
            "reason": self.reason,
        }


@dataclass
class AttendanceRecord:
    """One student's mark for one class occurrence.

    Unique per (student_id, subject_id, class_date, start_time). Status changes go
    through :meth:`modify_status`, which appends to ``modification_history``.
    """

    attendance_id: int
    student_id: int
    subject_id: int
    class_date: date
    start_time: str
    end_time: str
    status: AttendanceStatus
    marked_by: int
    marked_at: datetime
    academic_year: str
    class_type: ClassType = ClassType.LECTURE
    room: Optional[str] = None
    notes: Optional[str] = None
    is_modified: bool = False
    modification_history: list[ModificationEntry] = field(default_factory=list)

    def modify_status(
        self,
        new_status: AttendanceStatus,
        modified_by: int,
        reason: Optional[str] = None,
        *,
        now: datetime,
    ) -> bool:
        """Change status and record the change. Returns False (and records nothing) if unchanged."""
        if new_status == self.status:
            return False

        self.modification_history.append(
            ModificationEntry(
                previous_status=self.status,
                new_status=new_status,
                modified_by=modified_by,
                modified_at=now,
                reason=reason or "Status updated",
            )
        )
        self.status = new_status
        self.is_modified = True
        return True

    def can_modify(self, now: datetime, window_days: int = DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS) -> bool:
        """Whether the record is still inside the edit window.

        Only computes eligibility; callers decide whether to refuse the write.
        """
        elapsed = now - datetime.combine(self.class_date, time.min)
        days = math.ceil(elapsed.total_seconds() / 86400)
        return days <= window_days

    @property
    def is_late_marked(self) -> bool:
        hours, minutes = (int(p) for p in self.end_time.split(":"))
        return self.marked_at > datetime.combine(self.class_date, time(hours, minutes))

    def to_dict(self, *, subject=None, student=None) -> dict:
        return {
            "id": self.attendance_id,
            "student": {"id": student.user_id, "name": student.name, "studentId": student.student_id}
            if student
            else self.student_id,
            "subject": subject.to_ref() if subject else self.subject_id,
            "date": self.class_date.isoformat(),
            "startTime": self.start_time,
            "endTime": self.end_time,
            "status": self.status.value,
            "markedBy": self.marked_by,
            "markedAt": self.marked_at.isoformat(),
            "classType": self.class_type.value,
            "room": self.room,
            "notes": self.notes,
            "isModified": self.is_modified,
            "isLateMarked": self.is_late_marked,
            "modificationHistory": [m.to_dict() for m in self.modification_history],
            "academicYear": self.academic_year,
        }
