from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Sequence

from ..branches.repository import BranchRepository
from ..common.validators import (
    EMAIL_RE,
    PHONE_RE,
    FieldErrors,
    optional_pattern,
    optional_text,
    require_choice,
    require_int_range,
    require_max_length,
    require_non_empty,
)
from ..core.constants import DEFAULT_MINIMUM_ATTENDANCE, MAX_SEMESTER, MIN_SEMESTER
from ..core.enums import Role, SubjectType
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .model import Faculty, Subject
from .repository import SubjectRepository

logger = logging.getLogger(__name__)


class SubjectService:
    """Use case: subject catalogue per branch/semester."""

    def __init__(self, subjects: SubjectRepository, branches: BranchRepository):
        self._subjects = subjects
        self._branches = branches

    def list(self, *, branch_id: Optional[int] = None, semester: Optional[int] = None) -> Sequence[Subject]:
        return self._subjects.list(branch_id=branch_id, semester=semester)

    def get(self, subject_id: int) -> Subject:
        subject = self._subjects.get_by_id(int(subject_id))
        if not subject:
            raise NotFoundError("Subject not found")
        return subject

    def list_by_faculty(self, faculty_email) -> Sequence[Subject]:
        errors = FieldErrors()
        email = errors.check(require_non_empty, faculty_email, "Faculty email")
        if email:
            errors.check(optional_pattern, email, EMAIL_RE, "faculty email")
        errors.raise_if_any("Invalid faculty email")
        return self._subjects.list_by_faculty(email.lower())

    def create(self, *, current_role: Role, data: dict) -> Subject:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        subject = self._build(data, subject_id=0)
        subject_id = self._subjects.create(subject)
        logger.info("Created subject %s (branch=%s, semester=%s)", subject.code, subject.branch_id, subject.semester)
        return replace(subject, subject_id=subject_id)

    def update(self, *, current_role: Role, subject_id: int, data: dict) -> Subject:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        existing = self.get(subject_id)
        merged = {**_subject_to_input(existing), **data}
        subject = replace(self._build(merged, subject_id=existing.subject_id), is_active=existing.is_active)
        self._subjects.update(subject)
        return subject

    def deactivate(self, *, current_role: Role, subject_id: int) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        self.get(subject_id)
        self._subjects.set_active(int(subject_id), False)
        logger.info("Deactivated subject %s", subject_id)

    def _build(self, data: dict, *, subject_id: int) -> Subject:
        errors = FieldErrors()
        name = errors.check(require_non_empty, data.get("name"), "Subject name")
        if name:
            errors.check(require_max_length, name, "Subject name", 100)
        code = errors.check(require_non_empty, data.get("code"), "Subject code")
        if code:
            code = code.upper()
            errors.check(require_max_length, code, "Subject code", 20)
        semester = errors.check(require_int_range, data.get("semester"), "Semester", MIN_SEMESTER, MAX_SEMESTER)
        credits = errors.check(require_int_range, data.get("credits"), "Credits", 1, 10)
        subject_type = errors.check(require_choice, data.get("type") or SubjectType.THEORY.value, SubjectType, "Subject type")
        minimum = errors.check(
            require_int_range, data.get("minimumAttendance", DEFAULT_MINIMUM_ATTENDANCE), "Minimum attendance", 0, 100
        )
        room = optional_text(data.get("room"))
        errors.check(require_max_length, room, "Room", 20)
        description = optional_text(data.get("description"))
        errors.check(require_max_length, description, "Description", 500)

        faculty_raw = data.get("faculty") or {}
        if not isinstance(faculty_raw, dict):
            errors.add("Faculty must be an object")
            faculty_raw = {}
        faculty_name = errors.check(require_non_empty, faculty_raw.get("name"), "Faculty name")
        faculty_email = errors.check(optional_pattern, faculty_raw.get("email"), EMAIL_RE, "faculty email")
        if faculty_email:
            faculty_email = faculty_email.lower()
        faculty_phone = errors.check(optional_pattern, faculty_raw.get("phone"), PHONE_RE, "faculty phone number")

        branch_id = data.get("branch")
        if branch_id in (None, ""):
            errors.add("Branch is required")
        else:
            try:
                branch_id = int(branch_id)
            except (TypeError, ValueError):
                errors.add("Branch must be a number")
                branch_id = None
        errors.raise_if_any("Invalid subject")

        branch = self._branches.get_by_id(branch_id)
        if not branch:
            raise ValidationError("Branch does not exist")
        if semester > branch.total_semesters:
            raise ValidationError(f"Semester must be between 1 and {branch.total_semesters} for {branch.code}")

        return Subject(
            subject_id=subject_id,
            name=name,
            code=code,
            branch_id=branch_id,
            semester=semester,
            credits=credits,
            type=subject_type,
            faculty=Faculty(
                name=faculty_name,
                email=faculty_email,
                phone=faculty_phone,
                department=optional_text(faculty_raw.get("department")),
            ),
            description=description,
            minimum_attendance=minimum,
            room=room,
        )


def _subject_to_input(subject: Subject) -> dict:
    return {
        "name": subject.name,
        "code": subject.code,
        "branch": subject.branch_id,
        "semester": subject.semester,
        "credits": subject.credits,
        "type": subject.type.value,
        "faculty": subject.faculty.to_dict(),
        "description": subject.description,
        "minimumAttendance": subject.minimum_attendance,
        "room": subject.room,
    }
