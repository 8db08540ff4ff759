from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ..common.validators import (
    EMAIL_RE,
    PHONE_RE,
    FieldErrors,
    optional_pattern,
    optional_text,
    require_int_range,
    require_max_length,
    require_non_empty,
)
from ..core.constants import DEFAULT_TOTAL_SEMESTERS, MAX_SEMESTER, MIN_SEMESTER
from ..core.enums import Role
from ..core.exceptions import AuthorizationError, NotFoundError
from ..users.model import User
from ..users.repository import UserRepository
from .model import Branch, HeadOfDepartment
from .repository import BranchRepository

logger = logging.getLogger(__name__)


class BranchService:
    """Use case: browse and maintain the branch registry."""

    def __init__(self, branches: BranchRepository, users: UserRepository):
        self._branches = branches
        self._users = users

    def list_active(self) -> Sequence[Branch]:
        return self._branches.list_active()

    def list_with_counts(self) -> list[dict]:
        """Active branches, each with the number of active students enrolled."""
        counts = self._users.count_students_by_branch()
        return [{**b.to_dict(), "totalStudents": counts.get(b.branch_id, 0)} for b in self._branches.list_active()]

    def get(self, branch_id: int) -> Branch:
        branch = self._branches.get_by_id(int(branch_id))
        if not branch:
            raise NotFoundError("Branch not found")
        return branch

    def students_by_semester(self, *, current_role: Role, branch_id: int, semester) -> Sequence[User]:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        branch = self.get(branch_id)
        semester = require_int_range(semester, "Semester", MIN_SEMESTER, branch.total_semesters)
        return self._users.list_students(branch_id=branch.branch_id, semester=semester)

    def get_by_code(self, code: str) -> Branch:
        branch = self._branches.get_by_code((code or "").strip().upper())
        if not branch:
            raise NotFoundError("Branch not found")
        return branch

    def resolve(self, code_or_name: str) -> Optional[Branch]:
        """Find an active branch by code (case-insensitive) or exact name."""
        value = (code_or_name or "").strip()
        if not value:
            return None
        branch = self._branches.get_by_code(value.upper()) or self._branches.get_by_name(value)
        if branch and branch.is_active:
            return branch
        return None

    def create(self, *, current_role: Role, data: dict, today: Optional[date] = None) -> Branch:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        branch = self._build(data, branch_id=0, today=today or date.today())
        branch_id = self._branches.create(branch)
        logger.info("Created branch %s (%s)", branch.code, branch_id)
        return replace(branch, branch_id=branch_id)

    def update(self, *, current_role: Role, branch_id: int, data: dict, today: Optional[date] = None) -> Branch:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        existing = self.get(branch_id)
        merged = {**_branch_to_input(existing), **data}
        branch = self._build(merged, branch_id=existing.branch_id, today=today or date.today())
        branch = replace(branch, is_active=bool(merged.get("isActive", existing.is_active)))
        self._branches.update(branch)
        return branch

    def deactivate(self, *, current_role: Role, branch_id: int) -> None:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")

        self.get(branch_id)
        self._branches.set_active(int(branch_id), False)
        logger.info("Deactivated branch %s", branch_id)

    @staticmethod
    def _build(data: dict, *, branch_id: int, today: date) -> Branch:
        errors = FieldErrors()
        name = errors.check(require_non_empty, data.get("name"), "Branch name")
        if name:
            errors.check(require_max_length, name, "Branch name", 100)
        code = errors.check(require_non_empty, data.get("code"), "Branch code")
        if code:
            code = code.upper()
            errors.check(require_max_length, code, "Branch code", 10)
        department = errors.check(require_non_empty, data.get("department"), "Department")
        if department:
            errors.check(require_max_length, department, "Department", 100)
        total_semesters = errors.check(
            require_int_range,
            data.get("totalSemesters", DEFAULT_TOTAL_SEMESTERS),
            "Total semesters",
            MIN_SEMESTER,
            MAX_SEMESTER,
        )
        description = optional_text(data.get("description"))
        errors.check(require_max_length, description, "Description", 500)

        established_year = None
        if data.get("establishedYear") not in (None, ""):
            established_year = errors.check(
                require_int_range, data.get("establishedYear"), "Established year", 1900, today.year
            )

        hod_raw = data.get("headOfDepartment") or {}
        if not isinstance(hod_raw, dict):
            errors.add("Head of department must be an object")
            hod_raw = {}
        hod = HeadOfDepartment(
            name=optional_text(hod_raw.get("name")),
            email=errors.check(optional_pattern, hod_raw.get("email"), EMAIL_RE, "email"),
            phone=errors.check(optional_pattern, hod_raw.get("phone"), PHONE_RE, "10-digit phone number"),
        )
        errors.raise_if_any("Invalid branch")

        return Branch(
            branch_id=branch_id,
            name=name,
            code=code,
            department=department,
            total_semesters=total_semesters,
            description=description,
            established_year=established_year,
            head_of_department=hod,
        )


def _branch_to_input(branch: Branch) -> dict:
    return {
        "name": branch.name,
        "code": branch.code,
        "department": branch.department,
        "totalSemesters": branch.total_semesters,
        "description": branch.description,
        "establishedYear": branch.established_year,
        "headOfDepartment": branch.head_of_department.to_dict(),
    }
