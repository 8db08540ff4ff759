from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..branches.repository import BranchRepository
from ..common.validators import (
    EMAIL_RE,
    PHONE_RE,
    FieldErrors,
    optional_pattern,
    require_choice,
    require_int_range,
    require_max_length,
    require_min_length,
    require_non_empty,
)
from ..core.constants import MAX_SEMESTER, MIN_SEMESTER, STUDENT_ID_ATTEMPTS
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """What we store into Flask session after login."""

    user_id: int
    name: str
    role: Role
    branch_id: Optional[int]
    semester: Optional[int]


def generate_student_id(branch_code: str, year: int, rng: Callable[[int, int], int] = random.randint) -> str:
    """<BRANCHCODE><yy><4 random digits>, e.g. CE250042."""
    return f"{branch_code}{year % 100:02d}{rng(0, 9999):04d}"


class AuthService:
    """Use case: register and authenticate users."""

    def __init__(
        self,
        users: UserRepository,
        branches: BranchRepository,
        *,
        rng: Callable[[int, int], int] = random.randint,
    ):
        self._users = users
        self._branches = branches
        self._rng = rng

    def authenticate(self, email: str, password: str, *, now: Optional[datetime] = None) -> SessionUser:
        if not email or not password:
            raise ValidationError("Please provide email and password")

        user = self._users.get_by_email(email.strip().lower())
        if not user:
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated. Please contact administrator.")

        try:
            ok = check_password_hash(user.password_hash, password)
        except ValueError:
            # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
            ok = False

        if not ok:
            raise AuthenticationError("Invalid credentials")

        self._users.touch_last_login(user.user_id, now or datetime.now())
        logger.info("User %s logged in", user.user_id)

        return SessionUser(
            user_id=user.user_id,
            name=user.name,
            role=user.role,
            branch_id=user.branch_id,
            semester=user.semester,
        )

    def register(self, data: dict, *, current_role: Optional[Role] = None, today: Optional[date] = None) -> User:
        """Create an account. Only a logged-in admin may create another admin."""

        errors = FieldErrors()
        name = errors.check(require_non_empty, data.get("name"), "Name")
        if name:
            errors.check(require_max_length, name, "Name", 50)
        email = errors.check(require_non_empty, data.get("email"), "Email")
        if email:
            email = email.lower()
            errors.check(optional_pattern, email, EMAIL_RE, "email")
        password = str(data.get("password") or "")
        errors.check(require_min_length, password, "Password", 6)
        phone = errors.check(optional_pattern, data.get("phone"), PHONE_RE, "10-digit phone number")
        role = errors.check(require_choice, data.get("role") or Role.STUDENT.value, Role, "Role")

        semester = None
        branch_id = None
        if role == Role.STUDENT:
            if data.get("branch") in (None, "") or data.get("semester") in (None, ""):
                errors.add("Branch and semester are required for students")
            else:
                semester = errors.check(require_int_range, data.get("semester"), "Semester", MIN_SEMESTER, MAX_SEMESTER)
                try:
                    branch_id = int(data["branch"])
                except (TypeError, ValueError):
                    errors.add("Invalid branch selected")
        errors.raise_if_any("Registration failed")

        if role == Role.ADMIN and current_role != Role.ADMIN:
            raise AuthorizationError("Only administrators can create administrator accounts")

        if self._users.get_by_email(email):
            raise ConflictError("User with this email already exists")

        student_id = None
        if role == Role.STUDENT:
            branch = self._branches.get_by_id(branch_id)
            if not branch or not branch.is_active:
                raise ValidationError("Invalid branch selected")
            student_id = self._unique_student_id(branch.code, (today or date.today()).year)

        user = User(
            user_id=0,
            name=name,
            email=email,
            phone=phone,
            password_hash=generate_password_hash(password),
            role=role,
            student_id=student_id,
            branch_id=branch_id,
            semester=semester,
        )
        user_id = self._users.create_user(user)
        logger.info("Registered %s %s (%s)", role.value, user_id, student_id or email)
        return replace(user, user_id=user_id)

    def change_password(self, user_id: int, current_password, new_password) -> None:
        if not current_password or not new_password:
            raise ValidationError("Please provide current password and new password")

        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        try:
            ok = check_password_hash(user.password_hash, str(current_password))
        except ValueError:
            ok = False
        if not ok:
            raise ValidationError("Current password is incorrect")

        new_password = require_min_length(str(new_password), "Password", 6)

        self._users.update_password(user.user_id, generate_password_hash(new_password))
        logger.info("User %s changed password", user.user_id)

    def _unique_student_id(self, branch_code: str, year: int) -> str:
        for _ in range(STUDENT_ID_ATTEMPTS):
            candidate = generate_student_id(branch_code, year, self._rng)
            if not self._users.student_id_exists(candidate):
                return candidate
        raise ConflictError("Could not allocate a unique student id, please retry")


class UserService:
    """Use case: look up users (profile, student lists)."""

    def __init__(self, users: UserRepository):
        self._users = users

    def get(self, user_id: int) -> User:
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_students(
        self,
        *,
        current_role: Role,
        branch_id: Optional[int] = None,
        semester: Optional[int] = None,
    ) -> Sequence[User]:
        if current_role != Role.ADMIN:
            raise AuthorizationError("Access restricted to administrators only")
        return self._users.list_students(branch_id=branch_id, semester=semester)

    def update_profile(self, user_id: int, data: dict) -> User:
        """Change name, email or phone of the logged-in user. Role, branch and semester stay put."""

        existing = self.get(user_id)
        errors = FieldErrors()
        name = errors.check(require_non_empty, data.get("name", existing.name), "Name")
        if name:
            errors.check(require_max_length, name, "Name", 50)
        email = errors.check(require_non_empty, data.get("email", existing.email), "Email")
        if email:
            email = email.lower()
            errors.check(optional_pattern, email, EMAIL_RE, "email")
        phone = errors.check(optional_pattern, data.get("phone", existing.phone), PHONE_RE, "10-digit phone number")
        errors.raise_if_any("Profile update failed")

        owner = self._users.get_by_email(email)
        if owner and owner.user_id != existing.user_id:
            raise ConflictError("User with this email already exists")

        user = replace(existing, name=name, email=email, phone=phone)
        self._users.update_profile(user)
        logger.info("User %s updated profile", user.user_id)
        return user
