"""Directory: departments and user accounts.

Reference data for the notice workflow.  Department codes are derived from
the display name and made unique with a bounded ``_1``, ``_2`` ... suffix
retry; user accounts carry a role and an optional department label.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from noticeboard.core.exceptions import (
    Forbidden,
    NotAuthenticated,
    NotFound,
    StateConflict,
    ValidationFailed,
)
from noticeboard.core.policies import Identity, Role, ensure_admin, parse_role
from noticeboard.core.security import PasswordHasher, ScryptPasswordHasher
from noticeboard.db.models import Department, User
from noticeboard.db.repositories import DepartmentRepository, UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DEFAULT_CODE_ATTEMPTS = 10
_CODE_MAX_LENGTH = 20
_NON_CODE_CHARS = re.compile(r"[^A-Z0-9]+")


def department_base_code(name: str) -> str:
    """``"Health Dept."`` -> ``"HEALTH_DEPT"``; empty results become ``"DEPT"``."""
    code = _NON_CODE_CHARS.sub("_", name.strip().upper()).strip("_")
    return code[:_CODE_MAX_LENGTH] or "DEPT"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class DirectoryService:
    """Create and look up departments and user accounts."""

    def __init__(
        self,
        db_session: Session,
        hasher: PasswordHasher | None = None,
        code_attempts: int = DEFAULT_CODE_ATTEMPTS,
    ) -> None:
        self.db = db_session
        self.hasher = hasher or ScryptPasswordHasher()
        self.code_attempts = code_attempts
        self.departments = DepartmentRepository(db_session)
        self.users = UserRepository(db_session)

    # -- departments ----------------------------------------------------------

    def create_department(
        self,
        name: str,
        *,
        website: str | None = None,
        description: str | None = None,
        category: str | None = None,
    ) -> Department:
        """Insert a department under the first free code.

        Tries the base code, then ``BASE_1`` through ``BASE_<code_attempts>``.
        Raises ``StateConflict`` once every candidate is taken.
        """
        trimmed = _clean(name)
        if trimmed is None:
            raise ValidationFailed("Department name is required.")

        base = department_base_code(trimmed)
        candidates = [base] + [f"{base}_{n}" for n in range(1, self.code_attempts + 1)]
        for code in candidates:
            if self.departments.get_by_code(code) is not None:
                continue
            department = self.departments.create(
                code=code,
                name=trimmed,
                website=_clean(website),
                description=_clean(description),
                category=_clean(category),
            )
            logger.info("Department created: id=%s code=%s", department.id, code)
            return department

        logger.warning("Department code space exhausted for base %s", base)
        raise StateConflict("Could not generate a unique department code.")

    def get_department(self, department_id: int) -> Department:
        department = self.departments.get(department_id)
        if department is None:
            raise NotFound(f"Department {department_id} not found")
        return department

    def list_departments(self, category: str | None = None) -> list[Department]:
        return self.departments.list_by_category(category)

    # -- users ----------------------------------------------------------------

    def create_user(
        self,
        actor: Identity,
        *,
        username: str,
        password: str,
        role: str,
        department_id: int | None = None,
    ) -> User:
        ensure_admin(actor)

        normalized = (username or "").strip().lower()
        if not normalized or not password or not role:
            raise ValidationFailed("username, password, and role are required.")
        try:
            parsed_role = parse_role(role)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from None
        if parsed_role is Role.MEMBER:
            if department_id is None:
                raise ValidationFailed("department_id is required for member accounts.")
            self.get_department(department_id)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if self.users.get_by_username(normalized) is not None:
            raise StateConflict("Username already exists.")

        user = self.users.create(
            username=normalized,
            password_hash=self.hasher.hash(password),
            role=parsed_role.value,
            department_id=department_id if parsed_role is Role.MEMBER else None,
            is_active=True,
        )
        logger.info("User created: id=%s role=%s", user.id, user.role)
        return user

    def get_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def list_users(self, actor: Identity) -> list[User]:
        ensure_admin(actor)
        return self.users.list_for_directory()

    def set_active(self, actor: Identity, user_id: int, active: bool) -> User:
        """Activate or deactivate an account; history is never removed."""
        ensure_admin(actor)
        if user_id == actor.id and not active:
            raise ValidationFailed("You cannot deactivate your own account.")
        user = self.get_user(user_id)
        self.users.update(user, is_active=bool(active))
        logger.info("User %s active=%s", user_id, bool(active))
        return user

    def reset_password(self, actor: Identity, user_id: int, new_password: str) -> None:
        ensure_admin(actor)
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(f"new_password must be at least {MIN_PASSWORD_LENGTH} characters.")
        user = self.get_user(user_id)
        self.users.update(user, password_hash=self.hasher.hash(new_password))
        logger.info("Password reset for user %s", user_id)

    # -- identity -------------------------------------------------------------

    def resolve_identity(self, user_id: int) -> Identity:
        """Turn an authenticated user id into an ``Identity``.

        Unknown ids are unauthenticated; deactivated accounts are refused.
        """
        user = self.users.get(user_id)
        if user is None:
            raise NotAuthenticated("Authentication required.")
        if not user.is_active:
            raise Forbidden("This account has been deactivated. Contact the administrator.")
        return Identity(id=user.id, role=Role(user.role), active=True, username=user.username)

    def authenticate(self, username: str, password: str) -> Identity:
        """Check credentials and stamp ``last_login``."""
        user = self.users.get_by_username((username or "").strip().lower())
        if user is None or not self.hasher.verify(password or "", user.password_hash):
            raise NotAuthenticated("Invalid username or password.")
        if not user.is_active:
            raise Forbidden("This account has been deactivated. Contact the administrator.")
        self.users.update(user, last_login=datetime.now(timezone.utc))
        return Identity(id=user.id, role=Role(user.role), active=True, username=user.username)
