"""Roles and per-operation authorization policies.

Two roles exist:
- ADMIN: observes every notice, force-closes, manages the directory.
  Has no personal inbox and never issues or answers notices.
- MEMBER: issues notices and answers the ones addressed to them.

Every guarded operation has exactly one ``ensure_*`` function here; the
services call it before touching the database.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from noticeboard.core.exceptions import Forbidden


class Role(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


VALID_ROLES: frozenset[str] = frozenset(role.value for role in Role)


@dataclass(frozen=True, slots=True)
class Identity:
    """An already-authenticated caller, as handed over by the identity provider."""

    id: int
    role: Role
    active: bool = True
    username: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def parse_role(value: str) -> Role:
    """Return the ``Role`` for *value*; raise ``ValueError`` for anything else."""
    try:
        return Role(value)
    except ValueError:
        raise ValueError(
            f"Unknown role {value!r}; must be one of {sorted(VALID_ROLES)}"
        ) from None


def _ensure_active(identity: Identity) -> None:
    if not identity.active:
        raise Forbidden("This account has been deactivated.")


def ensure_can_issue(identity: Identity) -> None:
    _ensure_active(identity)
    if identity.is_admin:
        raise Forbidden("Administrators cannot issue notices.")


def ensure_can_respond(identity: Identity) -> None:
    _ensure_active(identity)
    if identity.is_admin:
        raise Forbidden("Administrators cannot update notice status.")


def ensure_can_close(identity: Identity, *, issuer_id: int) -> None:
    """Admins may close anything; members only what they issued.

    The completion guard for members is a state check and lives in the
    closure service.
    """
    _ensure_active(identity)
    if identity.is_admin:
        return
    if identity.id != issuer_id:
        raise Forbidden("You can only close notices you created.")


def ensure_can_view(identity: Identity, *, issuer_id: int, recipient_ids: set[int]) -> None:
    _ensure_active(identity)
    if identity.is_admin or identity.id == issuer_id or identity.id in recipient_ids:
        return
    raise Forbidden("This notice is not addressed to you.")


def ensure_admin(identity: Identity) -> None:
    _ensure_active(identity)
    if not identity.is_admin:
        raise Forbidden("Admin access required.")
