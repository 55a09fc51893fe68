"""
Campus scope resolution.
Decides whether a principal may act on a campus-scoped resource.
"""
import uuid
from dataclasses import dataclass
from typing import Optional

from ..models.enums import Role, SUPER_ROLES, ADMIN_ROLES
from .errors import AccessDenied


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    role: Role
    campus_id: Optional[uuid.UUID] = None

    @property
    def is_super(self) -> bool:
        return self.role in SUPER_ROLES

    @property
    def is_admin_level(self) -> bool:
        return self.role in ADMIN_ROLES


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = AccessDecision(True)
DIFFERENT_CAMPUS = AccessDecision(False, "Access denied: different campus")
NOT_OWNER = AccessDecision(False, "Access denied: not your record")


def check_access(
    principal: Principal,
    resource_campus_id: Optional[uuid.UUID] = None,
    resource_owner_id: Optional[uuid.UUID] = None,
) -> AccessDecision:
    """
    Campus/ownership rule.

    - SUPER_ADMIN, DEVELOPER: always allowed
    - ADMIN: allowed when the resource has no campus or shares the admin's campus
    - LAB_ASSISTANT, LECTURER, STUDENT: an owner id on the resource must be the
      principal; without an owner the resource campus must be the principal's
    """
    role = principal.role
    if role in (Role.SUPER_ADMIN, Role.DEVELOPER):
        return ALLOWED
    if role == Role.ADMIN:
        if resource_campus_id is None or resource_campus_id == principal.campus_id:
            return ALLOWED
        return DIFFERENT_CAMPUS
    if role in (Role.LAB_ASSISTANT, Role.LECTURER, Role.STUDENT):
        if resource_owner_id is not None:
            return ALLOWED if resource_owner_id == principal.id else NOT_OWNER
        if resource_campus_id == principal.campus_id:
            return ALLOWED
        return DIFFERENT_CAMPUS
    raise ValueError(f"Unhandled role: {role!r}")


def ensure_access(
    principal: Principal,
    resource_campus_id: Optional[uuid.UUID] = None,
    resource_owner_id: Optional[uuid.UUID] = None,
) -> None:
    decision = check_access(principal, resource_campus_id, resource_owner_id)
    if not decision.allowed:
        raise AccessDenied(decision.reason or "Access denied")


def scoped_campus_id(principal: Principal, requested: Optional[uuid.UUID] = None) -> Optional[uuid.UUID]:
    """Campus filter for list queries: super roles may pick any campus (or none)."""
    if principal.is_super:
        return requested
    if principal.campus_id is None:
        raise AccessDenied("User has no campus assigned")
    return principal.campus_id
