"""
Authorization Policy

Roles are modeled as a tagged union so the policy below handles every
kind explicitly:

    AdminRole                    - global, passes every check
    FranchiseeRole(franchise_id) - scoped to a single franchise
    DinerRole                    - may only act on itself

``is_authorized`` is a pure predicate with no side effects. The route
layer evaluates it before any mutating repository call and raises
``ForbiddenError`` (HTTP 403) on a negative decision.
"""

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from pizza_service.core.errors import ForbiddenError


class Role(str, enum.Enum):
    """Role kinds as persisted in the ``user_role`` table."""
    DINER = "diner"
    FRANCHISEE = "franchisee"
    ADMIN = "admin"


@dataclass(frozen=True)
class AdminRole:
    kind = Role.ADMIN

    def to_dict(self) -> dict:
        return {"role": self.kind.value}


@dataclass(frozen=True)
class DinerRole:
    kind = Role.DINER

    def to_dict(self) -> dict:
        return {"role": self.kind.value}


@dataclass(frozen=True)
class FranchiseeRole:
    franchise_id: int
    kind = Role.FRANCHISEE

    def to_dict(self) -> dict:
        return {"role": self.kind.value, "objectId": self.franchise_id}


RoleBinding = Union[AdminRole, DinerRole, FranchiseeRole]


def role_from_binding(role: str, object_id: Optional[int] = None) -> RoleBinding:
    """Build a role from a stored ``(role, objectId)`` pair or a token claim."""
    kind = Role(role)
    if kind is Role.ADMIN:
        return AdminRole()
    if kind is Role.FRANCHISEE:
        if not object_id:
            raise ValueError("franchisee role requires a franchise id")
        return FranchiseeRole(franchise_id=int(object_id))
    return DinerRole()


@dataclass(frozen=True)
class Caller:
    """Authenticated identity attached to a request."""
    id: int
    name: str
    email: str
    roles: tuple = field(default_factory=tuple)

    @classmethod
    def from_claims(cls, claims: dict) -> "Caller":
        roles = tuple(
            role_from_binding(r["role"], r.get("objectId"))
            for r in claims.get("roles", [])
        )
        return cls(
            id=int(claims["id"]),
            name=claims.get("name", ""),
            email=claims.get("email", ""),
            roles=roles,
        )

    def is_role(self, kind: Role) -> bool:
        return any(r.kind is kind for r in self.roles)

    @property
    def is_admin(self) -> bool:
        return self.is_role(Role.ADMIN)

    def franchise_ids(self) -> set[int]:
        return {r.franchise_id for r in self.roles if isinstance(r, FranchiseeRole)}


class Requirement(str, enum.Enum):
    """What a protected action demands of its caller."""
    ADMIN = "admin"
    FRANCHISEE = "franchisee"
    SELF = "self"


def is_authorized(
    caller: Caller,
    required: Requirement,
    scope_id: Optional[int] = None,
) -> bool:
    """
    Evaluate the caller's roles against a requested action.
    
    Args:
        caller: The authenticated caller
        required: Kind of check the action demands
        scope_id: Franchise id for FRANCHISEE checks, user id for SELF checks
        
    Returns:
        bool: True when the action is permitted
    """
    if caller.is_admin:
        return True

    if required is Requirement.FRANCHISEE:
        return scope_id is not None and int(scope_id) in caller.franchise_ids()
    if required is Requirement.SELF:
        return scope_id is not None and caller.id == int(scope_id)
    return False


def require(
    caller: Caller,
    required: Requirement,
    scope_id: Optional[int] = None,
    message: str = "unauthorized",
) -> None:
    """Raise ``ForbiddenError`` unless ``is_authorized`` passes."""
    if not is_authorized(caller, required, scope_id):
        raise ForbiddenError(message)


def administers(caller: Caller, admin_ids: Iterable[int]) -> bool:
    """
    Whether the caller may manage a franchise's stores.

    ``admin_ids`` are the franchise's current admin bindings as stored, so a
    binding added after the caller's token was minted still counts.
    """
    return caller.is_admin or caller.id in set(admin_ids)
