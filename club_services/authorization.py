"""
Authorization gate for the finance facade.

Provides:
- AuthorizationGate: the protocol the facade consults before any write
- RolePermissionGate: role-based default implementation
- DEFAULT_ROLE_PERMISSIONS: the permission table per role

Permissions are checked:
1. First by role (ADMIN: implicit allow)
2. DIRECTOR / LEADER / USER: explicit (resource, action) pairs only
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Protocol, runtime_checkable

from club_ledger.domain.dtos import Actor
from club_ledger.exceptions import PermissionDeniedError
from club_ledger.logging_config import get_logger

logger = get_logger("services.authorization")


class Role(str, Enum):
    ADMIN = "admin"
    DIRECTOR = "director"
    LEADER = "leader"
    USER = "user"


class Resource(str, Enum):
    PAYMENT = "payment"
    MONTHLY_FEE = "monthly_fee"
    ATTENDANCE = "attendance"
    CASH_BOOK = "cash_book"
    REPORT = "report"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


_ALL_ACTIONS = frozenset(Action)


def _grant(resource: Resource, actions) -> frozenset[tuple[str, str]]:
    return frozenset((resource.value, action.value) for action in actions)


DEFAULT_ROLE_PERMISSIONS: Mapping[str, frozenset[tuple[str, str]]] = {
    Role.DIRECTOR.value: (
        _grant(Resource.PAYMENT, _ALL_ACTIONS)
        | _grant(Resource.MONTHLY_FEE, _ALL_ACTIONS)
        | _grant(Resource.ATTENDANCE, _ALL_ACTIONS)
        | _grant(Resource.CASH_BOOK, _ALL_ACTIONS)
        | _grant(Resource.REPORT, {Action.READ})
    ),
    Role.LEADER.value: (
        _grant(Resource.ATTENDANCE, {Action.CREATE, Action.READ, Action.UPDATE})
        | _grant(Resource.REPORT, {Action.READ})
    ),
    Role.USER.value: _grant(Resource.ATTENDANCE, {Action.READ}),
}


@runtime_checkable
class AuthorizationGate(Protocol):
    """Decides whether an actor may perform an action on a resource."""

    def allowed(self, actor: Actor, resource: str, action: str) -> bool: ...


class RolePermissionGate:
    """
    Role-based gate.

    Admin is implicitly allowed everything; other roles get exactly the
    pairs in their permission table.  Unknown roles get nothing.
    """

    def __init__(self, permissions: Mapping[str, frozenset[tuple[str, str]]] | None = None):
        self._permissions = (
            permissions if permissions is not None else DEFAULT_ROLE_PERMISSIONS
        )

    def allowed(self, actor: Actor, resource: str, action: str) -> bool:
        if actor.role == Role.ADMIN.value:
            return True
        return (resource, action) in self._permissions.get(actor.role, frozenset())


def require(gate: AuthorizationGate, actor: Actor, resource: Resource, action: Action) -> None:
    """
    Check a permission and raise if it is not granted.

    Raises:
        PermissionDeniedError: The gate refused.
    """
    if gate.allowed(actor, resource.value, action.value):
        return
    logger.warning(
        "permission_denied",
        extra={
            "actor_id": str(actor.actor_id),
            "role": actor.role,
            "resource": resource.value,
            "action": action.value,
        },
    )
    raise PermissionDeniedError(str(actor.actor_id), resource.value, action.value)
