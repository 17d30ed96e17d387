"""Role-Based Access Control (RBAC) utilities.

The gate itself (``authorize``) is a pure function over role and permission
sets. The FastAPI dependencies below resolve a request-scoped ``Principal``
from the bearer token once per request and hand it to route handlers as an
explicit parameter.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Dict, FrozenSet, Iterable, Optional, Union

from fastapi import Depends, Request

from repairdesk.core.exceptions import Forbidden, TokenError, Unauthenticated
from repairdesk.core.security import TokenClaims, is_token_revoked, verify_access_token
from repairdesk.db.session import DbSession

logger = logging.getLogger("auth")


class UserRole(str, Enum):
    """User roles for RBAC."""

    ADMIN = "admin"
    EMPLOYEE = "employee"
    USER = "user"


ROLE_LABELS: Dict[UserRole, str] = {
    UserRole.ADMIN: "Administrator",
    UserRole.EMPLOYEE: "Employee",
    UserRole.USER: "User",
}

# Resource types that carry create/read/update/delete permissions
RESOURCES = (
    "users",
    "categories",
    "subcategories",
    "articles",
    "images",
    "repair_requests",
    "support_requests",
)
ACTIONS = ("create", "read", "update", "delete")


def permission_name(action: str, resource: str) -> str:
    return f"{action} {resource}"


ALL_PERMISSIONS: FrozenSet[str] = frozenset(
    permission_name(action, resource) for resource in RESOURCES for action in ACTIONS
)

# Fixed role -> permission expansion, persisted by services.permissions at startup
ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[str]] = {
    UserRole.ADMIN: ALL_PERMISSIONS,
    UserRole.EMPLOYEE: frozenset(),
    UserRole.USER: frozenset(),
}


def expand_permissions(roles: Iterable[UserRole]) -> FrozenSet[str]:
    """Union of the permissions attached to each role."""
    granted = set()
    for role in roles:
        granted |= ROLE_PERMISSIONS.get(UserRole(role), frozenset())
    return frozenset(granted)


def authorize(
    roles: Iterable[UserRole],
    required: Union[UserRole, Iterable[str]],
    permissions: Optional[Iterable[str]] = None,
) -> bool:
    """Decide whether a caller holding ``roles`` may perform an action.

    ``required`` is either a role (exact membership check) or a collection of
    permission names, in which case access is granted when the caller's
    effective permissions contain at least one of them. ``permissions``
    overrides the static role expansion, e.g. with the set loaded from the
    database.
    """
    roles = {UserRole(r) for r in roles}
    if isinstance(required, UserRole):
        return required in roles
    required_set = {required} if isinstance(required, str) else set(required)
    granted = set(permissions) if permissions is not None else expand_permissions(roles)
    return bool(granted & required_set)


@dataclass
class Principal:
    """The authenticated caller of the current request."""

    user: "User"  # noqa: F821
    token: TokenClaims
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> UserRole:
        return self.user.role

    @property
    def roles(self) -> FrozenSet[UserRole]:
        return frozenset({self.user.role})

    def can(self, *permission_names: str) -> bool:
        return authorize(self.roles, permission_names, self.permissions)


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        return token or None
    return None


async def get_current_principal(request: Request, db: DbSession) -> Principal:
    """Resolve the caller from the ``Authorization: Bearer <token>`` header."""
    from repairdesk.models.user import User
    from repairdesk.services.permissions import permissions_for_role

    token = _bearer_token(request)
    if token is None:
        raise Unauthenticated()

    try:
        claims = verify_access_token(token)
    except TokenError as e:
        logger.info(f"Rejected bearer token ({type(e).__name__}): {e}")
        raise Unauthenticated()

    if is_token_revoked(db, claims.jti):
        logger.info(f"Rejected revoked token for user ID {claims.user_id}")
        raise Unauthenticated()

    user = db.query(User).filter(User.id == claims.user_id, User.not_deleted()).first()
    if user is None:
        raise Unauthenticated()

    principal = Principal(
        user=user,
        token=claims,
        permissions=permissions_for_role(db, user.role),
    )
    return principal


def require_role(*roles: UserRole):
    """Dependency requiring the caller to hold one of ``roles``."""

    async def role_checker(
        principal: Annotated[Principal, Depends(get_current_principal)]
    ) -> Principal:
        if not any(authorize(principal.roles, role) for role in roles):
            logger.warning(
                f"Forbidden: user ID {principal.user_id} ({principal.role.value}) "
                f"requires role {', '.join(r.value for r in roles)}"
            )
            raise Forbidden("User does not have the right roles.")
        return principal

    return role_checker


def require_permission(*permission_names: str):
    """Dependency requiring at least one of ``permission_names``."""

    async def permission_checker(
        principal: Annotated[Principal, Depends(get_current_principal)]
    ) -> Principal:
        if not principal.can(*permission_names):
            logger.warning(
                f"Forbidden: user ID {principal.user_id} lacks {', '.join(permission_names)}"
            )
            raise Forbidden("User does not have the right permissions.")
        return principal

    return permission_checker


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
RequireAdmin = Annotated[Principal, Depends(require_role(UserRole.ADMIN))]
