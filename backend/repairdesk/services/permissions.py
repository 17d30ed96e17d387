"""Persisted role permissions.

The role -> permission expansion is fixed in ``repairdesk.core.rbac``; this
module mirrors it into the ``permissions`` / ``role_permissions`` tables at
startup and reads it back when resolving a principal.
"""

import logging
from typing import FrozenSet

from sqlalchemy.orm import Session

from repairdesk.core.rbac import ALL_PERMISSIONS, ROLE_PERMISSIONS, UserRole
from repairdesk.models.permission import Permission, RolePermission

logger = logging.getLogger(__name__)


def sync_role_permissions(db: Session) -> int:
    """Create missing permissions and role assignments. Returns rows added."""
    existing = {p.name: p for p in db.query(Permission).all()}
    added = 0
    for name in sorted(ALL_PERMISSIONS):
        if name not in existing:
            permission = Permission(name=name)
            db.add(permission)
            existing[name] = permission
            added += 1
    db.flush()

    assigned = {(rp.role, rp.permission_id) for rp in db.query(RolePermission).all()}
    for role, names in ROLE_PERMISSIONS.items():
        for name in names:
            key = (role, existing[name].id)
            if key not in assigned:
                db.add(RolePermission(role=role, permission_id=existing[name].id))
                added += 1
    db.commit()

    if added:
        logger.info(f"Synced role permissions ({added} rows added)")
    return added


def permissions_for_role(db: Session, role: UserRole) -> FrozenSet[str]:
    """Permission names granted to ``role``."""
    rows = (
        db.query(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role == UserRole(role))
        .all()
    )
    return frozenset(name for (name,) in rows)
