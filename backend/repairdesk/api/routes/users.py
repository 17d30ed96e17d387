"""Authenticated user's own profile and password."""

import logging

from fastapi import APIRouter, Request

from repairdesk.api.payload import Payload
from repairdesk.core.rate_limit import limiter
from repairdesk.core.rbac import CurrentPrincipal
from repairdesk.core.responses import success
from repairdesk.core.security import hash_password, revoke_token
from repairdesk.core.validation import current_password, validate
from repairdesk.db.session import DbSession
from repairdesk.schemas.user import UserResource

logger = logging.getLogger("auth")

router = APIRouter()

# Only these keys are ever written; email, password and role are ignored.
PROFILE_RULES = {
    "name": "sometimes|required|string|min:3|max:255",
    "phone": "sometimes|nullable|string|max:50",
}


@router.get("/profile")
def get_profile(principal: CurrentPrincipal):
    return success(
        "User information obtained successfully.",
        {"user": UserResource.model_validate(principal.user)},
    )


@router.put("/profile")
def update_profile(principal: CurrentPrincipal, payload: Payload, db: DbSession):
    """Update name and phone of the current user."""
    data = validate(payload.data, PROFILE_RULES)

    user = principal.user
    for key, value in data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)

    return success(
        "User information updated successfully.",
        {"user": UserResource.model_validate(user)},
    )


@router.put("/password")
@limiter.limit("5/minute")
def update_password(request: Request, principal: CurrentPrincipal, payload: Payload, db: DbSession):
    """Change the password; the presenting token stops working afterwards."""
    user = principal.user
    data = validate(
        payload.data,
        {
            "old_password": ["required", current_password(user.password_hash)],
            "password": "required|string|min:8|confirmed",
        },
    )

    user.password_hash = hash_password(data["password"])
    db.commit()
    revoke_token(db, principal.token)

    logger.info(f"Password changed for user ID {user.id}")
    return success("User password updated successfully.")
