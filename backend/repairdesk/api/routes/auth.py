"""Authentication routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import IntegrityError

from repairdesk.api.payload import Payload
from repairdesk.core.config import settings
from repairdesk.core.exceptions import (
    BadRequest,
    ResetTokenInvalid,
    Unauthenticated,
    UserNotFound,
    ValidationFailed,
)
from repairdesk.core.notifications import NotificationDispatcher, get_dispatcher
from repairdesk.core.rate_limit import limiter
from repairdesk.core.rbac import CurrentPrincipal, UserRole
from repairdesk.core.responses import success
from repairdesk.core.security import hash_password, issue_access_token, revoke_token, verify_password
from repairdesk.core.validation import validate
from repairdesk.db.session import DbSession
from repairdesk.models.user import User
from repairdesk.schemas.user import UserResource
from repairdesk.services.password_reset import PasswordResetLedger

logger = logging.getLogger("auth")

router = APIRouter()

Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]

UNKNOWN_EMAIL = "We can't find a user with that email address."
EMAIL_TAKEN = "The email has already been taken."
INVALID_RESET_TOKEN = "This password reset token is invalid."

REGISTER_RULES = {
    "name": "required|string|min:3|max:255",
    "email": "required|email|max:255|unique:users,email",
    "password": "required|string|min:8",
    "phone": "nullable|string|max:50",
}

LOGIN_RULES = {
    "email": "required|email",
    "password": "required|string",
}

RESET_RULES = {
    "email": "required|email",
    "token": "required|string",
    "password": "required|string|min:8|confirmed",
}


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, payload: Payload, db: DbSession):
    """Create a user account with the default ``user`` role."""
    data = validate(payload.data, REGISTER_RULES, db=db)

    user = User(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        phone=data.get("phone"),
        role=UserRole.USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Soft-deleted accounts and concurrent registrations still hold the unique index
        db.rollback()
        raise ValidationFailed(errors={"email": [EMAIL_TAKEN]})
    db.refresh(user)

    logger.info(f"New user registered: ID {user.id} from IP: {_client_ip(request)}")
    return success(
        "User registered successfully.",
        {"user": UserResource.model_validate(user)},
        status=status.HTTP_201_CREATED,
    )


@router.post("/login")
@limiter.limit("5/minute")
def login(request: Request, payload: Payload, db: DbSession):
    """Authenticate with email and password and return a bearer token."""
    data = validate(payload.data, LOGIN_RULES)
    client_ip = _client_ip(request)

    user = db.query(User).filter(User.email == data["email"], User.not_deleted()).first()
    if user is None:
        logger.warning(f"Failed login attempt (unknown email) from IP: {client_ip}")
        raise BadRequest(UNKNOWN_EMAIL, errors={"email": [UNKNOWN_EMAIL]})

    if not verify_password(data["password"], user.password_hash):
        logger.warning(f"Failed login attempt (wrong password) for user ID {user.id} from IP: {client_ip}")
        message = "The provided password is incorrect."
        raise Unauthenticated(message, errors={"password": [message]})

    issued = issue_access_token(user.id)
    logger.info(f"Successful login: user ID {user.id} ({user.role.value}) from IP: {client_ip}")
    return success(
        "User logged in successfully.",
        {
            "user": UserResource.model_validate(user),
            "token": issued.token,
            "token_type": "Bearer",
            "expires_in": issued.expires_in,
        },
    )


@router.post("/logout")
@limiter.limit("30/minute")
def logout(request: Request, principal: CurrentPrincipal, db: DbSession):
    """Revoke the presented token."""
    revoke_token(db, principal.token)
    logger.info(f"User logged out: ID {principal.user_id}")
    return success("User logged out successfully.")


@router.post("/reset-password")
@limiter.limit("5/minute")
def send_reset_link(request: Request, payload: Payload, db: DbSession, dispatcher: Dispatcher):
    """Email a password reset link."""
    data = validate(payload.data, {"email": "required|email"})

    try:
        PasswordResetLedger(db, dispatcher).request(data["email"])
    except UserNotFound:
        logger.info(f"Password reset requested for unknown email from IP: {_client_ip(request)}")
        if settings.password_reset_disclose_unknown_email:
            raise ValidationFailed(errors={"email": [UNKNOWN_EMAIL]})

    return success("We have emailed your password reset link.")


@router.put("/reset-password")
@limiter.limit("5/minute")
def reset_password(request: Request, payload: Payload, db: DbSession, dispatcher: Dispatcher):
    """Set a new password using an emailed reset token."""
    data = validate(payload.data, RESET_RULES)

    try:
        PasswordResetLedger(db, dispatcher).consume(data["email"], data["token"], data["password"])
    except ResetTokenInvalid as e:
        logger.warning(f"Password reset rejected ({type(e).__name__}) from IP: {_client_ip(request)}")
        raise BadRequest(INVALID_RESET_TOKEN, errors={"token": [INVALID_RESET_TOKEN]})
    except UserNotFound:
        raise BadRequest(UNKNOWN_EMAIL, errors={"email": [UNKNOWN_EMAIL]})

    message = "Your password has been reset."
    return success(message, {"result": {"title": message, "type": "success"}})
