"""Support request routes. Users only ever see their own requests."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repairdesk.api.payload import Payload
from repairdesk.core.exceptions import NotFound
from repairdesk.core.notifications import (
    NotificationDispatcher,
    get_dispatcher,
    new_support_request_notification,
)
from repairdesk.core.rbac import CurrentPrincipal, UserRole
from repairdesk.core.responses import success
from repairdesk.core.validation import validate
from repairdesk.db.base import is_valid_id
from repairdesk.db.session import DbSession
from repairdesk.models.support_request import SupportRequest
from repairdesk.models.user import User
from repairdesk.schemas.support_request import SupportRequestResource

logger = logging.getLogger(__name__)

router = APIRouter()

Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]

CREATE_RULES = {
    "date": "required|date",
    "location": "required|string|min:10",
    "detail": "required|string|min:10",
}

UPDATE_RULES = {
    "date": "sometimes|required|date",
    "location": "sometimes|required|string|min:10",
    "detail": "sometimes|required|string|min:10",
}


def _get_own_request(db, principal, support_request_id: int) -> SupportRequest:
    # Requests of other users are reported as missing
    if not is_valid_id(support_request_id):
        raise NotFound("Support request not found.")
    support_request = (
        db.query(SupportRequest)
        .filter(
            SupportRequest.id == support_request_id,
            SupportRequest.user_id == principal.user_id,
            SupportRequest.not_deleted(),
        )
        .first()
    )
    if support_request is None:
        raise NotFound("Support request not found.")
    return support_request


@router.get("")
def list_support_requests(principal: CurrentPrincipal, db: DbSession):
    support_requests = (
        db.query(SupportRequest)
        .filter(SupportRequest.user_id == principal.user_id, SupportRequest.not_deleted())
        .order_by(SupportRequest.id.desc())
        .all()
    )
    return success(
        "List of support requests obtained successfully.",
        {"support_requests": [SupportRequestResource.model_validate(s) for s in support_requests]},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_support_request(
    principal: CurrentPrincipal,
    payload: Payload,
    db: DbSession,
    dispatcher: Dispatcher,
):
    """Open a support request and notify every administrator."""
    data = validate(payload.data, CREATE_RULES)
    support_request = SupportRequest(user_id=principal.user_id, **data)
    db.add(support_request)
    db.commit()
    db.refresh(support_request)

    admins = db.query(User).filter(User.role == UserRole.ADMIN, User.not_deleted()).all()
    for admin in admins:
        dispatcher.dispatch(new_support_request_notification(admin, support_request, principal.user))
    logger.info(
        f"Support request {support_request.id} created by user ID {principal.user_id}, "
        f"{len(admins)} admin(s) notified"
    )

    return success(
        "Support request created successfully.",
        {"support_request": SupportRequestResource.model_validate(support_request)},
        status=status.HTTP_201_CREATED,
    )


@router.get("/{support_request_id}")
def get_support_request(support_request_id: int, principal: CurrentPrincipal, db: DbSession):
    support_request = _get_own_request(db, principal, support_request_id)
    return success(
        "Support request retrieved successfully.",
        {"support_request": SupportRequestResource.model_validate(support_request)},
    )


@router.put("/{support_request_id}")
def update_support_request(
    support_request_id: int,
    principal: CurrentPrincipal,
    payload: Payload,
    db: DbSession,
):
    support_request = _get_own_request(db, principal, support_request_id)
    data = validate(payload.data, UPDATE_RULES)
    for key, value in data.items():
        setattr(support_request, key, value)
    db.commit()
    db.refresh(support_request)

    return success(
        "Support request updated successfully.",
        {"support_request": SupportRequestResource.model_validate(support_request)},
    )


@router.delete("/{support_request_id}")
def delete_support_request(support_request_id: int, principal: CurrentPrincipal, db: DbSession):
    support_request = _get_own_request(db, principal, support_request_id)
    support_request.soft_delete()
    db.commit()
    return success("Support request deleted successfully.")
