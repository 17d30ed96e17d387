"""Subcategory routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repairdesk.api.payload import Payload
from repairdesk.core.exceptions import NotFound
from repairdesk.core.rbac import CurrentPrincipal, Principal, require_permission
from repairdesk.core.responses import success
from repairdesk.core.validation import validate
from repairdesk.db.base import is_valid_id
from repairdesk.db.session import DbSession
from repairdesk.models.catalog import Subcategory
from repairdesk.schemas.catalog import SubcategoryResource

logger = logging.getLogger(__name__)

router = APIRouter()

CREATE_RULES = {
    "name": "required|string|max:255",
    "description": "nullable|string|max:1000",
    "category_id": "required|integer|exists:categories,id",
}

UPDATE_RULES = {
    "name": "sometimes|required|string|max:255",
    "description": "sometimes|nullable|string|max:1000",
    "category_id": "sometimes|required|integer|exists:categories,id",
}


def _get_subcategory(db, subcategory_id: int) -> Subcategory:
    if not is_valid_id(subcategory_id):
        raise NotFound("Subcategory not found.")
    subcategory = (
        db.query(Subcategory)
        .filter(Subcategory.id == subcategory_id, Subcategory.not_deleted())
        .first()
    )
    if subcategory is None:
        raise NotFound("Subcategory not found.")
    return subcategory


@router.get("")
def list_subcategories(principal: CurrentPrincipal, db: DbSession):
    subcategories = (
        db.query(Subcategory)
        .filter(Subcategory.not_deleted())
        .order_by(Subcategory.id)
        .all()
    )
    return success(
        "List of subcategories obtained successfully.",
        {"subcategories": [SubcategoryResource.model_validate(s) for s in subcategories]},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_subcategory(
    principal: Annotated[Principal, Depends(require_permission("create subcategories"))],
    payload: Payload,
    db: DbSession,
):
    data = validate(payload.data, CREATE_RULES, db=db)
    subcategory = Subcategory(**data)
    db.add(subcategory)
    db.commit()
    db.refresh(subcategory)

    return success(
        "Subcategory created successfully.",
        {"subcategory": SubcategoryResource.model_validate(subcategory)},
        status=status.HTTP_201_CREATED,
    )


@router.get("/{subcategory_id}")
def get_subcategory(subcategory_id: int, principal: CurrentPrincipal, db: DbSession):
    subcategory = _get_subcategory(db, subcategory_id)
    return success(
        "Subcategory retrieved successfully.",
        {"subcategory": SubcategoryResource.model_validate(subcategory)},
    )


@router.put("/{subcategory_id}")
def update_subcategory(
    subcategory_id: int,
    principal: Annotated[Principal, Depends(require_permission("update subcategories"))],
    payload: Payload,
    db: DbSession,
):
    subcategory = _get_subcategory(db, subcategory_id)
    data = validate(payload.data, UPDATE_RULES, db=db)
    for key, value in data.items():
        setattr(subcategory, key, value)
    db.commit()
    db.refresh(subcategory)

    return success(
        "Subcategory updated successfully.",
        {"subcategory": SubcategoryResource.model_validate(subcategory)},
    )


@router.delete("/{subcategory_id}")
def delete_subcategory(
    subcategory_id: int,
    principal: Annotated[Principal, Depends(require_permission("delete subcategories"))],
    db: DbSession,
):
    subcategory = _get_subcategory(db, subcategory_id)
    subcategory.soft_delete()
    db.commit()

    logger.info(f"Subcategory {subcategory.id} deleted by user ID {principal.user_id}")
    return success("Subcategory deleted successfully.")
