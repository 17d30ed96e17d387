"""Category routes. Categories are addressed by name."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repairdesk.api.payload import Payload
from repairdesk.core.exceptions import NotFound
from repairdesk.core.rbac import CurrentPrincipal, Principal, require_permission
from repairdesk.core.responses import success
from repairdesk.core.validation import validate
from repairdesk.db.session import DbSession
from repairdesk.models.catalog import Category
from repairdesk.schemas.catalog import CategoryResource

logger = logging.getLogger(__name__)

router = APIRouter()


def _rules(ignore_id=None):
    unique = "unique:categories,name" + (f",{ignore_id}" if ignore_id else "")
    return {
        "name": f"required|string|max:255|{unique}",
        "description": "nullable|string|max:255",
    }


def _get_category(db, name: str) -> Category:
    category = db.query(Category).filter(Category.name == name, Category.not_deleted()).first()
    if category is None:
        raise NotFound("Category not found.")
    return category


@router.get("")
def list_categories(principal: CurrentPrincipal, db: DbSession):
    categories = db.query(Category).filter(Category.not_deleted()).order_by(Category.name).all()
    return success(
        "List of categories obtained successfully.",
        {"categories": [CategoryResource.model_validate(c) for c in categories]},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    principal: Annotated[Principal, Depends(require_permission("create categories"))],
    payload: Payload,
    db: DbSession,
):
    data = validate(payload.data, _rules(), db=db)
    category = Category(**data)
    db.add(category)
    db.commit()
    db.refresh(category)

    logger.info(f"Category {category.id} created by user ID {principal.user_id}")
    return success(
        "Category created successfully.",
        {"category": CategoryResource.model_validate(category)},
        status=status.HTTP_201_CREATED,
    )


@router.get("/{name}")
def get_category(name: str, principal: CurrentPrincipal, db: DbSession):
    category = _get_category(db, name)
    return success(
        "Category retrieved successfully.",
        {"category": CategoryResource.model_validate(category)},
    )


@router.put("/{name}")
def update_category(
    name: str,
    principal: Annotated[Principal, Depends(require_permission("update categories"))],
    payload: Payload,
    db: DbSession,
):
    category = _get_category(db, name)
    data = validate(payload.data, _rules(ignore_id=category.id), db=db)
    for key, value in data.items():
        setattr(category, key, value)
    db.commit()
    db.refresh(category)

    return success(
        "Category updated successfully.",
        {"category": CategoryResource.model_validate(category)},
    )


@router.delete("/{name}")
def delete_category(
    name: str,
    principal: Annotated[Principal, Depends(require_permission("delete categories"))],
    db: DbSession,
):
    category = _get_category(db, name)
    category.soft_delete()
    db.commit()

    logger.info(f"Category {category.id} deleted by user ID {principal.user_id}")
    return success("Category deleted successfully.")
