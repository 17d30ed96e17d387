"""Repair request routes (admin only)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repairdesk.api.payload import Payload
from repairdesk.core.config import settings
from repairdesk.core.exceptions import NotFound, ServerError
from repairdesk.core.rbac import UserRole, require_role
from repairdesk.core.responses import success
from repairdesk.core.storage import ImageStorage, get_storage
from repairdesk.core.validation import register_enum, validate
from repairdesk.db.base import is_valid_id
from repairdesk.db.session import DbSession
from repairdesk.models.repair_request import RepairRequest, RepairStatus, receipt_number_for
from repairdesk.schemas.repair_request import RepairRequestResource
from repairdesk.services.images import ImageUploadSession, delete_images, remove_files

logger = logging.getLogger(__name__)

register_enum("repair_status", RepairStatus)

router = APIRouter(dependencies=[Depends(require_role(UserRole.ADMIN))])

Storage = Annotated[ImageStorage, Depends(get_storage)]

CREATE_RULES = {
    "customer_name": "nullable|string|min:3|max:255",
    "customer_phone": "required|string|min:8",
    "customer_email": "required|email",
    "article_name": "required|string|min:3",
    "article_type": "required|string|min:3",
    "article_brand": "required|string|min:2",
    "article_model": "required|string|min:2",
    "article_serialnumber": "nullable|string|min:6",
    "article_accesories": "nullable|string|min:3",
    "article_problem": "required|string|min:3",
    "repair_status": "required|string|enum:repair_status",
    "repair_details": "nullable|string|min:3",
    "repair_price": "nullable|numeric|min:0",
    "received_at": "required|date",
    "repaired_at": "nullable|date",
    "images": "nullable|array",
    "images.*": f"image|mimes:jpeg,png,jpg|max:{settings.max_image_size_kb}",
}

UPDATE_RULES = {
    "article_serialnumber": "nullable|string|min:6",
    "article_accesories": "nullable|string|min:3",
    "repair_status": "required|string|enum:repair_status",
    "repair_details": "nullable|string|min:3",
    "repair_price": "nullable|numeric|min:0",
    "repaired_at": "nullable|date",
}

IMAGE_DIRECTORY = "repair_requests"


def _get_repair_request(db, repair_request_id: int) -> RepairRequest:
    if not is_valid_id(repair_request_id):
        raise NotFound("Repair request not found.")
    repair_request = (
        db.query(RepairRequest)
        .filter(RepairRequest.id == repair_request_id, RepairRequest.not_deleted())
        .first()
    )
    if repair_request is None:
        raise NotFound("Repair request not found.")
    return repair_request


@router.get("")
def list_repair_requests(db: DbSession):
    repair_requests = (
        db.query(RepairRequest)
        .filter(RepairRequest.not_deleted())
        .order_by(RepairRequest.id.desc())
        .all()
    )
    return success(
        "List of repair requests obtained successfully.",
        {"repair_requests": [RepairRequestResource.model_validate(r) for r in repair_requests]},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_repair_request(payload: Payload, db: DbSession, storage: Storage):
    """Create a repair request and its images atomically.

    If any image cannot be stored the request row is rolled back and files
    already written are removed.
    """
    data = validate(payload.data, CREATE_RULES, db=db, files=payload.files)
    uploads = data.pop("images", None) or []

    session = ImageUploadSession(db, storage)
    try:
        repair_request = RepairRequest(**data)
        db.add(repair_request)
        db.flush()
        repair_request.receipt_number = receipt_number_for(repair_request.id)
        session.store(uploads, RepairRequest.IMAGEABLE_TYPE, repair_request.id, IMAGE_DIRECTORY)
        db.commit()
    except Exception:
        db.rollback()
        session.discard()
        logger.exception("Failed to create repair request")
        raise ServerError("Failed to create repair request.")

    db.refresh(repair_request)
    logger.info(f"Repair request {repair_request.receipt_number} created")
    return success(
        "Repair request created successfully.",
        {"repair_request": RepairRequestResource.model_validate(repair_request)},
        status=status.HTTP_201_CREATED,
    )


@router.get("/{repair_request_id}")
def get_repair_request(repair_request_id: int, db: DbSession):
    repair_request = _get_repair_request(db, repair_request_id)
    return success(
        "Repair request retrieved successfully.",
        {"repair_request": RepairRequestResource.model_validate(repair_request)},
    )


@router.put("/{repair_request_id}")
def update_repair_request(repair_request_id: int, payload: Payload, db: DbSession):
    """Update the repair progress fields."""
    repair_request = _get_repair_request(db, repair_request_id)
    data = validate(payload.data, UPDATE_RULES, db=db)
    for key, value in data.items():
        setattr(repair_request, key, value)
    db.commit()
    db.refresh(repair_request)

    return success(
        "Repair request updated successfully.",
        {"repair_request": RepairRequestResource.model_validate(repair_request)},
    )


@router.delete("/{repair_request_id}")
def delete_repair_request(repair_request_id: int, db: DbSession, storage: Storage):
    repair_request = _get_repair_request(db, repair_request_id)
    try:
        paths = delete_images(db, repair_request.images)
        repair_request.soft_delete()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Failed to delete repair request {repair_request_id}")
        raise ServerError("Repair request could not be deleted.")

    remove_files(storage, paths)

    logger.info(f"Repair request {repair_request_id} deleted")
    return success("Repair request deleted successfully.")
