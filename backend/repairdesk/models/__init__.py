"""Database models."""

from repairdesk.models.user import User
from repairdesk.models.revoked_token import RevokedToken
from repairdesk.models.password_reset import PasswordResetToken
from repairdesk.models.permission import Permission, RolePermission
from repairdesk.models.catalog import Article, Category, Image, Subcategory
from repairdesk.models.repair_request import REPAIR_STATUS_LABELS, RepairRequest, RepairStatus
from repairdesk.models.support_request import SupportRequest

__all__ = [
    "User",
    "RevokedToken",
    "PasswordResetToken",
    "Permission",
    "RolePermission",
    "Category",
    "Subcategory",
    "Article",
    "Image",
    "RepairRequest",
    "RepairStatus",
    "REPAIR_STATUS_LABELS",
    "SupportRequest",
]
