"""User schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, computed_field

from repairdesk.core.rbac import ROLE_LABELS, UserRole


class UserResource(BaseModel):
    """Public representation of a user. Never includes the password hash."""

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def role_label(self) -> str:
        return ROLE_LABELS[self.role]
