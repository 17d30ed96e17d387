"""Support request schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class SupportRequestResource(BaseModel):
    id: int
    user_id: int
    date: datetime
    location: str
    detail: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
