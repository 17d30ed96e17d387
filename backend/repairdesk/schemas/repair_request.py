"""Repair request schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, computed_field, field_serializer

from repairdesk.models.repair_request import REPAIR_STATUS_LABELS, RepairStatus
from repairdesk.schemas.catalog import ImageResource


class RepairRequestResource(BaseModel):
    id: int
    receipt_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: str
    customer_email: str
    article_name: str
    article_type: str
    article_brand: str
    article_model: str
    article_serialnumber: Optional[str] = None
    article_accesories: Optional[str] = None
    article_problem: str
    repair_status: RepairStatus
    repair_details: Optional[str] = None
    repair_price: Optional[Decimal] = None
    received_at: datetime
    repaired_at: Optional[datetime] = None
    images: List[ImageResource] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def repair_status_label(self) -> str:
        return REPAIR_STATUS_LABELS[self.repair_status]

    @field_serializer("repair_price")
    def serialize_price(self, price: Optional[Decimal]) -> Optional[float]:
        return float(price) if price is not None else None
