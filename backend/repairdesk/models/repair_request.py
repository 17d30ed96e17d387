"""Repair request model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Dict, List, Optional

from sqlalchemy import DateTime, Enum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairdesk.db.base import Base, SoftDeleteMixin, TimestampMixin
from repairdesk.models.catalog import Image


class RepairStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    WAITING_PARTS = "waiting_parts"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELED = "canceled"


REPAIR_STATUS_LABELS: Dict[RepairStatus, str] = {
    RepairStatus.PENDING: "Pending review",
    RepairStatus.IN_PROGRESS: "Under repair",
    RepairStatus.WAITING_PARTS: "Waiting for parts",
    RepairStatus.COMPLETED: "Repaired",
    RepairStatus.DELIVERED: "Delivered to the client",
    RepairStatus.CANCELED: "Canceled",
}


def receipt_number_for(repair_request_id: int) -> str:
    return f"RR-{repair_request_id:012d}"


class RepairRequest(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "repair_requests"

    IMAGEABLE_TYPE = "repair_request"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Assigned from the row id after the first flush
    receipt_number: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)

    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)

    article_name: Mapped[str] = mapped_column(String(255), nullable=False)
    article_type: Mapped[str] = mapped_column(String(255), nullable=False)
    article_brand: Mapped[str] = mapped_column(String(255), nullable=False)
    article_model: Mapped[str] = mapped_column(String(255), nullable=False)
    article_serialnumber: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    article_accesories: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    article_problem: Mapped[str] = mapped_column(Text, nullable=False)

    repair_status: Mapped[RepairStatus] = mapped_column(
        Enum(RepairStatus, values_callable=lambda e: [m.value for m in e]),
        default=RepairStatus.PENDING,
        nullable=False,
    )
    repair_details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    repair_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    repaired_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    images: Mapped[List[Image]] = relationship(
        primaryjoin="and_(Image.imageable_type == 'repair_request', "
                    "foreign(Image.imageable_id) == RepairRequest.id)",
        viewonly=True,
        order_by="Image.id",
    )
