"""Catalog schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, field_serializer


class ImageResource(BaseModel):
    id: int
    path: str
    title: Optional[str] = None
    alt: Optional[str] = None

    model_config = {"from_attributes": True}


class CategoryResource(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SubcategoryResource(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[CategoryResource] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ArticleResource(BaseModel):
    id: int
    category_id: int
    subcategory_id: int
    name: str
    description: str
    price: Decimal
    images: List[ImageResource] = []

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)
