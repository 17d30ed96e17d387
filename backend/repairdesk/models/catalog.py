"""Catalog models: categories, subcategories, articles and images."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairdesk.db.base import Base, SoftDeleteMixin, TimestampMixin


class Category(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    subcategories: Mapped[List["Subcategory"]] = relationship(back_populates="category")
    articles: Mapped[List["Article"]] = relationship(back_populates="category")


class Subcategory(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "subcategories"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category: Mapped[Category] = relationship(back_populates="subcategories")
    articles: Mapped[List["Article"]] = relationship(back_populates="subcategory")


class Image(Base, TimestampMixin):
    """Stored image owned by an article or a repair request."""

    __tablename__ = "images"

    id: Mapped[int] = mapped_column(primary_key=True)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    alt: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    imageable_type: Mapped[str] = mapped_column(String(50), nullable=False)
    imageable_id: Mapped[int] = mapped_column(Integer, nullable=False)


class Article(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "articles"

    IMAGEABLE_TYPE = "article"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True, nullable=False)
    subcategory_id: Mapped[int] = mapped_column(ForeignKey("subcategories.id"), index=True, nullable=False)

    category: Mapped[Category] = relationship(back_populates="articles")
    subcategory: Mapped[Subcategory] = relationship(back_populates="articles")
    images: Mapped[List[Image]] = relationship(
        primaryjoin="and_(Image.imageable_type == 'article', "
                    "foreign(Image.imageable_id) == Article.id)",
        viewonly=True,
        order_by="Image.id",
    )
