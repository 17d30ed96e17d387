"""Article routes. Reads are public; writes require the admin role."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repairdesk.api.payload import Payload
from repairdesk.core.config import settings
from repairdesk.core.exceptions import NotFound, ServerError
from repairdesk.core.rbac import RequireAdmin
from repairdesk.core.responses import success
from repairdesk.core.storage import ImageStorage, get_storage
from repairdesk.core.validation import validate
from repairdesk.db.base import is_valid_id
from repairdesk.db.session import DbSession
from repairdesk.models.catalog import Article, Category
from repairdesk.schemas.catalog import ArticleResource
from repairdesk.services.images import ImageUploadSession, delete_images, remove_files

logger = logging.getLogger(__name__)

router = APIRouter()

Storage = Annotated[ImageStorage, Depends(get_storage)]

ARTICLE_RULES = {
    "name": "required|string|min:3",
    "description": "required|string|min:10|max:255",
    "price": "required|numeric|min:0",
    "category_id": "required|integer|exists:categories,id",
    "subcategory_id": "required|integer|exists:subcategories,id",
    "images": "nullable|array",
    "images.*": f"image|mimes:jpeg,png,jpg|max:{settings.max_image_size_kb}",
}

IMAGE_DIRECTORY = "articles"


def _get_article(db, article_id: int) -> Article:
    if not is_valid_id(article_id):
        raise NotFound("Article not found.")
    article = db.query(Article).filter(Article.id == article_id, Article.not_deleted()).first()
    if article is None:
        raise NotFound("Article not found.")
    return article


@router.get("")
def list_articles(db: DbSession):
    articles = db.query(Article).filter(Article.not_deleted()).order_by(Article.id).all()
    return success(
        "List of articles obtained successfully.",
        {"articles": [ArticleResource.model_validate(a) for a in articles]},
    )


@router.get("/category/{name}")
def list_articles_by_category(name: str, db: DbSession):
    category = db.query(Category).filter(Category.name == name, Category.not_deleted()).first()
    if category is None:
        raise NotFound("Category not found.")
    articles = (
        db.query(Article)
        .filter(Article.category_id == category.id, Article.not_deleted())
        .order_by(Article.id)
        .all()
    )
    return success(
        "List of articles obtained successfully.",
        {"articles": [ArticleResource.model_validate(a) for a in articles]},
    )


@router.get("/{article_id}")
def get_article(article_id: int, db: DbSession):
    article = _get_article(db, article_id)
    return success(
        "Article retrieved successfully.",
        {"article": ArticleResource.model_validate(article)},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_article(principal: RequireAdmin, payload: Payload, db: DbSession, storage: Storage):
    """Create an article and store its images in one transaction."""
    data = validate(payload.data, ARTICLE_RULES, db=db, files=payload.files)
    uploads = data.pop("images", None) or []

    session = ImageUploadSession(db, storage)
    try:
        article = Article(**data)
        db.add(article)
        db.flush()
        session.store(uploads, Article.IMAGEABLE_TYPE, article.id, IMAGE_DIRECTORY)
        db.commit()
    except Exception:
        db.rollback()
        session.discard()
        logger.exception("Failed to create article")
        raise ServerError("Failed to create article.")

    db.refresh(article)
    logger.info(f"Article {article.id} created by user ID {principal.user_id}")
    return success(
        "Article created successfully.",
        {"article": ArticleResource.model_validate(article)},
        status=status.HTTP_201_CREATED,
    )


@router.put("/{article_id}")
def update_article(
    article_id: int,
    principal: RequireAdmin,
    payload: Payload,
    db: DbSession,
    storage: Storage,
):
    """Update an article. Uploaded images replace the existing ones."""
    article = _get_article(db, article_id)
    data = validate(payload.data, ARTICLE_RULES, db=db, files=payload.files)
    uploads = data.pop("images", None) or []

    session = ImageUploadSession(db, storage)
    try:
        for key, value in data.items():
            setattr(article, key, value)
        replaced_paths = delete_images(db, article.images) if uploads else []
        session.store(uploads, Article.IMAGEABLE_TYPE, article.id, IMAGE_DIRECTORY)
        db.commit()
    except Exception:
        db.rollback()
        session.discard()
        logger.exception(f"Failed to update article {article_id}")
        raise ServerError("Failed to update article.")

    remove_files(storage, replaced_paths)

    db.refresh(article)
    return success(
        "Article updated successfully.",
        {"article": ArticleResource.model_validate(article)},
    )


@router.delete("/{article_id}")
def delete_article(article_id: int, principal: RequireAdmin, db: DbSession, storage: Storage):
    article = _get_article(db, article_id)
    try:
        paths = delete_images(db, article.images)
        article.soft_delete()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Failed to delete article {article_id}")
        raise ServerError("Article could not be deleted.")

    remove_files(storage, paths)

    logger.info(f"Article {article_id} deleted by user ID {principal.user_id}")
    return success("Article deleted successfully.")
