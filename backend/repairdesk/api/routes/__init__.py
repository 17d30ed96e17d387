"""API routes."""

from fastapi import APIRouter

from repairdesk.api.routes import (
    articles,
    auth,
    categories,
    repair_requests,
    subcategories,
    support_requests,
    users,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/user", tags=["user"])
api_router.include_router(categories.router, prefix="/category", tags=["categories"])
api_router.include_router(subcategories.router, prefix="/subcategories", tags=["subcategories"])
api_router.include_router(articles.router, prefix="/article", tags=["articles"])
api_router.include_router(repair_requests.router, prefix="/repair-request", tags=["repair-requests"])
api_router.include_router(support_requests.router, prefix="/support-request", tags=["support-requests"])
