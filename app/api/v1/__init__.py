"""Version 1 API routers."""

from fastapi import APIRouter

from app.api.v1 import filters, parsers, raw_items

api_router = APIRouter()
api_router.include_router(filters.router)
api_router.include_router(parsers.router)
api_router.include_router(raw_items.router)

__all__ = ["api_router"]
