"""FastAPI routes for the sync service."""

from fastapi import APIRouter

from .sync import router as sync_router

api_router = APIRouter(prefix="/api")
api_router.include_router(sync_router, tags=["Sync"])

__all__ = [
    "api_router",
    "sync_router",
]
