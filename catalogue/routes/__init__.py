"""APIRouter registration for the collection ordering service."""

from __future__ import annotations

from fastapi import APIRouter

from catalogue.routes.collections import router as collections_router

api_router = APIRouter()
api_router.include_router(collections_router, tags=["Collections"])

__all__ = ["api_router"]
