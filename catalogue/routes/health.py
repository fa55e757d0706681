"""Health endpoint reporting database reachability."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from catalogue.db.base import get_engine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health() -> dict:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error("Health DB check failed", exc_info=True)
        return {"status": "degraded", "db": False, "reason": type(e).__name__}
    return {"status": "ok", "db": True}


__all__ = ["router", "health"]
