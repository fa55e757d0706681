from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError

from catalogue.config import load_config
from catalogue.db.base import get_engine
from catalogue.db.migrations_runner import apply_migrations
from catalogue.http.cors import apply_cors
from catalogue.http.envelope import (
    handle_catalogue_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from catalogue.http.request_id import RequestIdMiddleware
from catalogue.logging_setup import configure_logging
from catalogue.logic.errors import CatalogueError
from catalogue.routes import api_router
from catalogue.routes.health import router as health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # Apply migrations on startup (guarded) to avoid import-time side effects
    cfg = load_config()
    if cfg.auto_apply_migrations:
        engine = get_engine(cfg.database.dsn)
        try:
            applied = apply_migrations(engine)
        except Exception:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))
    else:
        logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
    yield


def create_app() -> FastAPI:
    """Build the FastAPI application with handlers, middleware and routers."""
    configure_logging()
    cfg = load_config()

    app = FastAPI(title="Collection ordering service", lifespan=_lifespan)
    app.add_exception_handler(CatalogueError, handle_catalogue_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    apply_cors(app, origins=cfg.cors.origins)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api")
    # Health endpoint (out of prefix for simplicity in local runs)
    app.include_router(health_router)
    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
