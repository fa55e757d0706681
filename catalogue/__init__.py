"""FastAPI application package for the collection ordering service.

This package exposes a small FastAPI application factory. It wires only
cross-cutting middleware (request-id and CORS) and mounts the API routers.
Business logic lives in `catalogue/logic/` and route handlers in
`catalogue/routes/`.
"""

from __future__ import annotations

from catalogue.main import create_app

__all__ = ["create_app"]
