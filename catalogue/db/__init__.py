"""Database bootstrap utilities for the collection ordering service.

This module exposes convenience imports for engine/session construction and a
migrations runner that applies SQL files from the local migrations/
directory. The DB layer is intentionally minimal and does not leak ORM models
into route handlers.
"""

from catalogue.db.base import get_engine, get_sessionmaker, session_dependency
from catalogue.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "get_sessionmaker",
    "session_dependency",
    "apply_migrations",
]
