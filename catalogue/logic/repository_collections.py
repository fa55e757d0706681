"""Collection data access helpers.

Maps external collection slugs to internal ids and reads a collection with
its posts in display order. Keeps route handlers free of inline SQL.
"""

from __future__ import annotations

import logging

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from catalogue.db.base import get_engine, session_dependency
from catalogue.logic.errors import CollectionNotFound, PersistenceFailure
from catalogue.models.collection import CollectionDetail, CollectionPost

logger = logging.getLogger(__name__)


def resolve_collection_id(slug: str, *, engine: Engine | None = None) -> int:
    """Return the internal id of the collection with ``slug``.

    Raises ``CollectionNotFound`` on a miss. No retries are attempted; a
    database error is reported as ``PersistenceFailure``.
    """
    if not slug:
        raise CollectionNotFound(slug)
    eng = engine or get_engine()
    try:
        with eng.connect() as conn:
            row = conn.execute(
                sql_text("SELECT id FROM collections WHERE slug = :slug"),
                {"slug": slug},
            ).fetchone()
    except SQLAlchemyError as e:
        logger.error("resolve_collection_id failed slug=%s", slug, exc_info=True)
        raise PersistenceFailure(detail=str(e)) from e
    if row is None:
        raise CollectionNotFound(slug)
    return int(row[0])


def get_collection_with_posts(slug: str) -> CollectionDetail:
    """Load a collection and its posts ordered by ascending position."""
    head = None
    rows: list = []
    try:
        with session_dependency() as session:
            head = session.execute(
                sql_text(
                    "SELECT id, title, slug, description, cover_image_url, is_public, created_at, updated_at "
                    "FROM collections WHERE slug = :slug"
                ),
                {"slug": slug},
            ).mappings().fetchone()
            if head is not None:
                rows = session.execute(
                    sql_text(
                        "SELECT p.id, p.title, p.slug, p.excerpt, p.cover_image_url, p.status, "
                        "p.created_at, p.updated_at, cp.position, cp.added_at "
                        "FROM collection_posts cp JOIN posts p ON p.id = cp.post_id "
                        "WHERE cp.collection_id = :cid ORDER BY cp.position ASC"
                    ),
                    {"cid": head["id"]},
                ).mappings().fetchall()
    except SQLAlchemyError as e:
        logger.error("get_collection_with_posts failed slug=%s", slug, exc_info=True)
        raise PersistenceFailure(detail=str(e)) from e

    if head is None:
        raise CollectionNotFound(slug)
    return CollectionDetail(
        **{**dict(head), "is_public": bool(head["is_public"])},
        posts=[CollectionPost(**dict(r)) for r in rows],
    )


__all__ = ["resolve_collection_id", "get_collection_with_posts"]
