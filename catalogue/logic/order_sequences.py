"""Collection post ordering (reorder engine).

Rewrites the ``position`` of every membership row of one collection so the
final positions are exactly ``1..N`` in the caller's order. Positions are
unique per collection (``uq_collection_posts_position``), so the rewrite runs
in two phases inside one transaction:

1. displacement: move every row to ``offset + i + 1``, a range disjoint from
   any legitimate position;
2. settlement: write the final ``i + 1``.

No statement can then collide with a position another row still holds,
whatever order the statements run in. Any failure rolls the whole
transaction back; nothing is retried here.
"""

from __future__ import annotations

from typing import Optional, Sequence
import logging

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from catalogue.config import load_config
from catalogue.db.base import get_engine
from catalogue.http.error_mapping import POST_IDS_NOT_UNIQUE, POST_IDS_REQUIRED, TOO_MANY_POSTS
from catalogue.logic.errors import MalformedInput, MembershipMismatch, PersistenceFailure
from catalogue.logic.events import COLLECTION_REORDERED, publish
from catalogue.models.reorder import ReorderResult

logger = logging.getLogger(__name__)

_UPDATE_POSITION = sql_text(
    "UPDATE collection_posts SET position = :pos WHERE collection_id = :cid AND post_id = :pid"
)


def _apply_lock_timeout(conn: Connection, lock_timeout_ms: int) -> None:
    # Transaction-scoped; only PostgreSQL supports a lock wait limit
    if lock_timeout_ms > 0 and conn.dialect.name == "postgresql":
        conn.execute(
            sql_text("SELECT set_config('lock_timeout', :v, true)"),
            {"v": f"{int(lock_timeout_ms)}ms"},
        )


def _lock_membership(conn: Connection, collection_id: int) -> dict[int, int]:
    """Return ``{post_id: position}`` for the collection, row-locking where supported.

    A concurrent reorder of the same collection blocks on these locks until
    this transaction ends. SQLite has no FOR UPDATE; its writer lock serializes
    the updates instead.
    """
    lock_clause = "" if conn.dialect.name == "sqlite" else " FOR UPDATE"
    rows = conn.execute(
        sql_text(
            "SELECT post_id, position FROM collection_posts WHERE collection_id = :cid ORDER BY post_id"
            + lock_clause
        ),
        {"cid": collection_id},
    ).fetchall()
    return {int(r[0]): int(r[1]) for r in rows}


def _check_staging_range(collection_id: int, current: dict[int, int], position_offset: int) -> None:
    # Stored positions may have gaps; any of them inside the staging range would collide in phase 1
    highest = max(current.values(), default=0)
    if highest > position_offset:
        raise PersistenceFailure(
            detail=(
                f"stored position {highest} of collection_id={collection_id} "
                f"overlaps staging range above offset={position_offset}"
            )
        )


def _verify_membership(post_ids: Sequence[int], current: Sequence[int]) -> None:
    wanted = set(post_ids)
    stored = set(current)
    if wanted != stored:
        raise MembershipMismatch(
            missing=sorted(stored - wanted),
            unexpected=sorted(wanted - stored),
        )


def _write_positions(conn: Connection, collection_id: int, post_ids: Sequence[int], base: int) -> int:
    """Set position ``base + i + 1`` for each post; every update must hit one row."""
    for idx, pid in enumerate(post_ids):
        result = conn.execute(
            _UPDATE_POSITION,
            {"pos": int(base + idx + 1), "cid": collection_id, "pid": int(pid)},
        )
        if result.rowcount != 1:
            raise PersistenceFailure(
                detail=f"membership row missing collection_id={collection_id} post_id={pid} rowcount={result.rowcount}"
            )
    return len(post_ids)


def reorder_collection_posts(
    collection_id: int,
    post_ids: Sequence[int],
    *,
    engine: Optional[Engine] = None,
    position_offset: Optional[int] = None,
    lock_timeout_ms: Optional[int] = None,
) -> ReorderResult:
    """Persist ``post_ids`` as the new order of ``collection_id``.

    ``post_ids`` must be exactly the collection's current members, without
    duplicates. On success exactly ``2N`` row updates are committed as one
    unit; on any failure zero rows change.

    Raises ``MalformedInput`` for empty/duplicate/oversized input,
    ``MembershipMismatch`` when the ids differ from the stored membership and
    ``PersistenceFailure`` for any database error, or when a stored position
    already lies in the staging range above ``position_offset``.
    """
    ids = [int(p) for p in post_ids]
    if not ids:
        raise MalformedInput(POST_IDS_REQUIRED)
    if len(set(ids)) != len(ids):
        raise MalformedInput(POST_IDS_NOT_UNIQUE)

    if position_offset is None or lock_timeout_ms is None:
        reorder_cfg = load_config().reorder
        position_offset = reorder_cfg.position_offset if position_offset is None else position_offset
        lock_timeout_ms = reorder_cfg.lock_timeout_ms if lock_timeout_ms is None else lock_timeout_ms
    # The staging range must stay clear of every legitimate position 1..N
    if len(ids) >= int(position_offset):
        raise MalformedInput(TOO_MANY_POSTS, detail=f"count={len(ids)} offset={position_offset}")

    eng = engine or get_engine()
    updated = 0
    try:
        with eng.begin() as conn:
            _apply_lock_timeout(conn, int(lock_timeout_ms))
            current = _lock_membership(conn, collection_id)
            _verify_membership(ids, list(current))
            _check_staging_range(collection_id, current, int(position_offset))
            # Phase 1: displace into the staging range
            updated += _write_positions(conn, collection_id, ids, base=int(position_offset))
            # Phase 2: settle final contiguous 1-based positions
            updated += _write_positions(conn, collection_id, ids, base=0)
    except MembershipMismatch as e:
        logger.info(
            "reorder_rejected collection_id=%s reason=membership_mismatch %s",
            collection_id,
            e.detail,
        )
        raise
    except PersistenceFailure as e:
        logger.error("reorder_failed collection_id=%s detail=%s; rolled back", collection_id, e.detail)
        raise
    except SQLAlchemyError as e:
        logger.error("reorder_failed collection_id=%s; rolled back", collection_id, exc_info=True)
        raise PersistenceFailure(detail=str(e)) from e

    logger.info("reorder_committed collection_id=%s count=%s updates=%s", collection_id, len(ids), updated)
    publish(COLLECTION_REORDERED, {"collection_id": collection_id, "post_ids": ids})
    return ReorderResult(collection_id=collection_id, post_ids=ids, updated_rows=updated)


__all__ = ["reorder_collection_posts"]
