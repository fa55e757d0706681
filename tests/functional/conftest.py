"""Functional test bootstrap for the collection ordering service.

Functional tests run against a file-backed SQLite database shared across the
process. The SQLite migrations are applied once at session start so the
schema exists before tests create the FastAPI app via TestClient. Each test
seeds its own collection under a unique slug, so tests never share rows.
"""

from __future__ import annotations

import os
import uuid
from contextlib import contextmanager
from typing import Iterator

import pytest
from sqlalchemy import event
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

for _key in ("DATABASE_URL", "REORDER_POSITION_OFFSET", "REORDER_LOCK_TIMEOUT_MS", "CORS_ORIGINS"):
    os.environ.pop(_key, None)
# Migrations are applied explicitly below, never by app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap(tmp_path_factory: pytest.TempPathFactory) -> Iterator[Engine]:
    """Session-level bootstrap: point the app at a fresh DB and apply migrations."""
    from catalogue.db.base import get_engine
    from catalogue.db.migrations_runner import SQLITE_MIGRATIONS_DIR, apply_migrations

    root = tmp_path_factory.mktemp("db")
    url = f"sqlite:///{root / 'functional_tests.db'}"
    os.environ["TEST_DATABASE_URL"] = url

    engine = get_engine(url)
    apply_migrations(engine, migrations_dir=SQLITE_MIGRATIONS_DIR, journal_path=root / "_journal.json")
    yield engine
    engine.dispose()


@pytest.fixture()
def engine(functional_sqlite_bootstrap: Engine) -> Engine:
    return functional_sqlite_bootstrap


@pytest.fixture()
def client(functional_sqlite_bootstrap: Engine):
    from fastapi.testclient import TestClient
    from catalogue.main import create_app

    return TestClient(create_app())


def seed_collection(engine: Engine, size: int, *, slug: str | None = None) -> dict:
    """Insert a collection with ``size`` posts at positions 1..size.

    Returns ``{"id", "slug", "post_ids"}`` with ``post_ids`` in position order.
    """
    slug = slug or f"col-{uuid.uuid4().hex[:12]}"
    post_ids: list[int] = []
    with engine.begin() as conn:
        cid = conn.execute(
            sql_text("INSERT INTO collections (slug, title) VALUES (:slug, :title)"),
            {"slug": slug, "title": slug.title()},
        ).lastrowid
        for i in range(size):
            pid = conn.execute(
                sql_text("INSERT INTO posts (title, slug, status) VALUES (:t, :s, 'published')"),
                {"t": f"Post {i + 1}", "s": f"{slug}-post-{i + 1}"},
            ).lastrowid
            conn.execute(
                sql_text("INSERT INTO collection_posts (collection_id, post_id, position) VALUES (:c, :p, :pos)"),
                {"c": cid, "p": pid, "pos": i + 1},
            )
            post_ids.append(int(pid))
    return {"id": int(cid), "slug": slug, "post_ids": post_ids}


def positions(engine: Engine, collection_id: int) -> dict[int, int]:
    """Return ``{post_id: position}`` for a collection."""
    with engine.connect() as conn:
        rows = conn.execute(
            sql_text("SELECT post_id, position FROM collection_posts WHERE collection_id = :c"),
            {"c": collection_id},
        ).fetchall()
    return {int(r[0]): int(r[1]) for r in rows}


@contextmanager
def failing_update(engine: Engine, collection_id: int, post_id: int, *, phase: str) -> Iterator[None]:
    """Install a trigger that aborts the UPDATE of one membership row.

    ``phase="displacement"`` fails when the row moves into the staging range,
    ``phase="settlement"`` when it receives its final position.
    """
    name = f"fail_{uuid.uuid4().hex[:8]}"
    guard = "NEW.position > 1000000" if phase == "displacement" else "NEW.position <= 1000000"
    with engine.begin() as conn:
        conn.exec_driver_sql(
            f"CREATE TRIGGER {name} BEFORE UPDATE OF position ON collection_posts "
            f"WHEN NEW.collection_id = {int(collection_id)} AND NEW.post_id = {int(post_id)} AND {guard} "
            "BEGIN SELECT RAISE(ABORT, 'injected failure'); END"
        )
    try:
        yield
    finally:
        with engine.begin() as conn:
            conn.exec_driver_sql(f"DROP TRIGGER IF EXISTS {name}")


@contextmanager
def statement_log(engine: Engine) -> Iterator[dict]:
    """Record executed statements and pool checkouts on ``engine``."""
    log: dict = {"statements": [], "parameters": [], "checkouts": 0}

    def _on_execute(conn, cursor, statement, parameters, context, executemany):  # type: ignore[no-untyped-def]
        log["statements"].append(statement)
        log["parameters"].append(parameters)

    def _on_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-untyped-def]
        log["checkouts"] += 1

    event.listen(engine, "before_cursor_execute", _on_execute)
    event.listen(engine, "checkout", _on_checkout)
    try:
        yield log
    finally:
        event.remove(engine, "before_cursor_execute", _on_execute)
        event.remove(engine, "checkout", _on_checkout)


@pytest.fixture()
def seed(engine: Engine):
    def _seed(size: int, *, slug: str | None = None) -> dict:
        return seed_collection(engine, size, slug=slug)

    return _seed


@pytest.fixture()
def read_positions(engine: Engine):
    def _read(collection_id: int) -> dict[int, int]:
        return positions(engine, collection_id)

    return _read


@pytest.fixture()
def inject_failure(engine: Engine):
    def _inject(collection_id: int, post_id: int, *, phase: str):
        return failing_update(engine, collection_id, post_id, phase=phase)

    return _inject


@pytest.fixture()
def record_statements(engine: Engine):
    def _record():
        return statement_log(engine)

    return _record
