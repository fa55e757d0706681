"""Functional tests for the two-phase collection reorder engine.

Exercises ``reorder_collection_posts`` directly against SQLite with the
``(collection_id, position)`` UNIQUE constraint in place, so any intermediate
collision would surface as an IntegrityError.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text as sql_text
from sqlalchemy.exc import IntegrityError

from catalogue.logic.errors import MalformedInput, MembershipMismatch, PersistenceFailure
from catalogue.logic.events import (
    COLLECTION_REORDERED,
    RECENT_EVENTS_LIMIT,
    get_buffered_events,
    publish,
)
from catalogue.logic.order_sequences import reorder_collection_posts


def _expected(order: list[int]) -> dict[int, int]:
    return {pid: idx + 1 for idx, pid in enumerate(order)}


@pytest.mark.parametrize(
    "permute",
    [
        lambda ids: list(reversed(ids)),
        lambda ids: ids[1:] + ids[:1],
        lambda ids: [ids[1], ids[0]] + ids[2:],
        lambda ids: list(ids),
    ],
    ids=["reverse", "rotate", "swap-first-two", "identity"],
)
def test_reorder_applies_permutation(seed, read_positions, permute):
    col = seed(5)
    order = permute(col["post_ids"])

    result = reorder_collection_posts(col["id"], order)

    assert read_positions(col["id"]) == _expected(order)
    assert result.post_ids == order
    assert result.updated_rows == 2 * len(order)


def test_naive_single_pass_would_collide(engine, seed):
    # The constraint is live: writing a final position another row still holds fails
    col = seed(2)
    a = col["post_ids"][0]
    with pytest.raises(IntegrityError):
        with engine.begin() as conn:
            conn.execute(
                sql_text("UPDATE collection_posts SET position = 2 WHERE collection_id = :c AND post_id = :p"),
                {"c": col["id"], "p": a},
            )


def test_swap_succeeds_under_unique_constraint(seed, read_positions):
    col = seed(2)
    a, b = col["post_ids"]

    reorder_collection_posts(col["id"], [b, a])

    assert read_positions(col["id"]) == {b: 1, a: 2}


def test_reorder_is_idempotent(seed, read_positions, record_statements):
    col = seed(4)
    order = [col["post_ids"][i] for i in (2, 0, 3, 1)]

    reorder_collection_posts(col["id"], order)
    first = read_positions(col["id"])
    with record_statements() as log:
        reorder_collection_posts(col["id"], order)
    second = read_positions(col["id"])

    assert first == second == _expected(order)
    updates = [s for s in log["statements"] if s.lstrip().upper().startswith("UPDATE")]
    assert len(updates) == 2 * len(order)


def test_statements_run_displacement_then_settlement(seed, record_statements):
    col = seed(3)
    order = list(reversed(col["post_ids"]))
    with record_statements() as log:
        reorder_collection_posts(col["id"], order, position_offset=500)

    written = [
        params[0]
        for stmt, params in zip(log["statements"], log["parameters"])
        if stmt.lstrip().upper().startswith("UPDATE")
    ]
    # SQLite binds positionally: position is the first parameter
    assert written == [501, 502, 503, 1, 2, 3]


@pytest.mark.parametrize("phase", ["displacement", "settlement"])
def test_failure_in_either_phase_rolls_back(seed, read_positions, inject_failure, phase):
    col = seed(4)
    before = read_positions(col["id"])
    order = list(reversed(col["post_ids"]))
    # Fail on the last row so earlier updates of the same phase have already run
    with inject_failure(col["id"], order[-1], phase=phase):
        with pytest.raises(PersistenceFailure):
            reorder_collection_posts(col["id"], order)

    assert read_positions(col["id"]) == before


def test_failed_reorder_leaves_collection_usable(seed, read_positions, inject_failure):
    col = seed(3)
    order = [col["post_ids"][2], col["post_ids"][0], col["post_ids"][1]]
    with inject_failure(col["id"], order[0], phase="settlement"):
        with pytest.raises(PersistenceFailure):
            reorder_collection_posts(col["id"], order)

    reorder_collection_posts(col["id"], order)
    assert read_positions(col["id"]) == _expected(order)


def test_missing_member_is_rejected_without_changes(seed, read_positions):
    col = seed(3)
    before = read_positions(col["id"])

    with pytest.raises(MembershipMismatch) as excinfo:
        reorder_collection_posts(col["id"], col["post_ids"][:2])

    assert excinfo.value.missing == [col["post_ids"][2]]
    assert excinfo.value.unexpected == []
    assert read_positions(col["id"]) == before


def test_foreign_post_is_rejected_without_changes(seed, read_positions):
    col = seed(3)
    other = seed(1)
    before = read_positions(col["id"])

    with pytest.raises(MembershipMismatch) as excinfo:
        reorder_collection_posts(col["id"], col["post_ids"] + other["post_ids"])

    assert excinfo.value.unexpected == other["post_ids"]
    assert isinstance(excinfo.value, MalformedInput)
    assert read_positions(col["id"]) == before


def test_empty_and_duplicate_ids_rejected_before_database(seed, record_statements):
    col = seed(2)
    with record_statements() as log:
        with pytest.raises(MalformedInput):
            reorder_collection_posts(col["id"], [])
        with pytest.raises(MalformedInput):
            reorder_collection_posts(col["id"], [col["post_ids"][0], col["post_ids"][0]])
    assert log["statements"] == []
    assert log["checkouts"] == 0


def test_collection_larger_than_offset_is_rejected(seed, read_positions):
    col = seed(3)
    before = read_positions(col["id"])
    with pytest.raises(MalformedInput):
        reorder_collection_posts(col["id"], col["post_ids"], position_offset=3)
    assert read_positions(col["id"]) == before


def test_stored_position_in_staging_range_is_rejected_before_writes(engine, seed, read_positions, record_statements):
    col = seed(3)
    last = col["post_ids"][2]
    # Gapped positions {1, 2, 5}: 5 lies in the staging range 5..7 for offset 4
    with engine.begin() as conn:
        conn.execute(
            sql_text("UPDATE collection_posts SET position = 5 WHERE collection_id = :c AND post_id = :p"),
            {"c": col["id"], "p": last},
        )
    before = read_positions(col["id"])

    with record_statements() as log:
        with pytest.raises(PersistenceFailure) as excinfo:
            reorder_collection_posts(col["id"], list(reversed(col["post_ids"])), position_offset=4)

    assert "staging range" in excinfo.value.detail
    assert not [s for s in log["statements"] if s.lstrip().upper().startswith("UPDATE")]
    assert read_positions(col["id"]) == before


def test_gapped_positions_below_offset_are_compacted(engine, seed, read_positions):
    col = seed(3)
    with engine.begin() as conn:
        conn.execute(
            sql_text("UPDATE collection_posts SET position = 9 WHERE collection_id = :c AND post_id = :p"),
            {"c": col["id"], "p": col["post_ids"][2]},
        )
    order = list(reversed(col["post_ids"]))

    reorder_collection_posts(col["id"], order, position_offset=100)

    assert read_positions(col["id"]) == _expected(order)


def test_other_collections_sharing_a_post_are_untouched(engine, seed, read_positions):
    col = seed(3)
    other = seed(2)
    shared = col["post_ids"][0]
    with engine.begin() as conn:
        conn.execute(
            sql_text("INSERT INTO collection_posts (collection_id, post_id, position) VALUES (:c, :p, 3)"),
            {"c": other["id"], "p": shared},
        )
    other_before = read_positions(other["id"])

    reorder_collection_posts(col["id"], list(reversed(col["post_ids"])))

    assert read_positions(other["id"]) == other_before


def test_commit_publishes_reordered_event(seed):
    get_buffered_events(clear=True)
    col = seed(2)
    order = list(reversed(col["post_ids"]))

    reorder_collection_posts(col["id"], order)

    events = [e for e in get_buffered_events() if e["type"] == COLLECTION_REORDERED]
    assert events == [{"type": COLLECTION_REORDERED, "payload": {"collection_id": col["id"], "post_ids": order}}]


def test_failed_reorder_publishes_nothing(seed, inject_failure):
    col = seed(2)
    order = list(reversed(col["post_ids"]))
    get_buffered_events(clear=True)
    with inject_failure(col["id"], order[0], phase="displacement"):
        with pytest.raises(PersistenceFailure):
            reorder_collection_posts(col["id"], order)
    assert get_buffered_events() == []


def test_recent_events_stay_bounded():
    get_buffered_events(clear=True)
    for i in range(RECENT_EVENTS_LIMIT + 10):
        publish(COLLECTION_REORDERED, {"collection_id": i, "post_ids": [i]})

    events = get_buffered_events()

    assert len(events) == RECENT_EVENTS_LIMIT
    assert events[0]["payload"]["collection_id"] == 10
    assert events[-1]["payload"]["collection_id"] == RECENT_EVENTS_LIMIT + 9
    assert get_buffered_events() == []


def test_concurrent_reorders_of_different_collections(seed, read_positions):
    cols = [seed(6), seed(6)]
    orders = [list(reversed(cols[0]["post_ids"])), cols[1]["post_ids"][3:] + cols[1]["post_ids"][:3]]
    barrier = threading.Barrier(2)

    def run(i: int) -> None:
        barrier.wait()
        for _ in range(5):
            reorder_collection_posts(cols[i]["id"], orders[i])

    with ThreadPoolExecutor(max_workers=2) as pool:
        for fut in [pool.submit(run, 0), pool.submit(run, 1)]:
            fut.result(timeout=30)

    assert read_positions(cols[0]["id"]) == _expected(orders[0])
    assert read_positions(cols[1]["id"]) == _expected(orders[1])


def test_concurrent_reorders_of_same_collection_last_writer_wins(seed, read_positions):
    col = seed(5)
    first = list(reversed(col["post_ids"]))
    second = col["post_ids"][2:] + col["post_ids"][:2]
    barrier = threading.Barrier(2)

    def run(order: list[int]) -> None:
        barrier.wait()
        reorder_collection_posts(col["id"], order)

    with ThreadPoolExecutor(max_workers=2) as pool:
        for fut in [pool.submit(run, first), pool.submit(run, second)]:
            fut.result(timeout=30)

    final = read_positions(col["id"])
    assert final in (_expected(first), _expected(second))
    assert sorted(final.values()) == [1, 2, 3, 4, 5]
