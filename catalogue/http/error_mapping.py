"""Central error mapping for API error envelopes.

Single source of truth for mapping error kinds to HTTP statuses and the
public ``error`` strings returned in ``{"success": false, "error": ...}``
bodies. Handlers and routes import from here instead of hardcoding strings
or numbers.
"""

from __future__ import annotations

from catalogue.logic.errors import (
    CatalogueError,
    CollectionNotFound,
    MalformedInput,
    PersistenceFailure,
)

POST_IDS_REQUIRED = "Post IDs array is required"
POST_IDS_NOT_INTEGERS = "Post IDs must be integers"
POST_IDS_NOT_UNIQUE = "Post IDs must be unique"
TOO_MANY_POSTS = "Too many posts to reorder"
COLLECTION_NOT_FOUND = "Collection not found"
INTERNAL_ERROR = "Internal server error"

REORDER_SUCCESS_MESSAGE = "Post order updated successfully"

# Checked in order; subclasses must precede their bases
ERROR_MAP: list[tuple[type[CatalogueError], dict]] = [
    (MalformedInput, {"status": 400, "error": POST_IDS_REQUIRED}),
    (CollectionNotFound, {"status": 404, "error": COLLECTION_NOT_FOUND}),
    (PersistenceFailure, {"status": 500, "error": INTERNAL_ERROR}),
]


def lookup(exc: CatalogueError) -> tuple[int, str]:
    """Return ``(status, public_message)`` for a catalogue error.

    Caller errors expose their own message when one is set; server errors
    always use the opaque default.
    """
    for cls, entry in ERROR_MAP:
        if isinstance(exc, cls):
            status = int(entry["status"])
            if status < 500 and exc.message:
                return status, exc.message
            return status, str(entry["error"])
    return 500, INTERNAL_ERROR


__all__ = [
    "ERROR_MAP",
    "lookup",
    "POST_IDS_REQUIRED",
    "POST_IDS_NOT_INTEGERS",
    "POST_IDS_NOT_UNIQUE",
    "TOO_MANY_POSTS",
    "COLLECTION_NOT_FOUND",
    "INTERNAL_ERROR",
    "REORDER_SUCCESS_MESSAGE",
]
