"""Error taxonomy for collection lookups and reordering.

Logic modules raise these; the HTTP layer maps each class to a status code
and a public message via ``catalogue.http.error_mapping``. The ``detail``
attribute carries server-side context and is never sent to clients.
"""

from __future__ import annotations

from typing import Optional


class CatalogueError(Exception):
    """Base class for errors surfaced to API callers."""

    def __init__(self, message: str = "", *, detail: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message
        self.detail = detail


class MalformedInput(CatalogueError):
    """Request payload is missing, mis-shaped, or otherwise unusable."""


class MembershipMismatch(MalformedInput):
    """Submitted post ids differ from the collection's current membership."""

    def __init__(self, missing: list[int], unexpected: list[int]) -> None:
        super().__init__(
            "Post IDs must match the posts in the collection",
            detail=f"missing={missing} unexpected={unexpected}",
        )
        self.missing = missing
        self.unexpected = unexpected


class CollectionNotFound(CatalogueError):
    def __init__(self, slug: str) -> None:
        super().__init__("Collection not found", detail=f"slug={slug!r}")
        self.slug = slug


class PersistenceFailure(CatalogueError):
    """Any database error; the enclosing transaction has been rolled back."""


__all__ = [
    "CatalogueError",
    "MalformedInput",
    "MembershipMismatch",
    "CollectionNotFound",
    "PersistenceFailure",
]
