"""Shape validation for reorder payloads.

Runs before any database access so malformed requests never open a
connection or a transaction.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from catalogue.http.error_mapping import (
    POST_IDS_NOT_INTEGERS,
    POST_IDS_NOT_UNIQUE,
    POST_IDS_REQUIRED,
)
from catalogue.logic.errors import MalformedInput
from catalogue.models.reorder import ReorderRequest


def parse_reorder_request(payload: Any) -> ReorderRequest:
    """Validate a decoded JSON body and return the typed request.

    - ``postIds`` must be present, a JSON array, and non-empty
    - every element must be an integer post id
    - ids must not repeat
    """
    if not isinstance(payload, dict):
        raise MalformedInput(POST_IDS_REQUIRED, detail="body is not a JSON object")
    raw = payload.get("postIds")
    if not isinstance(raw, list) or not raw:
        raise MalformedInput(POST_IDS_REQUIRED, detail=f"postIds={type(raw).__name__}")

    try:
        request = ReorderRequest.model_validate({"postIds": raw})
    except PydanticValidationError as e:
        raise MalformedInput(POST_IDS_NOT_INTEGERS, detail=str(e)) from e

    seen: set[int] = set()
    dupes: list[int] = []
    for pid in request.post_ids:
        if pid in seen:
            dupes.append(pid)
        seen.add(pid)
    if dupes:
        raise MalformedInput(POST_IDS_NOT_UNIQUE, detail=f"duplicates={dupes}")
    return request


__all__ = ["parse_reorder_request"]
