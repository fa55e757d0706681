"""Collection routes: read a collection in display order, reorder its posts."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from catalogue.http.error_mapping import POST_IDS_REQUIRED, REORDER_SUCCESS_MESSAGE
from catalogue.logic.errors import MalformedInput
from catalogue.logic.order_sequences import reorder_collection_posts
from catalogue.logic.repository_collections import (
    get_collection_with_posts,
    resolve_collection_id,
)
from catalogue.logic.validation import parse_reorder_request

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/collections/{slug}", summary="Get a collection with its posts in order")
def get_collection(slug: str) -> JSONResponse:
    detail = get_collection_with_posts(slug)
    return JSONResponse({"success": True, "data": detail.model_dump(mode="json")})


@router.put("/collections/{slug}/reorder", summary="Reorder the posts of a collection")
async def reorder_collection(slug: str, request: Request) -> JSONResponse:
    """Persist ``postIds`` as the collection's new post order.

    The body is validated before any database access. The slug is then
    resolved and the reorder runs as one transaction on a worker thread.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else None
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedInput(POST_IDS_REQUIRED, detail="body is not valid JSON") from e
    reorder_request = parse_reorder_request(payload)

    collection_id = await run_in_threadpool(resolve_collection_id, slug)
    result = await run_in_threadpool(reorder_collection_posts, collection_id, reorder_request.post_ids)
    logger.info(
        "collection_reordered slug=%s collection_id=%s count=%s request_id=%s",
        slug,
        result.collection_id,
        len(result.post_ids),
        getattr(request.state, "request_id", None),
    )
    return JSONResponse({"success": True, "message": REORDER_SUCCESS_MESSAGE})


__all__ = ["router", "get_collection", "reorder_collection"]
