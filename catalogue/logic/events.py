"""Post-commit notifications for collection changes.

The reorder engine calls ``publish`` once its transaction has committed.
Each event is logged and kept in a bounded ring of recent events, so the
latest activity can be inspected in-process without an external broker.
When the ring is full the oldest entries drop off.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Mapping
import logging
import threading

logger = logging.getLogger(__name__)

COLLECTION_REORDERED = "collection.reordered"

RECENT_EVENTS_LIMIT = 256

# Reorders publish from worker threads
_recent: Deque[Dict[str, Any]] = deque(maxlen=RECENT_EVENTS_LIMIT)
_recent_lock = threading.Lock()


def publish(event_type: str, payload: Mapping[str, Any]) -> None:
    event = {"type": event_type, "payload": dict(payload)}
    with _recent_lock:
        _recent.append(event)
    logger.info(
        "event_published type=%s %s",
        event_type,
        " ".join(f"{k}={v}" for k, v in event["payload"].items()),
    )


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return the recent events, oldest first; optionally empty the ring."""
    with _recent_lock:
        events = list(_recent)
        if clear:
            _recent.clear()
    return events


__all__ = [
    "COLLECTION_REORDERED",
    "RECENT_EVENTS_LIMIT",
    "publish",
    "get_buffered_events",
]
