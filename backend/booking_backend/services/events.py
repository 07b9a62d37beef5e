"""
backend/booking_backend/services/events.py

Event emitter: pushes events to a Redis queue for downstream consumers
(notifications, calendar sync).

Queue:
- events:p2p — booking and availability events, one JSON object per item

Emitting never raises: a Redis outage must not fail the request that
produced the event.
"""

import json
import time
import logging

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

EVENTS_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """Push an event to `events:p2p`."""
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(EVENTS_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {EVENTS_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
