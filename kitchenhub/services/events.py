"""In-process domain event fan-out.

The core never formats or delivers notifications. It publishes events here and
whatever messaging component is wired in (email, SMS, chat) subscribes.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

STAGE_ADVANCED = "StageAdvanced"
APPLICATION_REVIEWED = "ApplicationReviewed"
RESERVATION_CREATED = "ReservationCreated"
RESERVATION_CONFIRMED = "ReservationConfirmed"
RESERVATION_CANCELLED = "ReservationCancelled"

EventHandler = Callable[[str, dict[str, Any]], None]

_subscribers: dict[str, list[EventHandler]] = defaultdict(list)


def subscribe(event_type: str, handler: EventHandler) -> None:
    _subscribers[event_type].append(handler)


def unsubscribe(event_type: str, handler: EventHandler) -> None:
    handlers = _subscribers.get(event_type, [])
    if handler in handlers:
        handlers.remove(handler)


def publish_event(event_type: str, payload: dict[str, Any]) -> None:
    """Deliver an event to every subscriber.

    Called after the state change has been committed. A failing subscriber is
    logged and does not affect the others or the caller.
    """
    logger.info("domain_event", event_type=event_type, **payload)
    for handler in list(_subscribers.get(event_type, [])):
        try:
            handler(event_type, payload)
        except Exception:
            logger.exception("event_handler_failed", event_type=event_type, handler=getattr(handler, "__name__", repr(handler)))
