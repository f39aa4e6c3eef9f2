from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import AsyncIterator
from typing import Any


logger = logging.getLogger(__name__)

REQUEST_CREATED = "request.created"
REQUEST_ACCEPTED = "request.accepted"
REQUEST_DECLINED = "request.declined"
REQUESTS_PURGED = "requests.purged"


class Subscription:
    def __init__(self, broadcaster: "EventBroadcaster", loop: asyncio.AbstractEventLoop, maxsize: int) -> None:
        self._broadcaster = broadcaster
        self.loop = loop
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)

    def deliver(self, event: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("event_dropped type=%s reason=subscriber_backlog", event.get("type"))

    async def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)


class EventBroadcaster:
    """Fans request lifecycle events out to live subscribers.

    Publishers may run on the event loop or in the threadpool FastAPI uses for
    sync handlers, so delivery always hops onto the subscriber's own loop.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._maxsize = maxsize
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, asyncio.get_running_loop(), self._maxsize)
        with self._lock:
            self._subscribers.add(subscription)
        logger.info("events_subscribe subscribers=%s", len(self._subscribers))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
        logger.info("events_unsubscribe subscribers=%s", len(self._subscribers))

    def publish(self, event_type: str, **payload: Any) -> None:
        event = {"type": event_type, **payload}
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            if subscription.loop.is_closed():
                self.unsubscribe(subscription)
                continue
            try:
                subscription.loop.call_soon_threadsafe(subscription.deliver, event)
            except RuntimeError:
                # loop closed after the check above
                logger.warning("events_loop_closed type=%s", event_type)
                self.unsubscribe(subscription)


def format_sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event, separators=(',', ':'))}\n\n"


async def stream_events(broadcaster: EventBroadcaster, keepalive_seconds: float) -> AsyncIterator[str]:
    subscription = broadcaster.subscribe()
    try:
        yield ": connected\n\n"
        while True:
            event = await subscription.get(timeout=keepalive_seconds)
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.close()
