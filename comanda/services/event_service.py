"""
Real-time notification fan-out for floor, kitchen and waiter displays.

Services publish through the EventPublisher interface; the transport is chosen
by EVENTS_BACKEND ('memory' or 'redis'). Publishing always happens after the
database transaction commits, and a failed publish never undoes the commit.
"""

import copy
import json
import logging
import threading
import time
import uuid
from datetime import datetime, date, timezone
from decimal import Decimal
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)

# Topics
TABLE_EVENTS = 'table-events'
KITCHEN_EVENTS = 'kitchen-events'
WAITER_EVENTS = 'waiter-events'

# Event names
TABLE_UPDATE = 'table-update'
NEW_ORDER = 'new-order'
ORDER_UPDATE = 'order-update'
ORDER_READY = 'order-ready'


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return f"{obj:.2f}"
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


class EventPublisher:
    """Publish/subscribe channel used by the order and table state machines."""

    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class InMemoryEventPublisher(EventPublisher):
    """
    Single-process publisher.

    Keeps the most recent `history_size` events and calls local subscribers
    synchronously. Used by the test-suite and single-node deployments.
    """

    def __init__(self, history_size: int = 1000):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Callable[[str, Dict[str, Any]], None]]] = {}
        self.history: Deque[Dict[str, Any]] = deque(maxlen=max(1, history_size))

    def subscribe(self, topic: str, callback: Callable[[str, Dict[str, Any]], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        record = {
            'event_id': uuid.uuid4().hex,
            'topic': topic,
            'event': event,
            'data': copy.deepcopy(payload),
        }
        with self._lock:
            self.history.append(record)
            callbacks = list(self._subscribers.get(topic, []))
        # One failing subscriber must not starve the others
        for callback in callbacks:
            try:
                callback(event, copy.deepcopy(payload))
            except Exception as e:
                logger.error(f"[EVENTS] ✗ subscriber {getattr(callback, '__name__', callback)} "
                             f"failed on {topic}/{event}: {e}", exc_info=True)

    def events(self, topic: Optional[str] = None, event: Optional[str] = None) -> List[Dict[str, Any]]:
        """Published events filtered by topic and/or event name."""
        with self._lock:
            return [
                r for r in self.history
                if (topic is None or r['topic'] == topic) and (event is None or r['event'] == event)
            ]

    def clear(self) -> None:
        with self._lock:
            self.history.clear()


class RedisEventPublisher(EventPublisher):
    """
    Redis pub/sub publisher.

    Channel pattern: {prefix}:{topic}. Each message is a JSON envelope with a
    unique eventId so consumers can apply it idempotently (delivery is retried,
    so duplicates are possible).
    """

    def __init__(self, redis_url: str, prefix: str = 'comanda', retries: int = 3,
                 client: Optional[redis.Redis] = None):
        self._prefix = prefix
        self._retries = max(1, retries)
        self.client = client or redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            socket_keepalive=True,
            retry_on_timeout=True,
            health_check_interval=30
        )

    def channel(self, topic: str) -> str:
        return f"{self._prefix}:{topic}"

    def publish(self, topic: str, event: str, payload: Dict[str, Any]) -> None:
        message = json.dumps({
            'eventId': uuid.uuid4().hex,
            'topic': topic,
            'event': event,
            'data': payload,
            'publishedAt': datetime.now(timezone.utc).isoformat(),
        }, default=_json_default)

        last_error: Optional[Exception] = None
        for attempt in range(1, self._retries + 1):
            try:
                receivers = self.client.publish(self.channel(topic), message)
                logger.debug(f"[EVENTS] {topic}/{event} delivered to {receivers} subscriber(s)")
                return
            except (ConnectionError, TimeoutError, RedisError) as e:
                last_error = e
                logger.warning(f"[EVENTS] publish {topic}/{event} failed (attempt {attempt}/{self._retries}): {e}")
                time.sleep(0.05 * attempt)
        raise last_error


_publisher: Optional[EventPublisher] = None


def init_events(app: Flask) -> EventPublisher:
    """Initialize the publisher singleton from app config."""
    global _publisher
    backend = app.config.get('EVENTS_BACKEND', 'memory')

    if backend == 'redis':
        _publisher = RedisEventPublisher(
            app.config.get('EVENTS_REDIS_URL', 'redis://redis:6379/0'),
            prefix=app.config.get('EVENTS_CHANNEL_PREFIX', 'comanda'),
            retries=app.config.get('EVENTS_PUBLISH_RETRIES', 3),
        )
    elif backend == 'memory':
        _publisher = InMemoryEventPublisher(app.config.get('EVENTS_HISTORY_SIZE', 1000))
    else:
        raise ValueError(f"EVENTS_BACKEND desconocido: {backend}")

    logger.info(f"[EVENTS] Publisher backend: {backend}")
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['events'] = _publisher
    return _publisher


def set_publisher(publisher: EventPublisher) -> None:
    global _publisher
    _publisher = publisher


def get_publisher() -> EventPublisher:
    """Get publisher instance."""
    if _publisher is None:
        raise RuntimeError("Event publisher not initialized.")
    return _publisher


def publish_safely(topic: str, event: str, payload: Dict[str, Any],
                   publisher: Optional[EventPublisher] = None) -> bool:
    """
    Publish after a committed transaction.

    Failures are logged and counted; they are never raised to the caller.
    """
    try:
        (publisher or get_publisher()).publish(topic, event, payload)
        return True
    except Exception as e:
        logger.warning(f"[EVENTS] ✗ {topic}/{event} not delivered: {e}")
        try:
            from comanda.blueprints.metrics import event_publish_failures_total
            event_publish_failures_total.labels(topic=topic).inc()
        except Exception:
            logger.debug("[EVENTS] failure counter unavailable")
        return False
