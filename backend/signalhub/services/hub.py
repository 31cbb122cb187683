"""Distribution hub: per-topic fan-out with snapshot-then-stream delivery.

Every subscription owns a bounded queue. Its first message is a
snapshot of the current state for the subscribed topics, followed by
incremental events in publish order. Publishing never waits on a
subscriber: one whose queue is full is disconnected instead.

Everything here runs on the event loop thread without awaiting, so
taking a snapshot and registering a subscriber happen atomically with
respect to publishers.
"""

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

import orjson
from pydantic import BaseModel

from signalcore.models import Instrument, Notification, SignalRecord

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


class Topic(str, Enum):
    """Broadcast topics."""

    INSTRUMENTS = "instrument-prices"
    SIGNALS = "signals"
    NOTIFICATIONS = "notifications"


ALL_TOPICS = frozenset(Topic)


class EventType(str, Enum):
    SNAPSHOT = "snapshot"
    INSTRUMENT_UPDATED = "instrument-updated"
    SIGNAL_ACTIVATED = "signal-activated"
    NOTIFICATION_CREATED = "notification-created"
    NOTIFICATION_READ = "notification-read"


class HubEvent(BaseModel):
    """Message delivered to subscribers."""

    type: EventType
    topic: Topic | None = None  # None for snapshots
    data: dict[str, Any]
    sequence: int
    timestamp: datetime

    def to_json(self) -> str:
        """Serialize to JSON string using orjson for performance."""
        return _orjson_dumps(self.model_dump(mode="json"))


# Queue marker that ends a subscription's stream
_END = object()


class Subscription:
    """A live event stream for one consumer.

    Iterate with ``async for event in subscription``. Iteration stops
    after ``close()`` or when the hub disconnects a slow consumer.
    """

    def __init__(self, hub: "DistributionHub", topics: frozenset[Topic], buffer_size: int):
        self.id = uuid.uuid4().hex
        self.topics = topics
        self.buffer_size = buffer_size
        self.close_reason: str | None = None
        self._hub = hub
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, event: HubEvent) -> bool:
        """Queue an event. Returns False if the buffer is full."""
        if self._closed:
            return True
        if self._queue.qsize() >= self.buffer_size:
            return False
        self._queue.put_nowait(event)
        return True

    def _end(self, reason: str) -> None:
        """Discard undelivered events and end the stream."""
        if self._closed:
            return
        self._closed = True
        self.close_reason = reason
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END)

    def close(self) -> None:
        """Unsubscribe. No event is delivered after this returns."""
        self._hub.unsubscribe(self)

    def get_nowait(self) -> HubEvent | None:
        """Next buffered event, or None if nothing is buffered or the stream ended."""
        if self._queue.empty():
            return None
        item = self._queue.get_nowait()
        if item is _END:
            self._queue.put_nowait(_END)
            return None
        return item

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> HubEvent:
        item = await self._queue.get()
        if item is _END:
            # Keep the marker so repeated iteration also stops
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item


class DistributionHub:
    """
    Fan out instrument prices, signals, and notifications.

    Guarantees:
    - A new subscriber gets a snapshot before any incremental event
    - Connected subscribers see each topic's events in publish order
    - Slow subscribers are disconnected, never waited on
    - Reconnecting replays only the snapshot, not missed events
    """

    def __init__(self, buffer_size: int = 256, notification_limit: int = 50):
        """
        Args:
            buffer_size: Maximum queued events per subscriber
            notification_limit: Notifications kept for snapshots
        """
        self.buffer_size = buffer_size
        self.notification_limit = notification_limit

        self._subscriptions: dict[str, Subscription] = {}
        self._sequence = 0

        # Current state, used to build snapshots
        self._instruments: dict[str, Instrument] = {}
        self._signals: dict[str, SignalRecord] = {}
        self._notifications: deque[Notification] = deque(maxlen=notification_limit)

        self._stats = {
            "published": 0,
            "delivered": 0,
            "disconnected": 0,
        }

    # ---------- State ----------

    def load(
        self,
        instruments: Iterable[Instrument] = (),
        signals: Iterable[SignalRecord] = (),
        notifications: Iterable[Notification] = (),
    ) -> None:
        """Seed state from storage. ``notifications`` are newest first."""
        for instrument in instruments:
            self._instruments[instrument.symbol] = instrument
        for signal in signals:
            if signal.is_active:
                self._signals[signal.symbol] = signal
        for notification in reversed(list(notifications)[: self.notification_limit]):
            self._notifications.appendleft(notification)

    def snapshot(self, topics: Iterable[Topic] = ALL_TOPICS) -> dict[str, Any]:
        """Current state for the given topics.

        Instruments are ordered by symbol, signals and notifications
        newest first.
        """
        topics = frozenset(topics)
        data: dict[str, Any] = {}
        if Topic.INSTRUMENTS in topics:
            data["instruments"] = [
                self._instruments[s].model_dump(mode="json") for s in sorted(self._instruments)
            ]
        if Topic.SIGNALS in topics:
            signals = sorted(self._signals.values(), key=lambda s: s.created_at, reverse=True)
            data["signals"] = [s.model_dump(mode="json") for s in signals]
        if Topic.NOTIFICATIONS in topics:
            data["notifications"] = [n.model_dump(mode="json") for n in self._notifications]
        return data

    # ---------- Subscriptions ----------

    def subscribe(self, topics: Iterable[Topic | str] | None = None) -> Subscription:
        """
        Subscribe to one or more topics.

        Raises:
            ValueError: If a topic name is unknown
        """
        wanted = ALL_TOPICS if topics is None else frozenset(Topic(t) for t in topics)
        if not wanted:
            raise ValueError("At least one topic is required")

        subscription = Subscription(self, wanted, self.buffer_size)
        subscription._offer(self._make_event(EventType.SNAPSHOT, None, self.snapshot(wanted)))
        self._subscriptions[subscription.id] = subscription

        logger.info(
            f"Subscriber {subscription.id[:8]} joined "
            f"({', '.join(sorted(t.value for t in wanted))}). Total: {len(self._subscriptions)}"
        )
        return subscription

    def unsubscribe(self, subscription: Subscription, reason: str = "unsubscribed") -> None:
        """Remove a subscription and end its stream."""
        if self._subscriptions.pop(subscription.id, None) is not None:
            logger.info(
                f"Subscriber {subscription.id[:8]} left ({reason}). "
                f"Total: {len(self._subscriptions)}"
            )
        subscription._end(reason)

    # ---------- Publishing ----------

    def publish_instrument(self, instrument: Instrument) -> HubEvent:
        self._instruments[instrument.symbol] = instrument
        return self._publish(
            Topic.INSTRUMENTS,
            EventType.INSTRUMENT_UPDATED,
            instrument.model_dump(mode="json"),
        )

    def publish_signal(
        self,
        signal: SignalRecord,
        previous: SignalRecord | None = None,
    ) -> HubEvent:
        self._signals[signal.symbol] = signal
        return self._publish(
            Topic.SIGNALS,
            EventType.SIGNAL_ACTIVATED,
            {
                "signal": signal.model_dump(mode="json"),
                "deactivated_id": previous.id if previous else None,
            },
        )

    def publish_notification(self, notification: Notification) -> HubEvent:
        self._notifications.appendleft(notification)
        return self._publish(
            Topic.NOTIFICATIONS,
            EventType.NOTIFICATION_CREATED,
            notification.model_dump(mode="json"),
        )

    def publish_notification_read(self, notification: Notification) -> HubEvent:
        for i, existing in enumerate(self._notifications):
            if existing.id == notification.id:
                self._notifications[i] = notification
                break
        return self._publish(
            Topic.NOTIFICATIONS,
            EventType.NOTIFICATION_READ,
            {"id": notification.id, "is_read": notification.is_read},
        )

    def _make_event(self, event_type: EventType, topic: Topic | None, data: dict) -> HubEvent:
        self._sequence += 1
        return HubEvent(
            type=event_type,
            topic=topic,
            data=data,
            sequence=self._sequence,
            timestamp=datetime.now(timezone.utc),
        )

    def _publish(self, topic: Topic, event_type: EventType, data: dict) -> HubEvent:
        event = self._make_event(event_type, topic, data)
        self._stats["published"] += 1

        overflowed = []
        for subscription in list(self._subscriptions.values()):
            if topic not in subscription.topics:
                continue
            if subscription._offer(event):
                self._stats["delivered"] += 1
            else:
                overflowed.append(subscription)

        for subscription in overflowed:
            logger.warning(
                f"Subscriber {subscription.id[:8]} fell behind "
                f"({subscription.buffer_size} events queued), disconnecting"
            )
            self._stats["disconnected"] += 1
            self.unsubscribe(subscription, reason="buffer overflow")

        return event

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def get_stats(self) -> dict[str, int]:
        return {**self._stats, "subscribers": len(self._subscriptions)}
