"""Notification engine for strong signals."""

import logging
from typing import Awaitable, Callable

from signalcore.models import Notification, NotificationType, SignalRecord
from signalhub.storage import NotificationRepository

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Notification], Awaitable[None]]

DEFAULT_THRESHOLD = 80
DEFAULT_URGENT_THRESHOLD = 90
NORMAL_PRIORITY = 4
URGENT_PRIORITY = 5


class NotificationEngine:
    """
    Raise notifications for newly activated signals.

    A signal with strength >= threshold produces one notification,
    with priority 5 at or above the urgent threshold and 4 otherwise.
    Weaker signals produce nothing.
    """

    def __init__(
        self,
        notification_repo: NotificationRepository | None = None,
        threshold: int = DEFAULT_THRESHOLD,
        urgent_threshold: int = DEFAULT_URGENT_THRESHOLD,
    ):
        self.notification_repo = notification_repo or NotificationRepository()
        self.threshold = threshold
        self.urgent_threshold = urgent_threshold

        self._created_callbacks: list[NotificationCallback] = []
        self._read_callbacks: list[NotificationCallback] = []

    def on_notification(self, callback: NotificationCallback) -> None:
        """Register callback for created notifications."""
        if callback not in self._created_callbacks:
            self._created_callbacks.append(callback)

    def on_read(self, callback: NotificationCallback) -> None:
        """Register callback for acknowledged notifications."""
        if callback not in self._read_callbacks:
            self._read_callbacks.append(callback)

    def build(self, signal: SignalRecord) -> Notification | None:
        """Build the notification for a signal, or None if it is too weak."""
        if signal.strength < self.threshold:
            return None

        direction = signal.direction.value
        return Notification(
            title=f"Strong {direction} Signal",
            message=f"{signal.symbol} showing {signal.strength}% confidence {direction} signal",
            type=NotificationType.SIGNAL,
            symbol=signal.symbol,
            priority=URGENT_PRIORITY if signal.strength >= self.urgent_threshold else NORMAL_PRIORITY,
            created_at=signal.created_at,
            payload={
                "signal_id": signal.id,
                "signal_type": direction,
                "strength": signal.strength,
                "pattern": signal.pattern_detected,
            },
        )

    async def notify(self, signal: SignalRecord) -> Notification | None:
        """
        Persist and publish the notification for a newly activated signal.

        Raises:
            PersistenceWriteError: If the notification cannot be stored
        """
        notification = self.build(signal)
        if notification is None:
            return None

        await self.notification_repo.save(notification)
        logger.info(
            f"Notification P{notification.priority}: {notification.title} "
            f"({signal.symbol} strength={signal.strength})"
        )

        for callback in self._created_callbacks:
            try:
                await callback(notification)
            except Exception as e:
                logger.error(f"Notification callback error: {e}")

        return notification

    async def acknowledge(self, notification_id: str) -> Notification:
        """
        Mark a notification as read.

        Raises:
            NotFoundError: If the ID does not exist
        """
        notification = await self.notification_repo.mark_read(notification_id)

        for callback in self._read_callbacks:
            try:
                await callback(notification)
            except Exception as e:
                logger.error(f"Notification read callback error: {e}")

        return notification

    async def recent(self, limit: int = 50) -> list[Notification]:
        return await self.notification_repo.get_recent(limit=limit)
