"""Notification data repository."""

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from signalcore.models import Notification, NotificationType
from signalhub.errors import NotFoundError, PersistenceWriteError
from signalhub.storage.database import NotificationTable, get_database


class NotificationRepository:
    """Repository for notification data operations."""

    async def save(self, notification: Notification) -> None:
        """Insert a new notification."""
        try:
            async with get_database().session() as session:
                session.add(
                    NotificationTable(
                        id=notification.id,
                        title=notification.title,
                        message=notification.message,
                        type=notification.type.value,
                        symbol=notification.symbol,
                        priority=notification.priority,
                        is_read=notification.is_read,
                        data=notification.payload,
                        created_at=notification.created_at,
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"notification insert failed: {e}") from e

    async def mark_read(self, notification_id: str) -> Notification:
        """
        Mark a notification as read.

        Raises:
            NotFoundError: If no notification has this ID
            PersistenceWriteError: If the update fails
        """
        try:
            async with get_database().session() as session:
                stmt = (
                    update(NotificationTable)
                    .where(NotificationTable.id == notification_id)
                    .values(is_read=True)
                    .returning(NotificationTable)
                )
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceWriteError(f"notification update failed: {e}") from e

        if row is None:
            raise NotFoundError(f"notification {notification_id} not found")
        return self._row_to_notification(row)

    async def get_recent(self, limit: int = 50) -> list[Notification]:
        """Get the most recent notifications, newest first."""
        async with get_database().session() as session:
            stmt = (
                select(NotificationTable)
                .order_by(NotificationTable.created_at.desc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [self._row_to_notification(row) for row in result.scalars().all()]

    def _row_to_notification(self, row: NotificationTable) -> Notification:
        return Notification(
            id=row.id,
            title=row.title,
            message=row.message,
            type=NotificationType(row.type),
            symbol=row.symbol,
            priority=row.priority,
            is_read=row.is_read,
            created_at=row.created_at,
            payload=row.data or {},
        )
