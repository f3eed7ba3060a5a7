"""Notification service - In-app notifications for booking events."""

import logging

import logfire
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from therapy_booking.errors import NotFoundError, translate_store_errors
from therapy_booking.models.notification import Notification, NotificationType
from therapy_booking.services.authorization import Actor, require_admin_or_owner

logger = logging.getLogger(__name__)


class NotificationService:
    """Service class for notification operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        related_id: int | None = None,
    ) -> Notification | None:
        """Store a notification without failing the surrounding operation.

        Runs in a savepoint; on a store error the savepoint is rolled back,
        the error is logged and None is returned.
        """
        notification = Notification(
            user_id=user_id,
            type=notification_type.value,
            title=title,
            message=message,
            related_id=related_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(notification)
        except SQLAlchemyError:
            logger.exception("Could not create %s notification for %s", notification_type.value, user_id)
            return None

        logfire.info("notification_created", type=notification_type.value, user_id=str(user_id))
        return notification

    @translate_store_errors
    async def list_for_user(self, user_id: UUID, unread_only: bool = False) -> list[Notification]:
        """Get a user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)

        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    @translate_store_errors
    async def mark_read(self, actor: Actor, notification_id: int) -> Notification:
        notification = await self.db.get(Notification, notification_id)

        if notification is None:
            raise NotFoundError("Notification not found")

        require_admin_or_owner(actor, notification.user_id, "Cannot modify another user's notifications")

        notification.is_read = True
        await self.db.flush()
        await self.db.refresh(notification)
        return notification
