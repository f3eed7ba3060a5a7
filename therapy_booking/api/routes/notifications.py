"""Notification routes - API endpoints for a user's in-app notifications."""

from fastapi import APIRouter

from therapy_booking.api.deps import CurrentActor, DBSession
from therapy_booking.schemas.notification import NotificationResponse
from therapy_booking.services.notification_service import NotificationService

router = APIRouter()


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(actor: CurrentActor, db: DBSession, unread_only: bool = False):
    """Get the caller's notifications, newest first."""
    service = NotificationService(db)
    return await service.list_for_user(actor.id, unread_only)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: int, actor: CurrentActor, db: DBSession):
    service = NotificationService(db)
    return await service.mark_read(actor, notification_id)
