from pydantic import BaseModel
from datetime import datetime
from uuid import UUID


class NotificationResponse(BaseModel):
    """Schema for notification response."""
    id: int
    user_id: UUID
    type: str
    title: str
    message: str
    related_id: int | None = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
