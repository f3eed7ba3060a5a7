from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from therapy_booking.config import settings


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    therapist_id: UUID = Field(..., description="Therapist profile ID")
    service_id: int = Field(..., description="Service being booked")
    scheduled_at: datetime = Field(..., description="Chosen date and slot time (YYYY-MM-DDTHH:MM)")
    notes: str | None = Field(None, description="Optional notes for the therapist")

    @field_validator("scheduled_at")
    @classmethod
    def validate_scheduled_at(cls, value: datetime) -> datetime:
        # Appointments are stored as naive local wall-clock times
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > settings.max_notes_length:
            raise ValueError(f"Notes must be {settings.max_notes_length} characters or fewer.")

        return normalized


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""
    reason: str | None = Field(None, max_length=500)
    cancellation_fee: Decimal | None = Field(None, ge=0, description="Explicit fee, admins only")


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""
    id: int
    client_id: UUID
    therapist_id: UUID
    service_id: int
    scheduled_at: datetime
    duration_minutes: int
    status: str
    price: Decimal
    payment_status: str
    notes: str | None = None
    cancellation_reason: str | None = None
    cancellation_fee: Decimal
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
