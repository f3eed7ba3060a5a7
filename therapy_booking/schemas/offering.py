from pydantic import BaseModel, Field
from decimal import Decimal
from uuid import UUID


class OfferedTherapistResponse(BaseModel):
    """Schema for a therapist offering a service."""
    id: UUID
    name: str | None = None
    email: str
    price: Decimal | None = None


class OfferingItem(BaseModel):
    """One service a therapist offers."""
    service_id: int
    price: Decimal | None = Field(None, ge=0, description="Therapist's own price; service price applies when empty")


class TherapistServicesUpdate(BaseModel):
    """Schema for replacing the services a therapist offers."""
    services: list[OfferingItem]


class OfferingResponse(BaseModel):
    """Schema for a stored therapist/service pairing."""
    therapist_id: UUID
    service_id: int
    price: Decimal | None = None

    class Config:
        from_attributes = True
