"""Offering routes - Browse a service's therapists and manage a therapist's services."""

from fastapi import APIRouter
from uuid import UUID

from therapy_booking.api.deps import CurrentActor, DBSession
from therapy_booking.schemas.offering import (
    OfferedTherapistResponse,
    OfferingResponse,
    TherapistServicesUpdate,
)
from therapy_booking.services.offering_service import OfferingService

router = APIRouter()


@router.get("/services/{service_id}/therapists", response_model=list[OfferedTherapistResponse])
async def list_service_therapists(service_id: int, db: DBSession):
    """Get the active therapists who offer a service."""
    service = OfferingService(db)
    therapists = await service.list_therapists_for_service(service_id)
    return [OfferedTherapistResponse(**therapist._asdict()) for therapist in therapists]


@router.get("/therapists/{therapist_id}/services", response_model=list[OfferingResponse])
async def list_therapist_services(therapist_id: UUID, db: DBSession):
    service = OfferingService(db)
    return await service.list_services_for_therapist(therapist_id)


@router.put("/therapists/{therapist_id}/services", response_model=list[OfferingResponse])
async def save_therapist_services(
    therapist_id: UUID,
    data: TherapistServicesUpdate,
    actor: CurrentActor,
    db: DBSession,
):
    """Replace the services a therapist offers."""
    service = OfferingService(db)
    return await service.save_therapist_services(
        actor,
        therapist_id,
        [(item.service_id, item.price) for item in data.services],
    )
