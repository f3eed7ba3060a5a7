"""Appointment routes - API endpoints for booking and the appointment lifecycle."""

from fastapi import APIRouter

from therapy_booking.api.deps import CurrentActor, DBSession
from therapy_booking.models.appointment import AppointmentStatus
from therapy_booking.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentResponse,
)
from therapy_booking.services.appointment_service import AppointmentService

router = APIRouter()


@router.post("/book", response_model=AppointmentResponse, status_code=201)
async def book_appointment(booking: AppointmentCreate, actor: CurrentActor, db: DBSession):
    """Book a slot for the calling patient. The appointment starts PENDING."""
    service = AppointmentService(db)
    return await service.book(actor, booking)


@router.get("/", response_model=list[AppointmentResponse])
async def list_my_appointments(
    actor: CurrentActor,
    db: DBSession,
    status: AppointmentStatus | None = None,
):
    """Get the caller's appointments (by role)."""
    service = AppointmentService(db)
    return await service.list_for_actor(actor, status)


@router.get("/all", response_model=list[AppointmentResponse])
async def list_all_appointments(actor: CurrentActor, db: DBSession):
    """Get every appointment. Admin only."""
    service = AppointmentService(db)
    return await service.list_all(actor)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: int, actor: CurrentActor, db: DBSession):
    """Get an appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(actor, appointment_id)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(appointment_id: int, actor: CurrentActor, db: DBSession):
    service = AppointmentService(db)
    return await service.confirm(actor, appointment_id)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    actor: CurrentActor,
    db: DBSession,
    data: AppointmentCancel | None = None,
):
    """Cancel an appointment (soft delete by changing status)."""
    data = data or AppointmentCancel()
    service = AppointmentService(db)
    return await service.cancel(actor, appointment_id, data.reason, data.cancellation_fee)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(appointment_id: int, actor: CurrentActor, db: DBSession):
    service = AppointmentService(db)
    return await service.complete(actor, appointment_id)


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(appointment_id: int, actor: CurrentActor, db: DBSession):
    service = AppointmentService(db)
    return await service.mark_no_show(actor, appointment_id)
