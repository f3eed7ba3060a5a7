"""Appointment service - Business logic for booking and the appointment lifecycle."""

from datetime import datetime, time, timedelta
from decimal import Decimal

import logfire
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_booking.config import settings
from therapy_booking.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationFailedError,
    translate_store_errors,
)
from therapy_booking.models.appointment import Appointment, AppointmentStatus, PaymentStatus
from therapy_booking.models.notification import NotificationType
from therapy_booking.models.profile import Role
from therapy_booking.models.service import Service
from therapy_booking.schemas.appointment import AppointmentCreate
from therapy_booking.services.authorization import Actor, require_admin_or_owner, require_role
from therapy_booking.services.availability_service import AvailabilityService
from therapy_booking.services.notification_service import NotificationService
from therapy_booking.services.profile_service import ProfileService
from therapy_booking.services.offering_service import OfferingService
from therapy_booking.services.slots import END_OF_DAY, generate_slots, intervals_overlap

# target status -> statuses it can be reached from
ALLOWED_TRANSITIONS = {
    AppointmentStatus.CONFIRMED: {AppointmentStatus.PENDING},
    AppointmentStatus.CANCELLED: {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED},
    AppointmentStatus.COMPLETED: {AppointmentStatus.CONFIRMED},
    AppointmentStatus.NO_SHOW: {AppointmentStatus.CONFIRMED},
}

DEFAULT_CANCELLATION_REASON = "Cancelled without a reason"


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return current in ALLOWED_TRANSITIONS.get(target, set())


def late_cancellation_fee(appointment: Appointment, now: datetime) -> Decimal:
    """Fee owed when cancelling inside the appointment's cancellation deadline."""
    hours_until = (appointment.scheduled_at - now).total_seconds() / 3600

    if hours_until < appointment.cancellation_deadline_hours:
        rate = Decimal(str(settings.late_cancellation_fee_rate))
        return (Decimal(appointment.price) * rate).quantize(Decimal("0.01"))

    return Decimal("0.00")


class AppointmentService:
    """Service class for appointment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @translate_store_errors
    async def book(self, actor: Actor, booking: AppointmentCreate) -> Appointment:
        """Create a PENDING appointment for the calling patient.

        Price and duration are copied from the service now. The slot is
        re-checked inside the same transaction and the active-slot unique
        index catches concurrent writers.
        """
        require_role(actor, Role.PATIENT, detail="Only patients can book appointments")

        scheduled_at = booking.scheduled_at.replace(second=0, microsecond=0)
        if scheduled_at <= datetime.now():
            raise ValidationFailedError("Appointments must be scheduled in the future.")

        service = await self.db.get(Service, booking.service_id)
        if service is None or not service.is_active:
            raise NotFoundError("Service not found")

        therapist = await ProfileService(self.db).get_active_therapist(booking.therapist_id)
        if therapist is None:
            raise NotFoundError("Therapist not found")

        if not await OfferingService(self.db).therapist_offers(therapist.id, service.id):
            raise NotFoundError("Therapist does not offer this service")

        await self._ensure_slot_free(therapist.id, scheduled_at, service.duration_minutes)

        appointment = Appointment(
            client_id=actor.id,
            therapist_id=therapist.id,
            service_id=service.id,
            scheduled_at=scheduled_at,
            duration_minutes=service.duration_minutes,
            status=AppointmentStatus.PENDING.value,
            price=service.price,
            payment_status=PaymentStatus.PENDING.value,
            notes=booking.notes,
            cancellation_fee=Decimal("0"),
            cancellation_deadline_hours=settings.cancellation_deadline_hours,
        )
        self.db.add(appointment)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("This time slot is no longer available.") from exc
        await self.db.refresh(appointment)

        await NotificationService(self.db).notify(
            therapist.id,
            NotificationType.APPOINTMENT_REQUEST,
            "New appointment request",
            f"New appointment request for {scheduled_at:%Y-%m-%d} at {scheduled_at:%H:%M}",
            related_id=appointment.id,
        )

        logfire.info(
            "appointment_booked",
            appointment_id=appointment.id,
            therapist_id=str(therapist.id),
            scheduled_at=scheduled_at.isoformat(),
        )
        return appointment

    async def _ensure_slot_free(self, therapist_id, scheduled_at: datetime, duration_minutes: int) -> None:
        """Re-check a requested start against the slot list inside the booking transaction.

        The start must be one of the slots a window offers and the whole
        session must end by that window's close.
        """
        availability = AvailabilityService(self.db)
        target_date = scheduled_at.date()
        end = scheduled_at + timedelta(minutes=duration_minutes)

        windows = await availability.get_windows_for_date(therapist_id, target_date)
        if not any(
            self._fits_window(window, scheduled_at, end, settings.slot_duration_minutes) for window in windows
        ):
            raise ConflictError("Therapist not available at selected time")

        for existing in await availability.get_active_appointments(therapist_id, target_date):
            if intervals_overlap(scheduled_at, end, existing.scheduled_at, existing.ends_at):
                raise ConflictError("This time slot is no longer available.")

    @staticmethod
    def _fits_window(window, start: datetime, end: datetime, step_minutes: int) -> bool:
        offered = {slot.time for slot in generate_slots(start.date(), [window], [], step_minutes)}
        if start.time() not in offered:
            return False

        # A window closing at END_OF_DAY runs to midnight
        if window.end_time == END_OF_DAY:
            closes_at = datetime.combine(start.date() + timedelta(days=1), time.min)
        else:
            closes_at = datetime.combine(start.date(), window.end_time)
        return end <= closes_at

    async def _get_or_raise(self, appointment_id: int) -> Appointment:
        appointment = await self.db.get(Appointment, appointment_id)

        if appointment is None:
            raise NotFoundError("Appointment not found")

        return appointment

    def _transition(self, appointment: Appointment, target: AppointmentStatus) -> None:
        current = AppointmentStatus(appointment.status)

        if not can_transition(current, target):
            raise ConflictError(
                f"Cannot change appointment from {current.value} to {target.value}"
            )

        appointment.status = target.value

    @translate_store_errors
    async def get_appointment(self, actor: Actor, appointment_id: int) -> Appointment:
        """Get an appointment visible to the caller."""
        appointment = await self._get_or_raise(appointment_id)

        if not actor.is_admin and actor.id not in (appointment.client_id, appointment.therapist_id):
            raise UnauthorizedError("Not allowed to view this appointment")

        return appointment

    @translate_store_errors
    async def list_for_actor(
        self, actor: Actor, status: AppointmentStatus | None = None
    ) -> list[Appointment]:
        """Patients see their bookings, therapists their calendar, admins everything."""
        query = select(Appointment)

        if actor.role == Role.PATIENT:
            query = query.where(Appointment.client_id == actor.id)
        elif actor.role == Role.THERAPIST:
            query = query.where(Appointment.therapist_id == actor.id)

        if status:
            query = query.where(Appointment.status == status.value)

        query = query.order_by(Appointment.scheduled_at)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    @translate_store_errors
    async def list_all(self, actor: Actor) -> list[Appointment]:
        """Get every appointment, newest first. Admin only."""
        require_role(actor, Role.ADMIN, detail="Only admins can view all appointments")

        result = await self.db.execute(select(Appointment).order_by(Appointment.scheduled_at.desc()))
        return list(result.scalars().all())

    @translate_store_errors
    async def confirm(self, actor: Actor, appointment_id: int) -> Appointment:
        appointment = await self._get_or_raise(appointment_id)
        require_admin_or_owner(actor, appointment.therapist_id, "Only the assigned therapist can confirm this appointment")

        self._transition(appointment, AppointmentStatus.CONFIRMED)
        if settings.confirm_marks_paid:
            appointment.payment_status = PaymentStatus.PAID.value

        await self.db.flush()
        await self.db.refresh(appointment)

        await NotificationService(self.db).notify(
            appointment.client_id,
            NotificationType.APPOINTMENT_CONFIRMED,
            "Appointment confirmed",
            f"Your appointment on {appointment.scheduled_at:%Y-%m-%d %H:%M} has been confirmed",
            related_id=appointment.id,
        )
        logfire.info("appointment_confirmed", appointment_id=appointment.id, actor_id=str(actor.id))
        return appointment

    @translate_store_errors
    async def cancel(
        self,
        actor: Actor,
        appointment_id: int,
        reason: str | None = None,
        cancellation_fee: Decimal | None = None,
        now: datetime | None = None,
    ) -> Appointment:
        """Cancel a PENDING or CONFIRMED appointment.

        Patients may only cancel their own bookings and therapists only
        their own calendar; admins may cancel anything and may set the fee
        explicitly. Otherwise a late cancellation is charged a share of the
        price.
        """
        appointment = await self._get_or_raise(appointment_id)

        if not actor.is_admin:
            owner_id = appointment.client_id if actor.role == Role.PATIENT else appointment.therapist_id
            if actor.id != owner_id:
                raise UnauthorizedError("Not allowed to cancel this appointment")
            if cancellation_fee is not None:
                raise UnauthorizedError("Only admins can set a cancellation fee")

        self._transition(appointment, AppointmentStatus.CANCELLED)

        now = now or datetime.now()
        if cancellation_fee is None:
            cancellation_fee = late_cancellation_fee(appointment, now)

        appointment.cancellation_reason = reason or DEFAULT_CANCELLATION_REASON
        appointment.cancellation_fee = cancellation_fee
        appointment.cancelled_at = now

        await self.db.flush()
        await self.db.refresh(appointment)

        # Admin cancellations reach both parties
        if actor.id == appointment.client_id:
            recipients = [appointment.therapist_id]
        elif actor.id == appointment.therapist_id:
            recipients = [appointment.client_id]
        else:
            recipients = [appointment.client_id, appointment.therapist_id]

        notifications = NotificationService(self.db)
        for recipient in recipients:
            await notifications.notify(
                recipient,
                NotificationType.APPOINTMENT_CANCELLED,
                "Appointment cancelled",
                appointment.cancellation_reason,
                related_id=appointment.id,
            )
        logfire.info(
            "appointment_cancelled",
            appointment_id=appointment.id,
            actor_id=str(actor.id),
            fee=str(appointment.cancellation_fee),
        )
        return appointment

    @translate_store_errors
    async def complete(self, actor: Actor, appointment_id: int) -> Appointment:
        return await self._close(
            actor,
            appointment_id,
            AppointmentStatus.COMPLETED,
            NotificationType.APPOINTMENT_COMPLETED,
            "Appointment completed",
        )

    @translate_store_errors
    async def mark_no_show(self, actor: Actor, appointment_id: int) -> Appointment:
        return await self._close(
            actor,
            appointment_id,
            AppointmentStatus.NO_SHOW,
            NotificationType.APPOINTMENT_NO_SHOW,
            "Appointment marked as no-show",
        )

    async def _close(
        self,
        actor: Actor,
        appointment_id: int,
        target: AppointmentStatus,
        notification_type: NotificationType,
        title: str,
    ) -> Appointment:
        appointment = await self._get_or_raise(appointment_id)
        require_admin_or_owner(actor, appointment.therapist_id, "Only the assigned therapist can close this appointment")

        self._transition(appointment, target)
        await self.db.flush()
        await self.db.refresh(appointment)

        await NotificationService(self.db).notify(
            appointment.client_id,
            notification_type,
            title,
            f"{title}: {appointment.scheduled_at:%Y-%m-%d %H:%M}",
            related_id=appointment.id,
        )
        logfire.info("appointment_closed", appointment_id=appointment.id, status=target.value)
        return appointment
