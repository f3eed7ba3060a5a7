from datetime import date, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from therapy_booking.config import settings
from therapy_booking.errors import (
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationFailedError,
)
from therapy_booking.models import AppointmentStatus, Notification, Role
from therapy_booking.schemas.appointment import AppointmentCreate
from therapy_booking.services.appointment_service import (
    DEFAULT_CANCELLATION_REASON,
    AppointmentService,
    can_transition,
)
from therapy_booking.services.notification_service import NotificationService

from tests.factories import (
    actor_for,
    add_appointment,
    add_offering,
    add_profile,
    add_service,
    add_weekly_rule,
    at,
    upcoming,
)

MONDAY = 1


async def open_practice(db, price: str = "80.00", duration_minutes: int = 60):
    """Therapist open Mondays 09:00-17:00, a patient and one service the therapist offers."""
    therapist = await add_profile(db, Role.THERAPIST)
    patient = await add_profile(db, Role.PATIENT)
    offering = await add_service(db, price=price, duration_minutes=duration_minutes)
    await add_offering(db, therapist.id, offering)
    await add_weekly_rule(db, therapist.id, MONDAY, time(9), time(17))
    return therapist, patient, offering


def booking_for(therapist, offering, scheduled_at, notes=None) -> AppointmentCreate:
    return AppointmentCreate(
        therapist_id=therapist.id,
        service_id=offering.id,
        scheduled_at=scheduled_at,
        notes=notes,
    )


def test_transition_table() -> None:
    assert can_transition(AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
    assert can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED)
    assert can_transition(AppointmentStatus.CONFIRMED, AppointmentStatus.NO_SHOW)
    assert not can_transition(AppointmentStatus.PENDING, AppointmentStatus.COMPLETED)
    assert not can_transition(AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED)


def test_booking_creates_pending_appointment_from_service(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db, price="95.00", duration_minutes=50)
        appointment = await AppointmentService(db).book(
            actor_for(patient), booking_for(therapist, offering, at(target, 10), notes="  First visit  ")
        )
        await db.commit()
        therapist_inbox = await NotificationService(db).list_for_user(therapist.id)
        return appointment, patient, therapist_inbox

    appointment, patient, therapist_inbox = run_db(scenario)

    assert appointment.status == AppointmentStatus.PENDING.value
    assert appointment.payment_status == "PENDING"
    assert appointment.client_id == patient.id
    assert appointment.price == Decimal("95.00")
    assert appointment.duration_minutes == 50
    assert appointment.scheduled_at == at(target, 10)
    assert appointment.notes == "First visit"
    assert appointment.cancellation_fee == Decimal("0")
    assert [(note.type, note.related_id) for note in therapist_inbox] == [("APPOINTMENT_REQUEST", appointment.id)]


def test_only_patients_can_book(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, _, offering = await open_practice(db)
        with pytest.raises(UnauthorizedError):
            await AppointmentService(db).book(actor_for(therapist), booking_for(therapist, offering, at(target, 10)))

    run_db(scenario)


def test_booking_in_the_past_is_rejected(run_db) -> None:
    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        yesterday = date.today() - timedelta(days=1)
        with pytest.raises(ValidationFailedError):
            await AppointmentService(db).book(actor_for(patient), booking_for(therapist, offering, at(yesterday, 10)))

    run_db(scenario)


def test_booking_unknown_service_or_therapist(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        inactive = await add_profile(db, Role.THERAPIST, is_active=False)
        service = AppointmentService(db)

        with pytest.raises(NotFoundError, match="Service"):
            await service.book(
                actor_for(patient),
                AppointmentCreate(therapist_id=therapist.id, service_id=9999, scheduled_at=at(target, 10)),
            )
        with pytest.raises(NotFoundError, match="Therapist"):
            await service.book(actor_for(patient), booking_for(inactive, offering, at(target, 10)))

    run_db(scenario)


def test_booking_outside_availability_conflicts(run_db) -> None:
    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        service = AppointmentService(db)

        with pytest.raises(ConflictError):
            await service.book(actor_for(patient), booking_for(therapist, offering, at(upcoming(MONDAY), 18)))
        with pytest.raises(ConflictError):
            await service.book(actor_for(patient), booking_for(therapist, offering, at(upcoming(MONDAY + 1), 10)))

    run_db(scenario)


def test_booking_overlapping_active_appointment_conflicts(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        other_patient = await add_profile(db, Role.PATIENT)
        await add_appointment(db, other_patient.id, therapist.id, offering, at(target, 10, 30))

        with pytest.raises(ConflictError):
            await AppointmentService(db).book(actor_for(patient), booking_for(therapist, offering, at(target, 10)))

    run_db(scenario)


def test_cancelled_appointment_frees_the_slot(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        await add_appointment(
            db, patient.id, therapist.id, offering, at(target, 10), status=AppointmentStatus.CANCELLED
        )
        appointment = await AppointmentService(db).book(
            actor_for(patient), booking_for(therapist, offering, at(target, 10))
        )
        return appointment.status

    assert run_db(scenario) == "PENDING"


def test_active_slot_index_rejects_concurrent_double_booking(run_db, monkeypatch) -> None:
    target = upcoming(MONDAY)

    async def skip_recheck(self, *args):
        return None

    monkeypatch.setattr(AppointmentService, "_ensure_slot_free", skip_recheck)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        other_patient = await add_profile(db, Role.PATIENT)
        await add_appointment(db, other_patient.id, therapist.id, offering, at(target, 10))

        with pytest.raises(ConflictError):
            await AppointmentService(db).book(actor_for(patient), booking_for(therapist, offering, at(target, 10)))

    run_db(scenario)


def test_lifecycle_confirm_then_complete(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        service = AppointmentService(db)
        appointment = await service.book(actor_for(patient), booking_for(therapist, offering, at(target, 10)))

        confirmed = await service.confirm(actor_for(therapist), appointment.id)
        confirmed_status = confirmed.status
        completed = await service.complete(actor_for(therapist), appointment.id)
        await db.commit()

        patient_inbox = await NotificationService(db).list_for_user(patient.id)
        return confirmed_status, completed.status, completed.payment_status, [note.type for note in patient_inbox]

    confirmed_status, completed_status, payment_status, inbox = run_db(scenario)

    assert confirmed_status == "CONFIRMED"
    assert completed_status == "COMPLETED"
    assert payment_status == "PENDING"
    assert sorted(inbox) == ["APPOINTMENT_COMPLETED", "APPOINTMENT_CONFIRMED"]


def test_confirm_can_mark_paid(run_db, monkeypatch) -> None:
    monkeypatch.setattr(settings, "confirm_marks_paid", True)
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        confirmed = await AppointmentService(db).confirm(actor_for(therapist), appointment.id)
        return confirmed.payment_status

    assert run_db(scenario) == "PAID"


def test_pending_appointment_cannot_be_completed(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        with pytest.raises(ConflictError):
            await AppointmentService(db).complete(actor_for(therapist), appointment.id)
        with pytest.raises(ConflictError):
            await AppointmentService(db).mark_no_show(actor_for(therapist), appointment.id)

    run_db(scenario)


def test_cancelled_appointment_rejects_every_transition(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        admin = await add_profile(db, Role.ADMIN)
        appointment = await add_appointment(
            db, patient.id, therapist.id, offering, at(target, 10), status=AppointmentStatus.CANCELLED
        )
        service = AppointmentService(db)
        admin_actor = actor_for(admin)

        attempts = [
            service.confirm(admin_actor, appointment.id),
            service.cancel(admin_actor, appointment.id),
            service.complete(admin_actor, appointment.id),
            service.mark_no_show(admin_actor, appointment.id),
        ]
        for attempt in attempts:
            with pytest.raises(ConflictError):
                await attempt

    run_db(scenario)


@pytest.mark.parametrize("status", [AppointmentStatus.PENDING, AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED])
def test_patient_cannot_cancel_someone_elses_appointment(run_db, status) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        intruder = await add_profile(db, Role.PATIENT)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10), status=status)

        with pytest.raises(UnauthorizedError):
            await AppointmentService(db).cancel(actor_for(intruder), appointment.id)

    run_db(scenario)


def test_other_therapist_cannot_confirm(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        other_therapist = await add_profile(db, Role.THERAPIST)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))

        with pytest.raises(UnauthorizedError):
            await AppointmentService(db).confirm(actor_for(other_therapist), appointment.id)
        with pytest.raises(UnauthorizedError):
            await AppointmentService(db).confirm(actor_for(patient), appointment.id)

    run_db(scenario)


def test_early_cancellation_is_free_and_notifies_therapist(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        cancelled = await AppointmentService(db).cancel(actor_for(patient), appointment.id)
        await db.commit()
        therapist_inbox = await NotificationService(db).list_for_user(therapist.id)
        return cancelled, [note.type for note in therapist_inbox]

    cancelled, inbox = run_db(scenario)

    assert cancelled.status == "CANCELLED"
    assert cancelled.cancellation_fee == Decimal("0.00")
    assert cancelled.cancellation_reason == DEFAULT_CANCELLATION_REASON
    assert cancelled.cancelled_at is not None
    assert inbox == ["APPOINTMENT_CANCELLED"]


def test_late_cancellation_charges_fee(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db, price="80.00")
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        return await AppointmentService(db).cancel(
            actor_for(patient),
            appointment.id,
            reason="Sick",
            now=at(target, 8),
        )

    cancelled = run_db(scenario)

    assert cancelled.cancellation_fee == Decimal("40.00")
    assert cancelled.cancellation_reason == "Sick"
    assert cancelled.cancelled_at == at(target, 8)


def test_only_admin_sets_explicit_fee(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        admin = await add_profile(db, Role.ADMIN)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        service = AppointmentService(db)

        with pytest.raises(UnauthorizedError):
            await service.cancel(actor_for(patient), appointment.id, cancellation_fee=Decimal("0"))

        cancelled = await service.cancel(actor_for(admin), appointment.id, cancellation_fee=Decimal("15.00"))
        return cancelled.cancellation_fee

    assert run_db(scenario) == Decimal("15.00")


def test_appointment_visibility(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        admin = await add_profile(db, Role.ADMIN)
        stranger = await add_profile(db, Role.PATIENT)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        service = AppointmentService(db)

        for viewer in (patient, therapist, admin):
            assert (await service.get_appointment(actor_for(viewer), appointment.id)).id == appointment.id

        with pytest.raises(UnauthorizedError):
            await service.get_appointment(actor_for(stranger), appointment.id)
        with pytest.raises(NotFoundError):
            await service.get_appointment(actor_for(admin), appointment.id + 100)

    run_db(scenario)


def test_listing_is_scoped_by_role(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        other_patient = await add_profile(db, Role.PATIENT)
        admin = await add_profile(db, Role.ADMIN)
        await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))
        await add_appointment(
            db, other_patient.id, therapist.id, offering, at(target, 12), status=AppointmentStatus.CONFIRMED
        )
        service = AppointmentService(db)

        mine = await service.list_for_actor(actor_for(patient))
        calendar = await service.list_for_actor(actor_for(therapist))
        confirmed = await service.list_for_actor(actor_for(therapist), AppointmentStatus.CONFIRMED)
        everything = await service.list_all(actor_for(admin))
        with pytest.raises(UnauthorizedError):
            await service.list_all(actor_for(therapist))

        return mine, calendar, confirmed, everything, patient

    mine, calendar, confirmed, everything, patient = run_db(scenario)

    assert [appointment.client_id for appointment in mine] == [patient.id]
    assert [appointment.scheduled_at for appointment in calendar] == [at(target, 10), at(target, 12)]
    assert [appointment.status for appointment in confirmed] == ["CONFIRMED"]
    assert [appointment.scheduled_at for appointment in everything] == [at(target, 12), at(target, 10)]


def test_booking_notes_are_capped() -> None:
    with pytest.raises(ValidationError):
        AppointmentCreate(
            therapist_id=uuid4(),
            service_id=1,
            scheduled_at=at(upcoming(MONDAY), 10),
            notes="x" * (settings.max_notes_length + 1),
        )


def test_blank_notes_become_none() -> None:
    booking = AppointmentCreate(
        therapist_id=uuid4(), service_id=1, scheduled_at=at(upcoming(MONDAY), 10), notes="   "
    )

    assert booking.notes is None


def test_booking_must_start_on_an_offered_slot(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db, duration_minutes=90)
        service = AppointmentService(db)

        with pytest.raises(ConflictError, match="not available"):
            await service.book(actor_for(patient), booking_for(therapist, offering, at(target, 9, 17)))

        appointment = await service.book(actor_for(patient), booking_for(therapist, offering, at(target, 15)))
        return appointment.status, appointment.ends_at

    status, ends_at = run_db(scenario)

    assert status == "PENDING"
    assert ends_at == at(target, 16, 30)


@pytest.mark.parametrize("hour, minute", [(16, 0), (16, 50)])
def test_booking_must_end_before_the_window_closes(run_db, hour, minute) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db, duration_minutes=90)
        with pytest.raises(ConflictError, match="not available"):
            await AppointmentService(db).book(
                actor_for(patient), booking_for(therapist, offering, at(target, hour, minute))
            )
        return await AppointmentService(db).list_for_actor(actor_for(patient))

    assert run_db(scenario) == []


def test_booking_a_service_the_therapist_does_not_offer(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, _ = await open_practice(db)
        other_service = await add_service(db, price="120.00")

        with pytest.raises(NotFoundError, match="does not offer"):
            await AppointmentService(db).book(
                actor_for(patient), booking_for(therapist, other_service, at(target, 10))
            )

    run_db(scenario)


def test_booking_reports_store_failure(run_db, monkeypatch) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)

        async def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(db, "execute", broken_execute)

        with pytest.raises(StoreUnavailableError):
            await AppointmentService(db).book(actor_for(patient), booking_for(therapist, offering, at(target, 10)))

    run_db(scenario)


def test_booking_survives_a_failed_notification(run_db) -> None:
    target = upcoming(MONDAY)

    def refuse_insert(mapper, connection, instance):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        service = AppointmentService(db)

        event.listen(Notification, "before_insert", refuse_insert)
        try:
            appointment = await service.book(actor_for(patient), booking_for(therapist, offering, at(target, 10)))
        finally:
            event.remove(Notification, "before_insert", refuse_insert)
        await db.commit()

        stored = await service.list_for_actor(actor_for(patient))
        therapist_inbox = await NotificationService(db).list_for_user(therapist.id)
        return appointment.id, appointment.status, [item.id for item in stored], therapist_inbox

    appointment_id, status, stored_ids, therapist_inbox = run_db(scenario)

    assert status == "PENDING"
    assert stored_ids == [appointment_id]
    assert therapist_inbox == []


def test_admin_cancellation_notifies_both_parties(run_db) -> None:
    target = upcoming(MONDAY)

    async def scenario(db):
        therapist, patient, offering = await open_practice(db)
        admin = await add_profile(db, Role.ADMIN)
        appointment = await add_appointment(db, patient.id, therapist.id, offering, at(target, 10))

        await AppointmentService(db).cancel(actor_for(admin), appointment.id, reason="Clinic closed")
        await db.commit()

        notifications = NotificationService(db)
        inboxes = {}
        for profile in (patient, therapist, admin):
            inboxes[profile.role] = [
                (note.type, note.message) for note in await notifications.list_for_user(profile.id)
            ]
        return inboxes

    inboxes = run_db(scenario)

    assert inboxes["PATIENT"] == [("APPOINTMENT_CANCELLED", "Clinic closed")]
    assert inboxes["THERAPIST"] == [("APPOINTMENT_CANCELLED", "Clinic closed")]
    assert inboxes["ADMIN"] == []
