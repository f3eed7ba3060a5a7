"""Availability service - Therapist availability rules and slot queries."""

from datetime import date, datetime, time, timedelta
from typing import Iterable

import logfire
from sqlalchemy import select, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from therapy_booking.config import settings
from therapy_booking.errors import NotFoundError, ValidationFailedError, translate_store_errors
from therapy_booking.models.appointment import Appointment, ACTIVE_STATUSES
from therapy_booking.models.availability import AvailabilityRule, DateOverride
from therapy_booking.models.profile import Role
from therapy_booking.services.authorization import Actor, require_admin_or_owner, require_role
from therapy_booking.services.profile_service import ProfileService
from therapy_booking.services.slots import (
    GridCell,
    Slot,
    expand_to_grid,
    generate_slots,
    normalize_grid,
    weekday_index,
)


class AvailabilityService:
    """Service class for availability operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @translate_store_errors
    async def get_weekly_rules(self, therapist_id: UUID) -> list[AvailabilityRule]:
        """Get a therapist's enabled weekly rules ordered by day and start."""
        result = await self.db.execute(
            select(AvailabilityRule)
            .where(
                AvailabilityRule.therapist_id == therapist_id,
                AvailabilityRule.is_available.is_(True),
            )
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
        )
        return list(result.scalars().all())

    @translate_store_errors
    async def get_date_overrides(self, therapist_id: UUID, target_date: date) -> list[DateOverride]:
        """Get every override (enabled or not) for one date."""
        result = await self.db.execute(
            select(DateOverride)
            .where(
                DateOverride.therapist_id == therapist_id,
                DateOverride.override_date == target_date,
            )
            .order_by(DateOverride.start_time)
        )
        return list(result.scalars().all())

    async def get_windows_for_date(self, therapist_id: UUID, target_date: date) -> list:
        """Resolve the open windows for one date.

        Date overrides replace the weekly rules entirely; the two are never
        merged. An override set with nothing enabled closes the day.
        """
        overrides = await self.get_date_overrides(therapist_id, target_date)
        if overrides:
            return [override for override in overrides if override.is_available]

        weekday = weekday_index(target_date)
        return [rule for rule in await self.get_weekly_rules(therapist_id) if rule.day_of_week == weekday]

    @translate_store_errors
    async def get_active_appointments(self, therapist_id: UUID, target_date: date) -> list[Appointment]:
        """Get the therapist's live appointments starting on a date."""
        day_start = datetime.combine(target_date, time.min)
        day_end = day_start + timedelta(days=1)

        result = await self.db.execute(
            select(Appointment).where(
                and_(
                    Appointment.therapist_id == therapist_id,
                    Appointment.status.in_(ACTIVE_STATUSES),
                    Appointment.scheduled_at >= day_start,
                    Appointment.scheduled_at < day_end,
                )
            )
        )
        return list(result.scalars().all())

    async def get_slots(
        self,
        therapist_id: UUID,
        target_date: date,
        step_minutes: int | None = None,
    ) -> list[Slot]:
        """Get the bookable slots for a therapist on a date.

        Unknown or inactive therapists and closed days give an empty list.
        """
        step = step_minutes or settings.slot_duration_minutes

        if await ProfileService(self.db).get_active_therapist(therapist_id) is None:
            return []

        windows = await self.get_windows_for_date(therapist_id, target_date)
        if not windows:
            return []

        busy = await self.get_active_appointments(therapist_id, target_date)
        slots = generate_slots(target_date, windows, busy, step)

        logfire.info(
            "slots_computed",
            therapist_id=str(therapist_id),
            date=target_date.isoformat(),
            total=len(slots),
            available=sum(1 for slot in slots if slot.available),
        )
        return slots

    @translate_store_errors
    async def save_weekly_grid(
        self,
        actor: Actor,
        therapist_id: UUID,
        cells: Iterable[GridCell],
    ) -> list[AvailabilityRule]:
        """Replace a therapist's weekly rules with the windows drawn on the grid."""
        require_role(actor, Role.ADMIN, Role.THERAPIST, detail="Only therapists can set availability")
        require_admin_or_owner(actor, therapist_id, "Can only set your own availability")

        windows = normalize_grid(cells)

        await self.db.execute(delete(AvailabilityRule).where(AvailabilityRule.therapist_id == therapist_id))

        rules = [
            AvailabilityRule(
                therapist_id=therapist_id,
                day_of_week=window.day_of_week,
                start_time=window.start_time,
                end_time=window.end_time,
                is_available=True,
            )
            for window in windows
        ]
        self.db.add_all(rules)
        await self.db.flush()

        logfire.info("weekly_availability_saved", therapist_id=str(therapist_id), rules=len(rules))
        return rules

    async def get_grid(self, therapist_id: UUID) -> list[GridCell]:
        """Expand stored weekly rules back into calendar-editor cells."""
        return expand_to_grid(await self.get_weekly_rules(therapist_id))

    @translate_store_errors
    async def set_date_override(
        self,
        actor: Actor,
        therapist_id: UUID,
        target_date: date,
        start_time: time,
        end_time: time,
        is_available: bool = True,
        notes: str | None = None,
    ) -> DateOverride:
        """Create or replace the override starting at ``start_time`` on ``target_date``."""
        require_role(actor, Role.ADMIN, Role.THERAPIST, detail="Only therapists can set availability")
        require_admin_or_owner(actor, therapist_id, "Can only set your own availability")

        if start_time >= end_time:
            raise ValidationFailedError("Start time must be before end time.")

        result = await self.db.execute(
            select(DateOverride).where(
                DateOverride.therapist_id == therapist_id,
                DateOverride.override_date == target_date,
                DateOverride.start_time == start_time,
            )
        )
        override = result.scalar_one_or_none()

        if override is None:
            override = DateOverride(
                therapist_id=therapist_id,
                override_date=target_date,
                start_time=start_time,
            )
            self.db.add(override)

        override.end_time = end_time
        override.is_available = is_available
        override.notes = notes or ""

        await self.db.flush()
        await self.db.refresh(override)

        logfire.info(
            "date_override_set",
            therapist_id=str(therapist_id),
            date=target_date.isoformat(),
            start=start_time.isoformat(),
            is_available=is_available,
        )
        return override

    @translate_store_errors
    async def remove_date_override(
        self,
        actor: Actor,
        therapist_id: UUID,
        target_date: date,
        start_time: time,
    ) -> None:
        require_role(actor, Role.ADMIN, Role.THERAPIST, detail="Only therapists can remove availability")
        require_admin_or_owner(actor, therapist_id, "Can only remove your own availability")

        result = await self.db.execute(
            delete(DateOverride).where(
                DateOverride.therapist_id == therapist_id,
                DateOverride.override_date == target_date,
                DateOverride.start_time == start_time,
            )
        )

        if result.rowcount == 0:
            raise NotFoundError("Availability override not found")

        logfire.info("date_override_removed", therapist_id=str(therapist_id), date=target_date.isoformat())
