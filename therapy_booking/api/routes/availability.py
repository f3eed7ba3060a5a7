"""Availability routes - Weekly rules, date overrides and bookable slots."""

from datetime import date, time

from fastapi import APIRouter, Query, Response
from uuid import UUID

from therapy_booking.api.deps import CurrentActor, DBSession
from therapy_booking.schemas.availability import (
    DateOverrideCreate,
    DateOverrideResponse,
    GridCellSchema,
    SlotResponse,
    WeeklyGridUpdate,
    WeeklyRuleResponse,
)
from therapy_booking.services.availability_service import AvailabilityService

router = APIRouter()


@router.get("/slots", response_model=list[SlotResponse])
async def get_slots(
    db: DBSession,
    therapist_id: UUID,
    date: date,
    step_minutes: int | None = Query(default=None, ge=5, le=240),
):
    """Get a therapist's slots for a date, each flagged available or taken."""
    service = AvailabilityService(db)
    slots = await service.get_slots(therapist_id, date, step_minutes)
    return [SlotResponse(**slot._asdict()) for slot in slots]


@router.get("/")
async def get_availability(db: DBSession, therapist_id: UUID, date: date | None = None) -> list[dict]:
    """Get the weekly rules, or the overrides for one date when ``date`` is given."""
    service = AvailabilityService(db)

    if date is not None:
        overrides = await service.get_date_overrides(therapist_id, date)
        return [
            DateOverrideResponse.model_validate(override).model_dump(mode="json", by_alias=True)
            for override in overrides
        ]

    rules = await service.get_weekly_rules(therapist_id)
    return [WeeklyRuleResponse.model_validate(rule).model_dump(mode="json") for rule in rules]


@router.get("/grid", response_model=list[GridCellSchema])
async def get_grid(db: DBSession, therapist_id: UUID):
    """Get the weekly rules as calendar-editor cells."""
    service = AvailabilityService(db)
    cells = await service.get_grid(therapist_id)
    return [GridCellSchema(**cell._asdict()) for cell in cells]


@router.put("/weekly", response_model=list[WeeklyRuleResponse])
async def save_weekly_grid(data: WeeklyGridUpdate, actor: CurrentActor, db: DBSession):
    """Replace the therapist's weekly rules with the selected grid cells."""
    service = AvailabilityService(db)
    return await service.save_weekly_grid(actor, data.therapist_id, data.cells)


@router.post("/overrides", response_model=DateOverrideResponse, status_code=201)
async def set_date_override(data: DateOverrideCreate, actor: CurrentActor, db: DBSession):
    service = AvailabilityService(db)
    return await service.set_date_override(
        actor,
        data.therapist_id,
        data.date,
        data.start_time,
        data.end_time,
        data.is_available,
        data.notes,
    )


@router.delete("/overrides", status_code=204)
async def remove_date_override(
    actor: CurrentActor,
    db: DBSession,
    therapist_id: UUID,
    date: date,
    start_time: time,
):
    service = AvailabilityService(db)
    await service.remove_date_override(actor, therapist_id, date, start_time)
    return Response(status_code=204)
