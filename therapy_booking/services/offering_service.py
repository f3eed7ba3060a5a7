"""Offering service - Which therapists offer which services."""

from decimal import Decimal
from typing import Iterable, NamedTuple

import logfire
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from therapy_booking.errors import NotFoundError, translate_store_errors
from therapy_booking.models.profile import Profile, Role
from therapy_booking.models.service import Service
from therapy_booking.models.therapist_service import TherapistService
from therapy_booking.services.authorization import Actor, require_admin_or_owner, require_role


class OfferedTherapist(NamedTuple):
    """Active therapist offering a service, with their price for it if set."""
    id: UUID
    name: str | None
    email: str
    price: Decimal | None


class OfferingService:
    """Service class for therapist/service offerings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @translate_store_errors
    async def list_therapists_for_service(self, service_id: int) -> list[OfferedTherapist]:
        """Get the active therapists offering a service, ordered by name."""
        result = await self.db.execute(
            select(Profile, TherapistService.price)
            .join(TherapistService, TherapistService.therapist_id == Profile.id)
            .where(
                TherapistService.service_id == service_id,
                Profile.role == Role.THERAPIST.value,
                Profile.is_active.is_(True),
            )
            .order_by(Profile.name, Profile.email)
        )
        return [
            OfferedTherapist(id=profile.id, name=profile.name, email=profile.email, price=price)
            for profile, price in result.all()
        ]

    @translate_store_errors
    async def list_services_for_therapist(self, therapist_id: UUID) -> list[TherapistService]:
        result = await self.db.execute(
            select(TherapistService)
            .where(TherapistService.therapist_id == therapist_id)
            .order_by(TherapistService.service_id)
        )
        return list(result.scalars().all())

    @translate_store_errors
    async def therapist_offers(self, therapist_id: UUID, service_id: int) -> bool:
        result = await self.db.execute(
            select(TherapistService.id).where(
                TherapistService.therapist_id == therapist_id,
                TherapistService.service_id == service_id,
            )
        )
        return result.first() is not None

    @translate_store_errors
    async def save_therapist_services(
        self,
        actor: Actor,
        therapist_id: UUID,
        offerings: Iterable[tuple[int, Decimal | None]],
    ) -> list[TherapistService]:
        """Replace the services a therapist offers.

        ``offerings`` are ``(service_id, price)`` pairs; a repeated service id
        keeps its last price. Unknown service ids are rejected.
        """
        require_role(actor, Role.ADMIN, Role.THERAPIST, detail="Only therapists can choose their services")
        require_admin_or_owner(actor, therapist_id, "Can only choose your own services")

        prices = dict(offerings)
        if prices:
            result = await self.db.execute(select(Service.id).where(Service.id.in_(list(prices))))
            missing = set(prices) - set(result.scalars().all())
            if missing:
                raise NotFoundError(f"Service not found: {', '.join(str(service_id) for service_id in sorted(missing))}")

        await self.db.execute(delete(TherapistService).where(TherapistService.therapist_id == therapist_id))

        rows = [
            TherapistService(therapist_id=therapist_id, service_id=service_id, price=price)
            for service_id, price in sorted(prices.items())
        ]
        self.db.add_all(rows)
        await self.db.flush()

        logfire.info("therapist_services_saved", therapist_id=str(therapist_id), services=len(rows))
        return rows
