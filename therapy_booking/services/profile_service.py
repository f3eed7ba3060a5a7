"""Profile service - Read access to identity-provider profiles."""

from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from therapy_booking.errors import translate_store_errors
from therapy_booking.models.profile import Profile, Role


class ProfileService:
    """Service class for profile lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @translate_store_errors
    async def get_profile(self, profile_id: UUID) -> Profile | None:
        """Get a profile by ID."""
        return await self.db.get(Profile, profile_id)

    async def get_active_therapist(self, therapist_id: UUID) -> Profile | None:
        """Get a profile only if it belongs to an active therapist."""
        profile = await self.get_profile(therapist_id)

        if profile is None or not profile.is_active or profile.role != Role.THERAPIST.value:
            return None

        return profile
