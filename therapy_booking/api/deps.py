"""Request-scoped dependencies: database session and calling actor."""

from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_booking.config import settings
from therapy_booking.database import get_db
from therapy_booking.models.profile import Role
from therapy_booking.services.authorization import Actor
from therapy_booking.services.profile_service import ProfileService

DBSession = Annotated[AsyncSession, Depends(get_db)]

security = HTTPBearer()


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )


async def get_current_actor(
    db: DBSession,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """Resolve the bearer token to an active profile and its role."""
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    try:
        profile_id = UUID(str(payload.get("sub", "")))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token subject") from exc

    profile = await ProfileService(db).get_profile(profile_id)
    if profile is None or not profile.is_active:
        raise HTTPException(status_code=401, detail="User not found")

    return Actor(id=profile.id, role=Role(profile.role))


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
