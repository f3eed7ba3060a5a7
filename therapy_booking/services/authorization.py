"""Caller identity and ownership checks shared by the services."""

from dataclasses import dataclass
from uuid import UUID

from therapy_booking.errors import UnauthorizedError
from therapy_booking.models.profile import Role


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller: profile id plus role."""

    id: UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def require_role(actor: Actor, *roles: Role, detail: str) -> None:
    if actor.role not in roles:
        raise UnauthorizedError(detail)


def require_admin_or_owner(actor: Actor, owner_id: UUID, detail: str) -> None:
    """Admins pass; everyone else must be the owner of the resource."""
    if not actor.is_admin and actor.id != owner_id:
        raise UnauthorizedError(detail)
