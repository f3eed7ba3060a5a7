import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import DateTime, Integer, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from therapy_booking.database import Base


class TherapistService(Base):
    """A service a therapist offers, optionally with the therapist's own price."""

    __tablename__ = "therapist_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[int] = mapped_column(
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )

    __table_args__ = (
        UniqueConstraint("therapist_id", "service_id", name="unique_therapist_service"),
    )

    def __repr__(self) -> str:
        return f"<TherapistService {self.therapist_id} -> {self.service_id}>"
