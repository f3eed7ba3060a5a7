import uuid
from datetime import datetime, date, time
from sqlalchemy import (
    String,
    DateTime,
    Date,
    Time,
    Boolean,
    Integer,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from therapy_booking.database import Base


class AvailabilityRule(Base):
    """Weekly recurring availability window for a therapist.

    ``day_of_week`` counts from Sunday: 0 = Sunday, 6 = Saturday.
    """

    __tablename__ = "therapist_availability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_availability_time_range"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityRule day={self.day_of_week} {self.start_time}-{self.end_time}>"


class DateOverride(Base):
    """Availability window for one specific calendar date.

    When a therapist has any override on a date, the weekly rules are not
    consulted for that date.
    """

    __tablename__ = "therapist_specific_availability"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    override_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    __table_args__ = (
        UniqueConstraint(
            "therapist_id",
            "date",
            "start_time",
            name="unique_override_start",
        ),
        CheckConstraint("start_time < end_time", name="ck_override_time_range"),
    )

    def __repr__(self) -> str:
        return f"<DateOverride {self.override_date} {self.start_time}-{self.end_time}>"
