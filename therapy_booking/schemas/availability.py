from pydantic import BaseModel, Field, model_validator
from datetime import date, time
from uuid import UUID


class SlotResponse(BaseModel):
    """Schema for a computed slot."""
    date: date
    time: time
    available: bool


class WeeklyRuleResponse(BaseModel):
    """Schema for a weekly availability rule."""
    id: int
    therapist_id: UUID
    day_of_week: int = Field(..., description="0 = Sunday, 6 = Saturday")
    start_time: time
    end_time: time
    is_available: bool

    class Config:
        from_attributes = True


class GridCellSchema(BaseModel):
    """One hour cell of the weekly calendar editor."""
    day_of_week: int = Field(..., ge=0, le=6)
    hour: int = Field(..., ge=0, le=23)
    available: bool = True

    class Config:
        from_attributes = True


class WeeklyGridUpdate(BaseModel):
    """Schema for saving the weekly calendar grid."""
    therapist_id: UUID
    cells: list[GridCellSchema]


class DateOverrideCreate(BaseModel):
    """Schema for setting availability on one date."""
    therapist_id: UUID
    date: date
    start_time: time
    end_time: time
    is_available: bool = True
    notes: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time.")
        return self


class DateOverrideResponse(BaseModel):
    """Schema for a date-specific availability override."""
    id: int
    therapist_id: UUID
    override_date: date = Field(..., serialization_alias="date")
    start_time: time
    end_time: time
    is_available: bool
    notes: str | None = None

    class Config:
        from_attributes = True
