from therapy_booking.schemas.appointment import (
    AppointmentCreate,
    AppointmentCancel,
    AppointmentResponse,
)
from therapy_booking.schemas.availability import (
    SlotResponse,
    WeeklyRuleResponse,
    GridCellSchema,
    WeeklyGridUpdate,
    DateOverrideCreate,
    DateOverrideResponse,
)
from therapy_booking.schemas.notification import NotificationResponse
from therapy_booking.schemas.offering import (
    OfferedTherapistResponse,
    OfferingItem,
    TherapistServicesUpdate,
    OfferingResponse,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentCancel",
    "AppointmentResponse",
    "SlotResponse",
    "WeeklyRuleResponse",
    "GridCellSchema",
    "WeeklyGridUpdate",
    "DateOverrideCreate",
    "DateOverrideResponse",
    "NotificationResponse",
    "OfferedTherapistResponse",
    "OfferingItem",
    "TherapistServicesUpdate",
    "OfferingResponse",
]
