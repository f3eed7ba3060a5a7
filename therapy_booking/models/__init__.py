from therapy_booking.models.profile import Profile, Role
from therapy_booking.models.service import Service
from therapy_booking.models.therapist_service import TherapistService
from therapy_booking.models.availability import AvailabilityRule, DateOverride
from therapy_booking.models.appointment import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    PaymentStatus,
)
from therapy_booking.models.notification import Notification, NotificationType

__all__ = [
    "Profile",
    "Role",
    "Service",
    "TherapistService",
    "AvailabilityRule",
    "DateOverride",
    "ACTIVE_STATUSES",
    "Appointment",
    "AppointmentStatus",
    "PaymentStatus",
    "Notification",
    "NotificationType",
]
