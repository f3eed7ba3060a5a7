"""Services package - Business logic layer."""

from therapy_booking.services.profile_service import ProfileService
from therapy_booking.services.availability_service import AvailabilityService
from therapy_booking.services.appointment_service import AppointmentService
from therapy_booking.services.notification_service import NotificationService
from therapy_booking.services.offering_service import OfferingService

__all__ = [
    "ProfileService",
    "AvailabilityService",
    "AppointmentService",
    "NotificationService",
    "OfferingService",
]
