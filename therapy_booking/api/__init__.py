from fastapi import APIRouter
from therapy_booking.api.routes import availability, appointments, notifications, offerings

api_router = APIRouter()

api_router.include_router(availability.router, prefix="/availability", tags=["Availability"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(offerings.router, tags=["Offerings"])
