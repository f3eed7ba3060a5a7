"""Typed error kinds raised by the service layer.

Each kind maps to one HTTP status; ``main.py`` registers a single handler
that renders them as ``{"error": kind, "detail": message}``.
"""

import functools
import logging

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for errors the API reports to callers."""

    kind = "booking_error"
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = 404


class UnauthorizedError(BookingError):
    kind = "unauthorized"
    status_code = 403


class ValidationFailedError(BookingError):
    kind = "validation_failed"
    status_code = 400


class ConflictError(BookingError):
    kind = "conflict"
    status_code = 409


class StoreUnavailableError(BookingError):
    kind = "store_unavailable"
    status_code = 503


def translate_store_errors(func):
    """Turn SQLAlchemy failures raised by a service coroutine into StoreUnavailableError."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Store call %s failed", func.__qualname__)
            raise StoreUnavailableError("Database unavailable. Please try again later.") from exc

    return wrapper
