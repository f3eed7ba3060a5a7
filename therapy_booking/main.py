import logging
from contextlib import asynccontextmanager

import logfire
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from therapy_booking.config import settings
from therapy_booking.database import init_db, close_db
from therapy_booking.api import api_router
from therapy_booking.errors import BookingError

logger = logging.getLogger(__name__)

# Logfire is only wired up when a token is configured
if settings.logfire_token:
    logfire.configure(
        token=settings.logfire_token,
        service_name="therapy-booking-api",
        environment=settings.app_env,
        console=False,
    )
    logger.info("Logfire initialized")
else:
    logger.info("Logfire token not set - observability disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting %s", settings.app_name)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.app_name,
    description="Therapy session booking: availability, slots and appointments",
    version="1.0.0",
    lifespan=lifespan,
)

if settings.logfire_token:
    logfire.instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.detail},
    )


app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "environment": settings.app_env,
    }
