"""FastAPI application setup and configuration."""

import logging
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from venue_booking.config import settings
from venue_booking.api import api_router
from venue_booking.database import init_database, close_database, get_session_factory
from venue_booking.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from venue_booking.middleware.error_handler import error_response
from venue_booking.schemas.common import HealthResponse
from venue_booking.utils.exceptions import ValidationError
from venue_booking.utils.logging_config import setup_logging

# Set up logging
setup_logging(
    log_level=settings.log_level if not settings.debug else "DEBUG",
    log_file="logs/venue_booking.log" if settings.environment == "production" else None,
    enable_json_logging=settings.enable_json_logging or settings.environment == "production"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Venue Booking reservation core")
    await init_database()
    yield
    logger.info("Shutting down Venue Booking reservation core")
    await close_database()


app = FastAPI(
    title="Venue Booking API",
    description="""
    ## Venue Booking

    Seat and capacity reservations for event and movie showtimes under
    concurrent load.

    * **Reservations**: confirmed immediately when capacity allows, otherwise
      queued on the slot's waitlist (HTTP 202)
    * **Cancellations**: freed capacity is offered to the waitlist, first in
      first out among requests that fit
    * **Notifications**: waitlist events are pushed to the user's live channel

    ### Authentication

    Send `Authorization: Bearer <access_token>`; the token subject is the user id.

    ### Errors

    ```json
    {
      "error": {"error_code": "SEAT_CONFLICT", "message": "...", "details": {}},
      "error_id": "...",
      "timestamp": "..."
    }
    ```

    `503` responses carry `Retry-After`; the request is safe to retry.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "slots",
            "description": "Slot capacity, seat maps and reservations"
        },
        {
            "name": "bookings",
            "description": "A user's bookings and cancellations"
        },
        {
            "name": "waitlist",
            "description": "A user's waitlist entries"
        },
        {
            "name": "health",
            "description": "Service health"
        }
    ],
    lifespan=lifespan,
)

# Middleware stack; the last added runs outermost

# 1. Logging middleware (innermost, tags records with the request id)
app.add_middleware(
    LoggingMiddleware,
    log_requests=settings.enable_request_logging,
    log_responses=settings.enable_request_logging
)

# 2. Error handling middleware (catch all errors)
app.add_middleware(
    ErrorHandlerMiddleware,
    debug=settings.debug
)

# 3. CORS middleware
if settings.debug:
    cors_origins = ["*"]
    cors_allow_credentials = False  # Cannot use credentials with wildcard origins
else:
    cors_origins = settings.cors_origins
    cors_allow_credentials = settings.cors_allow_credentials

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
    expose_headers=settings.cors_expose_headers
)

# Include API routes
app.include_router(api_router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render request validation failures in the common error envelope."""
    field_errors = {}
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors.setdefault(field_path, []).append(error["msg"])

    return error_response(
        ValidationError("Request validation failed", field_errors=field_errors),
        str(uuid4())
    )


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
):
    """
    Health check endpoint.

    Reports ``degraded`` when the database does not answer.
    """
    checks = {}
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except DBAPIError as e:
        logger.error(f"Database health check failed: {e}")
        checks["database"] = "unavailable"

    return HealthResponse(
        status="healthy" if all(v == "ok" for v in checks.values()) else "degraded",
        environment=settings.environment,
        checks=checks
    )
