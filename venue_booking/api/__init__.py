"""API endpoints for the Venue Booking reservation core."""

from fastapi import APIRouter
from .slots import router as slots_router
from .bookings import router as bookings_router
from .waitlist import router as waitlist_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include all routers
api_router.include_router(slots_router)
api_router.include_router(bookings_router)
api_router.include_router(waitlist_router)

__all__ = ["api_router"]
