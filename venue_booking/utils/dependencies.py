"""
FastAPI dependencies for authentication and service wiring.
"""

from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import get_session_factory
from ..services.notification_service import NotificationEmitter, get_notification_emitter
from ..services.reservation_service import ReservationService
from ..services.slot_service import SlotService
from ..utils.auth import verify_token


# HTTP Bearer token scheme
security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> UUID:
    """
    Resolve the trusted user id from the bearer token.

    Raises:
        HTTPException: If the token is invalid
    """
    token_data = verify_token(credentials.credentials)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data.user_id


def get_reservation_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    notifier: NotificationEmitter = Depends(get_notification_emitter)
) -> ReservationService:
    """Reservation service bound to the app's session factory."""
    return ReservationService(session_factory, notifier)


def get_slot_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory)
) -> SlotService:
    """Slot service bound to the app's session factory."""
    return SlotService(session_factory)
