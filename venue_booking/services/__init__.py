"""Reservation core services for the Venue Booking platform."""

from .notification_service import NotificationEmitter, CeleryNotificationEmitter, NotificationEvent
from .reservation_service import ReservationService, ReservationOutcome
from .waitlist_service import WaitlistService
from .slot_service import SlotService

__all__ = [
    "NotificationEmitter",
    "CeleryNotificationEmitter",
    "NotificationEvent",
    "ReservationService",
    "ReservationOutcome",
    "WaitlistService",
    "SlotService",
]
