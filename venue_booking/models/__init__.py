"""
Database models for the Venue Booking reservation core.
"""

from .base import Base
from .slot import Slot, SlotStatus, ParentType
from .seat import Seat, SeatStatus
from .booking import Booking, BookingStatus
from .waitlist import WaitlistEntry, WaitlistStatus

__all__ = [
    "Base",
    "Slot",
    "SlotStatus",
    "ParentType",
    "Seat",
    "SeatStatus",
    "Booking",
    "BookingStatus",
    "WaitlistEntry",
    "WaitlistStatus",
]
