"""
Booking model for confirmed and cancelled reservations.
"""

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class BookingStatus(enum.Enum):
    """Enumeration for booking status."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(Base):
    """Booking model: the durable record of a reservation against a slot."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    # Slot is referenced, not owned: removing a booking never touches the slot
    slot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("slots.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    seats: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True
    )

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Set when the booking was created by waitlist promotion
    waitlist_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bookings_quantity_positive"),
        Index("ix_bookings_user_created", "user_id", "created_at"),
        Index("ix_bookings_slot_status", "slot_id", "status"),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking still holds capacity."""
        return self.status == BookingStatus.CONFIRMED

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<Booking(id={self.id}, user_id={self.user_id}, "
            f"slot_id={self.slot_id}, quantity={self.quantity}, status={self.status.value})>"
        )
