"""
Seat model for slots that track individual seats.
"""

import enum
import uuid
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .slot import Slot


class SeatStatus(enum.Enum):
    """Enumeration for seat status."""
    AVAILABLE = "available"
    BOOKED = "booked"


class Seat(Base):
    """A labelled seat owned by a slot and held by at most one confirmed booking."""

    __tablename__ = "seats"

    slot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("slots.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Seat location information
    label: Mapped[str] = mapped_column(String(16), nullable=False)
    row: Mapped[str] = mapped_column(String(8), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus),
        default=SeatStatus.AVAILABLE,
        nullable=False,
        index=True
    )

    # Weak reference to the confirmed booking currently holding the seat
    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bookings.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    slot: Mapped["Slot"] = relationship("Slot", back_populates="seats")

    __table_args__ = (
        UniqueConstraint("slot_id", "label", name="uq_seats_slot_label"),
    )

    @property
    def is_available(self) -> bool:
        """Check if the seat is available for booking."""
        return self.status == SeatStatus.AVAILABLE

    def __repr__(self) -> str:
        """String representation of the seat."""
        return f"<Seat(slot_id={self.slot_id}, label='{self.label}', status={self.status.value})>"
