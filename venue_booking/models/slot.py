"""
Slot model: one bookable showtime of an event or movie with fixed capacity.
"""

import enum
import uuid
from datetime import datetime
from typing import List, TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .seat import Seat


class ParentType(enum.Enum):
    """Kind of listing a slot belongs to."""
    EVENT = "event"
    MOVIE = "movie"


class SlotStatus(enum.Enum):
    """Derived availability of a slot."""
    AVAILABLE = "available"
    FULL = "full"


class Slot(Base):
    """
    Slot model with capacity accounting.

    ``booked`` is read-only on the model. The column is written exclusively by
    the reservation service through a compare-and-swap on ``version``.
    """

    __tablename__ = "slots"

    # Polymorphic parent reference
    parent_type: Mapped[ParentType] = mapped_column(Enum(ParentType), nullable=False)
    parent_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    # Slot timing
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Capacity management
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    _booked: Mapped[int] = mapped_column("booked", Integer, nullable=False, default=0)

    # Optimistic locking for concurrency control
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Seat-level tracking
    seat_tracking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    seats: Mapped[List["Seat"]] = relationship(
        "Seat",
        back_populates="slot",
        cascade="all, delete-orphan",
        lazy="raise"
    )

    # Constraints
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_slots_capacity_positive"),
        CheckConstraint("booked >= 0", name="ck_slots_booked_non_negative"),
        CheckConstraint("booked <= capacity", name="ck_slots_booked_within_capacity"),
        CheckConstraint("version > 0", name="ck_slots_version_positive"),
        CheckConstraint("ends_at > starts_at", name="ck_slots_time_order"),
        Index("ix_slots_parent", "parent_type", "parent_id"),
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._booked = 0
        if self.version is None:
            self.version = 1
        if self.seat_tracking is None:
            self.seat_tracking = False

    @property
    def booked(self) -> int:
        """Units held by confirmed bookings."""
        return self._booked

    @property
    def available(self) -> int:
        """Units still free for reservation."""
        return self.capacity - self._booked

    @property
    def status(self) -> SlotStatus:
        """AVAILABLE while any unit is free, FULL otherwise."""
        return SlotStatus.AVAILABLE if self.available > 0 else SlotStatus.FULL

    def __repr__(self) -> str:
        """String representation of the slot."""
        return (
            f"<Slot(id={self.id}, parent={self.parent_type.value}:{self.parent_id}, "
            f"booked={self._booked}/{self.capacity}, version={self.version})>"
        )
