"""
Waitlist model for requests that did not fit a slot's capacity.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class WaitlistStatus(enum.Enum):
    """Enumeration for waitlist status."""
    PENDING = "pending"
    PROMOTED = "promoted"
    EXPIRED = "expired"


class WaitlistEntry(Base):
    """Waitlist entry. Ordered by ``arrived_at`` with ``id`` as tie-break."""

    __tablename__ = "waitlist_entries"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    slot_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("slots.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    arrived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[WaitlistStatus] = mapped_column(
        Enum(WaitlistStatus),
        default=WaitlistStatus.PENDING,
        nullable=False,
        index=True
    )

    booking_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_waitlist_quantity_positive"),
        Index("ix_waitlist_slot_queue", "slot_id", "status", "arrived_at"),
        # One PENDING entry per user and slot
        Index(
            "uq_waitlist_pending_user_slot",
            "user_id",
            "slot_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    @property
    def is_pending(self) -> bool:
        """Check if the entry is still waiting."""
        return self.status == WaitlistStatus.PENDING

    def __repr__(self) -> str:
        """String representation of the waitlist entry."""
        return (
            f"<WaitlistEntry(id={self.id}, user_id={self.user_id}, slot_id={self.slot_id}, "
            f"quantity={self.quantity}, status={self.status.value})>"
        )
