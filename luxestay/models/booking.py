"""
Booking model (pricing fields)

total_price = base_price * nights + addons_total
              - membership_discount - promotion_discount
              + cleaning_fee + service_fee

and never less than cleaning_fee + service_fee.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column,
    String,
    DECIMAL,
    Integer,
    DateTime,
    ForeignKey,
    JSON,
    CheckConstraint,
    Index,
    Uuid,
)
import uuid

from .base import Base


class BookingStatus(str, Enum):
    """Booking status"""

    PENDING = "PENDING"  # checkout in progress, codes may change
    CONFIRMED = "CONFIRMED"  # finalized, price snapshot frozen
    CANCELLED = "CANCELLED"


class PromotionEntryType(str, Enum):
    """Applied promotion snapshot entry type"""

    MEMBERSHIP = "MEMBERSHIP"
    PROMOTION = "PROMOTION"


class Booking(Base):
    """Booking model"""

    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    guest_id = Column(
        Uuid,
        ForeignKey("guests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    listing_id = Column(String(64), nullable=False, index=True)
    property_type = Column(String(30), nullable=False)
    base_price = Column(DECIMAL(14, 0), nullable=False)
    nights = Column(Integer, nullable=False)
    cleaning_fee = Column(DECIMAL(14, 0), nullable=False, default=0)
    service_fee = Column(DECIMAL(14, 0), nullable=False, default=0)
    addons_total = Column(DECIMAL(14, 0), nullable=False, default=0)
    membership_discount = Column(DECIMAL(14, 0), nullable=False, default=0)
    promotion_discount = Column(DECIMAL(14, 0), nullable=False, default=0)
    applied_promotions = Column(JSON, nullable=False, default=list)
    voucher_id = Column(
        Uuid, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True
    )
    total_price = Column(DECIMAL(14, 0), nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING.value,
        index=True,
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("nights > 0", name="check_nights_positive"),
        CheckConstraint("base_price >= 0", name="check_base_price_non_negative"),
        CheckConstraint(
            "total_price >= cleaning_fee + service_fee",
            name="check_total_price_fee_floor",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED')",
            name="check_booking_status",
        ),
        Index("idx_bookings_guest_status", "guest_id", "status"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, status={self.status}, total={self.total_price})>"

    @property
    def room_subtotal(self) -> Decimal:
        return Decimal(str(self.base_price)) * self.nights

    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING.value

    def promotion_entry(self) -> dict | None:
        """The PROMOTION entry of the snapshot, if a code is attached."""
        for entry in self.applied_promotions or []:
            if entry.get("type") == PromotionEntryType.PROMOTION.value:
                return entry
        return None

    def mark_as_confirmed(self):
        if self.status != BookingStatus.PENDING.value:
            raise ValueError(f"Cannot confirm booking in status {self.status}")
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = datetime.utcnow()

    def mark_as_cancelled(self):
        if self.status == BookingStatus.CANCELLED.value:
            raise ValueError("Booking is already cancelled")
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.utcnow()
