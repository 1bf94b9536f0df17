"""
Voucher redemption model

One row per finalized booking that consumed a voucher. The per-guest cap counts
rows still in USED status.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column,
    String,
    ForeignKey,
    DateTime,
    Index,
    CheckConstraint,
    Uuid,
)
import uuid

from .base import Base


class RedemptionStatus(str, Enum):
    """Redemption status"""

    USED = "USED"  # counted against the voucher
    RELEASED = "RELEASED"  # booking cancelled, usage given back


class VoucherRedemption(Base):
    """Voucher redemption model"""

    __tablename__ = "voucher_redemptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    voucher_id = Column(
        Uuid, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False
    )
    guest_id = Column(
        Uuid, ForeignKey("guests.id", ondelete="CASCADE"), nullable=False
    )
    booking_id = Column(
        Uuid, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
    )
    status = Column(String(20), nullable=False, default=RedemptionStatus.USED.value)
    redeemed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    released_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('USED', 'RELEASED')", name="check_redemption_status"
        ),
        CheckConstraint(
            "released_at IS NULL OR released_at >= redeemed_at",
            name="check_released_after_redeemed",
        ),
        Index("idx_voucher_redemptions_guest", "voucher_id", "guest_id", "status"),
        Index("idx_voucher_redemptions_booking", "booking_id"),
    )

    def __repr__(self):
        return f"<VoucherRedemption(id={self.id}, voucher_id={self.voucher_id}, status={self.status})>"

    def release(self, now: datetime | None = None):
        """Give the usage back (booking cancelled)"""
        self.status = RedemptionStatus.RELEASED.value
        self.released_at = now or datetime.utcnow()
