"""
Guest and membership plan models

Only the fields pricing needs: loyalty tier for voucher restrictions and the
membership plan the booking discount is derived from.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlalchemy import String, DECIMAL, Boolean, ForeignKey, Uuid, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
import uuid

from .base import Base, TimestampMixin


class LoyaltyTier(str, Enum):
    """Loyalty tier"""

    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"


class MembershipStatus(str, Enum):
    """Membership subscription status"""

    INACTIVE = "INACTIVE"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class MembershipPlan(Base, TimestampMixin):
    """Membership plan"""

    __tablename__ = "membership_plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    booking_discount_rate: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2), nullable=False, default=Decimal("0")
    )
    apply_discount_to_services: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    experience_discount_rate: Mapped[Decimal] = mapped_column(
        DECIMAL(5, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(
            "booking_discount_rate >= 0 AND booking_discount_rate <= 100",
            name="check_booking_discount_rate_range",
        ),
    )

    def __repr__(self):
        return f"<MembershipPlan(slug={self.slug}, rate={self.booking_discount_rate})>"


class Guest(Base, TimestampMixin):
    """Guest account"""

    __tablename__ = "guests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    loyalty_tier: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    membership_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MembershipStatus.INACTIVE.value
    )
    membership_expires_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    membership_plan_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("membership_plans.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self):
        return f"<Guest(id={self.id}, tier={self.loyalty_tier}, membership={self.membership_status})>"
