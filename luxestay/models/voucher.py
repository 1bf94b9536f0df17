"""
Voucher model

Discount codes issued by admins, by hosts, or exchanged for loyalty points.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column,
    String,
    Text,
    DECIMAL,
    Integer,
    DateTime,
    Boolean,
    JSON,
    Index,
    CheckConstraint,
    Uuid,
)
import uuid

from .base import Base
from luxestay.services.discount_calculator import (
    FixedAmountDiscount,
    PercentageDiscount,
    VoucherTerms,
)


class DiscountType(str, Enum):
    """Discount type"""

    PERCENTAGE = "PERCENTAGE"  # e.g. 10% of the room subtotal
    FIXED_AMOUNT = "FIXED_AMOUNT"  # e.g. 200,000 VND


class VoucherSource(str, Enum):
    """Who issued the voucher"""

    ADMIN = "ADMIN"
    HOST = "HOST"
    LOYALTY_EXCHANGE = "LOYALTY_EXCHANGE"


def normalize_code(code: str) -> str:
    """Codes are matched trimmed and upper-cased."""
    return code.strip().upper()


class Voucher(Base):
    """Voucher model"""

    __tablename__ = "vouchers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(DECIMAL(14, 2), nullable=False)
    max_discount = Column(DECIMAL(14, 2), nullable=True)
    min_booking_value = Column(DECIMAL(14, 2), nullable=True)
    max_uses = Column(Integer, nullable=True)
    max_uses_per_user = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    allowed_membership_tiers = Column(JSON, nullable=False, default=list)
    listing_ids = Column(JSON, nullable=False, default=list)
    property_types = Column(JSON, nullable=False, default=list)
    guest_ids = Column(JSON, nullable=False, default=list)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    stack_with_membership = Column(Boolean, nullable=False, default=True)
    stack_with_promotions = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    source = Column(String(20), nullable=False, default=VoucherSource.ADMIN.value)
    host_id = Column(String(64), nullable=True, index=True)
    point_cost = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="check_discount_value_positive"),
        CheckConstraint("valid_until >= valid_from", name="check_valid_date_range"),
        CheckConstraint("used_count >= 0", name="check_used_count_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="check_used_count_within_max_uses",
        ),
        CheckConstraint(
            "discount_type IN ('PERCENTAGE', 'FIXED_AMOUNT')",
            name="check_discount_type",
        ),
        CheckConstraint(
            "source IN ('ADMIN', 'HOST', 'LOYALTY_EXCHANGE')",
            name="check_voucher_source",
        ),
        Index("idx_vouchers_valid_dates", "valid_from", "valid_until"),
        Index("idx_vouchers_source", "source"),
    )

    def __repr__(self):
        return f"<Voucher(id={self.id}, code={self.code}, used={self.used_count}/{self.max_uses})>"

    def is_usage_limit_reached(self) -> bool:
        """Global usage cap reached"""
        if self.max_uses is None:
            return False
        return (self.used_count or 0) >= self.max_uses

    def to_terms(self) -> VoucherTerms:
        """
        Build the pricing view of this voucher

        Only the fields relevant to the discount type are carried over.
        """
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = PercentageDiscount(
                rate=self.discount_value,
                max_discount=self.max_discount,
            )
        else:
            discount = FixedAmountDiscount(amount=self.discount_value)

        return VoucherTerms(
            code=self.code,
            name=self.name,
            discount=discount,
            stack_with_membership=bool(self.stack_with_membership),
            stack_with_promotions=bool(self.stack_with_promotions),
        )

