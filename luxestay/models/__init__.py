"""
Database models

Import every model here so `Base.metadata` knows about all tables.
"""

from .base import Base, TimestampMixin, get_db, init_db, close_db
from .guest import Guest, MembershipPlan, LoyaltyTier, MembershipStatus
from .voucher import Voucher, DiscountType, VoucherSource, normalize_code
from .voucher_redemption import VoucherRedemption, RedemptionStatus
from .booking import Booking, BookingStatus, PromotionEntryType

__all__ = [
    "Base",
    "TimestampMixin",
    "get_db",
    "init_db",
    "close_db",
    "Guest",
    "MembershipPlan",
    "LoyaltyTier",
    "MembershipStatus",
    "Voucher",
    "DiscountType",
    "VoucherSource",
    "normalize_code",
    "VoucherRedemption",
    "RedemptionStatus",
    "Booking",
    "BookingStatus",
    "PromotionEntryType",
]
