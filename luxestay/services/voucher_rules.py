"""
Voucher eligibility rules

Decides whether a voucher may be applied to a booking. The check is pure: it
reads the voucher and an explicit booking context and returns a typed result,
it never raises for an ineligible voucher and never mutates anything.

Checks run in a fixed order and stop at the first failure:

1. voucher active
2. current time inside [valid_from, valid_until]
3. minimum booking value
4. global usage cap
5. per-guest usage cap
6. guest restriction
7. membership tier restriction
8. listing / property type restriction
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from luxestay.services.discount_calculator import to_decimal


class VoucherRejection(str, Enum):
    """Why a voucher cannot be applied"""

    VOUCHER_NOT_FOUND = "VOUCHER_NOT_FOUND"
    VOUCHER_INACTIVE = "VOUCHER_INACTIVE"
    VOUCHER_EXPIRED = "VOUCHER_EXPIRED"
    VOUCHER_NOT_YET_VALID = "VOUCHER_NOT_YET_VALID"
    BELOW_MINIMUM_SPEND = "BELOW_MINIMUM_SPEND"
    VOUCHER_EXHAUSTED = "VOUCHER_EXHAUSTED"
    PER_USER_LIMIT_REACHED = "PER_USER_LIMIT_REACHED"
    GUEST_NOT_ELIGIBLE = "GUEST_NOT_ELIGIBLE"
    TIER_NOT_ELIGIBLE = "TIER_NOT_ELIGIBLE"
    NOT_APPLICABLE_TO_LISTING = "NOT_APPLICABLE_TO_LISTING"
    STACKING_CONFLICT = "STACKING_CONFLICT"
    NO_EFFECTIVE_DISCOUNT = "NO_EFFECTIVE_DISCOUNT"

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self]


REJECTION_MESSAGES = {
    VoucherRejection.VOUCHER_NOT_FOUND: "This code does not exist.",
    VoucherRejection.VOUCHER_INACTIVE: "This code is no longer active.",
    VoucherRejection.VOUCHER_EXPIRED: "This code has expired.",
    VoucherRejection.VOUCHER_NOT_YET_VALID: "This code is not valid yet.",
    VoucherRejection.BELOW_MINIMUM_SPEND: (
        "The booking value is below the minimum required for this code."
    ),
    VoucherRejection.VOUCHER_EXHAUSTED: "This code has reached its usage limit.",
    VoucherRejection.PER_USER_LIMIT_REACHED: (
        "You have already used this code the maximum number of times."
    ),
    VoucherRejection.GUEST_NOT_ELIGIBLE: "This code is not available for your account.",
    VoucherRejection.TIER_NOT_ELIGIBLE: (
        "This code is reserved for other membership tiers."
    ),
    VoucherRejection.NOT_APPLICABLE_TO_LISTING: (
        "This code does not apply to this stay."
    ),
    VoucherRejection.STACKING_CONFLICT: (
        "This code cannot be combined with your membership discount."
    ),
    VoucherRejection.NO_EFFECTIVE_DISCOUNT: (
        "This code does not reduce the price of this booking."
    ),
}


class BookingContext:
    """
    Everything the rules need to know about the booking being priced

    The guest's tier and prior usage are passed in explicitly; the rules never
    look up the current guest on their own.
    """

    def __init__(
        self,
        subtotal,
        listing_id: Optional[str] = None,
        property_type: Optional[str] = None,
        membership_tier: Optional[str] = None,
        prior_redemptions: int = 0,
        now: Optional[datetime] = None,
        guest_id: Any = None,
    ):
        self.subtotal = to_decimal(subtotal)
        self.listing_id = listing_id
        self.property_type = property_type
        self.membership_tier = membership_tier
        self.prior_redemptions = prior_redemptions
        self.guest_id = guest_id
        self.now = now or datetime.utcnow()


class VoucherCheck:
    """Result of a rule check: accepted, or rejected with one reason."""

    def __init__(self, reason: Optional[VoucherRejection] = None):
        self.reason = reason

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> str:
        return "" if self.reason is None else self.reason.message

    def __eq__(self, other: object) -> bool:
        return isinstance(other, VoucherCheck) and other.reason == self.reason

    def __repr__(self):
        return f"<VoucherCheck(reason={self.reason})>"


ACCEPTED = VoucherCheck()


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def check_voucher(voucher: Any, context: BookingContext) -> VoucherCheck:
    """
    Check a voucher against a booking context

    Args:
        voucher: Voucher row (or anything exposing the same attributes)
        context: booking context

    Returns:
        VoucherCheck: `ACCEPTED` or the first failing reason
    """
    # 1. Active flag
    if not voucher.is_active:
        return VoucherCheck(VoucherRejection.VOUCHER_INACTIVE)

    # 2. Validity window
    if voucher.valid_from is not None and context.now < voucher.valid_from:
        return VoucherCheck(VoucherRejection.VOUCHER_NOT_YET_VALID)
    if voucher.valid_until is not None and context.now > voucher.valid_until:
        return VoucherCheck(VoucherRejection.VOUCHER_EXPIRED)

    # 3. Minimum spend
    if voucher.min_booking_value is not None and context.subtotal < to_decimal(
        voucher.min_booking_value
    ):
        return VoucherCheck(VoucherRejection.BELOW_MINIMUM_SPEND)

    # 4. Global cap
    if voucher.max_uses is not None and (voucher.used_count or 0) >= voucher.max_uses:
        return VoucherCheck(VoucherRejection.VOUCHER_EXHAUSTED)

    # 5. Per-guest cap
    if (
        voucher.max_uses_per_user is not None
        and context.prior_redemptions >= voucher.max_uses_per_user
    ):
        return VoucherCheck(VoucherRejection.PER_USER_LIMIT_REACHED)

    # 6. Guest restriction
    guest_ids = [str(g) for g in (voucher.guest_ids or [])]
    if guest_ids and str(context.guest_id) not in guest_ids:
        return VoucherCheck(VoucherRejection.GUEST_NOT_ELIGIBLE)

    # 7. Membership tier
    allowed_tiers = [_enum_value(t) for t in (voucher.allowed_membership_tiers or [])]
    if allowed_tiers and _enum_value(context.membership_tier) not in allowed_tiers:
        return VoucherCheck(VoucherRejection.TIER_NOT_ELIGIBLE)

    # 8. Listing / property type
    listing_ids = voucher.listing_ids or []
    if listing_ids and context.listing_id not in listing_ids:
        return VoucherCheck(VoucherRejection.NOT_APPLICABLE_TO_LISTING)

    property_types = [_enum_value(t) for t in (voucher.property_types or [])]
    if property_types and _enum_value(context.property_type) not in property_types:
        return VoucherCheck(VoucherRejection.NOT_APPLICABLE_TO_LISTING)

    return ACCEPTED


def is_allowed_percentage(value, options) -> bool:
    """Percentage vouchers only come in the configured steps."""
    return to_decimal(value) in {Decimal(option) for option in options}
