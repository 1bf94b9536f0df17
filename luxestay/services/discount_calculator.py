"""
Discount calculator

Turns a voucher or a membership benefit into a monetary amount and resolves
how a membership discount and a voucher combine on one booking.

All amounts are whole currency units (VND has no subunit) and are rounded
half-up by `round_currency`, which is also what the quote shown at checkout
uses.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Coerce ints, floats, strings and Decimals to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(amount) -> Decimal:
    """Round to a whole currency unit, half-up."""
    return to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PercentageDiscount:
    """Percentage of the base, optionally capped."""

    rate: Decimal
    max_discount: Optional[Decimal] = None

    def amount_for(self, base) -> Decimal:
        base = to_decimal(base)
        if base <= ZERO:
            return ZERO

        discount = round_currency(base * to_decimal(self.rate) / HUNDRED)

        if self.max_discount is not None:
            discount = min(discount, round_currency(self.max_discount))

        return min(discount, round_currency(base))


@dataclass(frozen=True)
class FixedAmountDiscount:
    """Flat amount, never more than the base."""

    amount: Decimal

    def amount_for(self, base) -> Decimal:
        base = to_decimal(base)
        if base <= ZERO:
            return ZERO
        return min(round_currency(self.amount), round_currency(base))


Discount = Union[PercentageDiscount, FixedAmountDiscount]


@dataclass(frozen=True)
class VoucherTerms:
    """What pricing needs to know about a validated voucher."""

    code: str
    name: str
    discount: Discount
    stack_with_membership: bool = True
    stack_with_promotions: bool = False

    @property
    def discount_type(self) -> str:
        if isinstance(self.discount, PercentageDiscount):
            return "PERCENTAGE"
        return "FIXED_AMOUNT"

    @property
    def rate(self) -> Optional[Decimal]:
        if isinstance(self.discount, PercentageDiscount):
            return to_decimal(self.discount.rate)
        return None


@dataclass(frozen=True)
class MembershipDiscountEntry:
    """
    Membership benefit for one booking

    Derived from the guest's active plan when the booking is priced; it is not
    stored anywhere except inside the booking's applied-promotion snapshot.
    """

    tier_name: str
    rate: Decimal
    applies_to_services: bool = False
    plan_slug: Optional[str] = None

    def amount_for(self, base) -> Decimal:
        return PercentageDiscount(rate=self.rate).amount_for(base)


@dataclass(frozen=True)
class DiscountResolution:
    """
    Outcome of combining membership and voucher discounts

    `voucher_blocked` is set when the voucher does not stack with membership
    and the membership discount was kept instead. `membership_dropped` is set
    when the voucher won that comparison.
    """

    membership_discount: Decimal
    promotion_discount: Decimal
    membership_applied: bool
    voucher_applied: bool
    voucher_blocked: bool = False
    membership_dropped: bool = False

    @property
    def total_discount(self) -> Decimal:
        return self.membership_discount + self.promotion_discount


def calculate_discount(discount: Discount, base) -> Decimal:
    """Monetary discount of a single voucher discount against `base`."""
    return discount.amount_for(base)


def resolve_discounts(
    room_subtotal,
    membership: Optional[MembershipDiscountEntry] = None,
    voucher: Optional[VoucherTerms] = None,
    addons_total=ZERO,
) -> DiscountResolution:
    """
    Resolve the membership and voucher discounts for one booking

    Membership is computed against the room subtotal, plus the add-ons total
    when the plan covers services. The voucher is computed against the room
    subtotal, not against the membership-discounted amount.

    When the voucher does not stack with membership the larger discount wins;
    on a tie membership is kept. When both apply, the combined discount is
    clamped to the discountable base by shrinking the voucher share.

    Args:
        room_subtotal: nightly price x nights
        membership: membership entry, if the guest has an active plan
        voucher: validated voucher terms, if a code is attached
        addons_total: ancillary services total

    Returns:
        DiscountResolution
    """
    room_subtotal = round_currency(room_subtotal)
    addons_total = round_currency(addons_total)

    membership_base = room_subtotal
    if membership is not None and membership.applies_to_services:
        membership_base += addons_total

    membership_amount = (
        membership.amount_for(membership_base) if membership is not None else ZERO
    )
    voucher_amount = (
        voucher.discount.amount_for(room_subtotal) if voucher is not None else ZERO
    )

    if membership is None or voucher is None:
        return DiscountResolution(
            membership_discount=membership_amount,
            promotion_discount=voucher_amount,
            membership_applied=membership_amount > ZERO,
            voucher_applied=voucher is not None and voucher_amount > ZERO,
        )

    if not voucher.stack_with_membership:
        if voucher_amount > membership_amount:
            return DiscountResolution(
                membership_discount=ZERO,
                promotion_discount=voucher_amount,
                membership_applied=False,
                voucher_applied=True,
                membership_dropped=True,
            )
        return DiscountResolution(
            membership_discount=membership_amount,
            promotion_discount=ZERO,
            membership_applied=membership_amount > ZERO,
            voucher_applied=False,
            voucher_blocked=True,
        )

    # Both stack
    remaining = max(membership_base - membership_amount, ZERO)
    voucher_amount = min(voucher_amount, remaining)

    return DiscountResolution(
        membership_discount=membership_amount,
        promotion_discount=voucher_amount,
        membership_applied=membership_amount > ZERO,
        voucher_applied=voucher_amount > ZERO,
    )
