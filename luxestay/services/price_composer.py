"""
Booking price composer

Assembles the final booking total from the room price, fees and the resolved
discounts, and builds the applied-promotion snapshot stored on the booking.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from luxestay.services.discount_calculator import (
    ZERO,
    HUNDRED,
    DiscountResolution,
    MembershipDiscountEntry,
    VoucherTerms,
    resolve_discounts,
    round_currency,
    to_decimal,
)


@dataclass(frozen=True)
class PriceBreakdown:
    """Composed booking price"""

    room_subtotal: Decimal
    addons_total: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    membership_discount: Decimal
    promotion_discount: Decimal
    total_price: Decimal
    resolution: DiscountResolution
    applied_promotions: list = field(default_factory=list)

    @property
    def total_discount(self) -> Decimal:
        return self.membership_discount + self.promotion_discount

    @property
    def fee_floor(self) -> Decimal:
        return self.cleaning_fee + self.service_fee


def default_service_fee(room_subtotal, addons_total=ZERO, rate=10) -> Decimal:
    """Platform fee: `rate` percent of the room subtotal and of the add-ons."""
    base = to_decimal(room_subtotal) + to_decimal(addons_total)
    return round_currency(base * to_decimal(rate) / HUNDRED)


def _number(value: Decimal):
    """JSON-friendly number for the snapshot."""
    value = to_decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def build_membership_entry(
    membership: MembershipDiscountEntry, amount: Decimal
) -> dict:
    return {
        "type": "MEMBERSHIP",
        "name": membership.tier_name,
        "plan": membership.plan_slug,
        "rate": _number(membership.rate),
        "amount": _number(amount),
        "applies_to_services": membership.applies_to_services,
    }


def build_promotion_entry(voucher: VoucherTerms, amount: Decimal) -> dict:
    rate = voucher.rate
    return {
        "type": "PROMOTION",
        "code": voucher.code,
        "name": voucher.name,
        "discount_type": voucher.discount_type,
        "rate": _number(rate) if rate is not None else None,
        "amount": _number(amount),
        "stack_with_membership": voucher.stack_with_membership,
        "stack_with_promotions": voucher.stack_with_promotions,
    }


def compose_booking_price(
    base_price,
    nights: int,
    cleaning_fee=ZERO,
    service_fee=ZERO,
    membership: Optional[MembershipDiscountEntry] = None,
    voucher: Optional[VoucherTerms] = None,
    addons_total=ZERO,
) -> PriceBreakdown:
    """
    Compose the booking price

    Args:
        base_price: nightly price
        nights: number of nights
        cleaning_fee: cleaning fee (never discounted)
        service_fee: service fee (never discounted)
        membership: membership entry for the guest, if any
        voucher: validated voucher terms, if any
        addons_total: ancillary services total

    Returns:
        PriceBreakdown: totals and the ordered snapshot
        (MEMBERSHIP entry first, then PROMOTION)
    """
    if nights <= 0:
        raise ValueError("nights must be positive")

    room_subtotal = round_currency(to_decimal(base_price) * nights)
    addons_total = round_currency(addons_total)
    cleaning_fee = round_currency(cleaning_fee)
    service_fee = round_currency(service_fee)

    resolution = resolve_discounts(
        room_subtotal,
        membership=membership,
        voucher=voucher,
        addons_total=addons_total,
    )

    applied_promotions = []
    if membership is not None and resolution.membership_applied:
        applied_promotions.append(
            build_membership_entry(membership, resolution.membership_discount)
        )
    if voucher is not None and resolution.voucher_applied:
        applied_promotions.append(
            build_promotion_entry(voucher, resolution.promotion_discount)
        )

    fee_floor = cleaning_fee + service_fee
    total_price = max(
        room_subtotal + addons_total - resolution.total_discount + fee_floor,
        fee_floor,
    )

    return PriceBreakdown(
        room_subtotal=room_subtotal,
        addons_total=addons_total,
        cleaning_fee=cleaning_fee,
        service_fee=service_fee,
        membership_discount=resolution.membership_discount,
        promotion_discount=resolution.promotion_discount,
        total_price=total_price,
        resolution=resolution,
        applied_promotions=applied_promotions,
    )
