"""
Booking price composer unit tests
"""

from decimal import Decimal

import pytest

from luxestay.services.discount_calculator import (
    FixedAmountDiscount,
    MembershipDiscountEntry,
    PercentageDiscount,
    VoucherTerms,
)
from luxestay.services.price_composer import (
    compose_booking_price,
    default_service_fee,
)


GOLD = MembershipDiscountEntry(tier_name="Luxe Gold", rate=Decimal("10"), plan_slug="luxe-gold")


class TestComposeBookingPrice:
    """compose_booking_price"""

    def test_membership_plus_stackable_voucher(self):
        """3 nights x 1,000,000 with membership 10% and a 200,000 voucher"""
        voucher = VoucherTerms(
            code="STAY200K",
            name="200K off",
            discount=FixedAmountDiscount(amount=Decimal("200000")),
        )

        breakdown = compose_booking_price(
            base_price=Decimal("1000000"),
            nights=3,
            cleaning_fee=Decimal("150000"),
            service_fee=Decimal("300000"),
            membership=GOLD,
            voucher=voucher,
        )

        assert breakdown.room_subtotal == Decimal("3000000")
        assert breakdown.membership_discount == Decimal("300000")
        assert breakdown.promotion_discount == Decimal("200000")
        assert breakdown.total_price == Decimal("2950000")

    def test_snapshot_lists_membership_before_promotion(self):
        voucher = VoucherTerms(
            code="LUXE10",
            name="Luxe 10%",
            discount=PercentageDiscount(rate=Decimal("10"), max_discount=Decimal("500000")),
        )

        breakdown = compose_booking_price(
            base_price=Decimal("2000000"),
            nights=3,
            membership=GOLD,
            voucher=voucher,
        )

        entries = breakdown.applied_promotions
        assert [e["type"] for e in entries] == ["MEMBERSHIP", "PROMOTION"]
        assert entries[0]["name"] == "Luxe Gold"
        assert entries[0]["amount"] == 600000
        assert entries[1]["code"] == "LUXE10"
        assert entries[1]["discount_type"] == "PERCENTAGE"
        assert entries[1]["rate"] == 10
        assert entries[1]["amount"] == 500000

    def test_total_never_below_fees(self):
        """Discounts never eat into cleaning and service fees"""
        voucher = VoucherTerms(
            code="BIG",
            name="Big discount",
            discount=FixedAmountDiscount(amount=Decimal("5000000")),
        )

        breakdown = compose_booking_price(
            base_price=Decimal("500000"),
            nights=2,
            cleaning_fee=Decimal("100000"),
            service_fee=Decimal("50000"),
            membership=GOLD,
            voucher=voucher,
        )

        assert breakdown.total_price == breakdown.fee_floor == Decimal("150000")
        assert breakdown.total_discount == Decimal("1000000")

    def test_no_discounts_empty_snapshot(self):
        breakdown = compose_booking_price(
            base_price=Decimal("800000"),
            nights=2,
            cleaning_fee=Decimal("100000"),
            service_fee=Decimal("160000"),
        )

        assert breakdown.applied_promotions == []
        assert breakdown.total_price == Decimal("1860000")

    def test_blocked_voucher_not_in_snapshot(self):
        voucher = VoucherTerms(
            code="SOLO5",
            name="Solo 5%",
            discount=PercentageDiscount(rate=Decimal("5")),
            stack_with_membership=False,
        )

        breakdown = compose_booking_price(
            base_price=Decimal("1000000"),
            nights=1,
            membership=GOLD,
            voucher=voucher,
        )

        assert breakdown.resolution.voucher_blocked is True
        assert [e["type"] for e in breakdown.applied_promotions] == ["MEMBERSHIP"]

    def test_addons_added_to_total(self):
        breakdown = compose_booking_price(
            base_price=Decimal("1000000"),
            nights=1,
            addons_total=Decimal("250000"),
            membership=GOLD,
        )

        assert breakdown.membership_discount == Decimal("100000")
        assert breakdown.total_price == Decimal("1150000")

    @pytest.mark.parametrize("nights", [0, -1])
    def test_rejects_non_positive_nights(self, nights):
        with pytest.raises(ValueError):
            compose_booking_price(base_price=Decimal("1000000"), nights=nights)


def test_default_service_fee():
    """10% of room subtotal plus add-ons"""
    assert default_service_fee(Decimal("3000000"), Decimal("500000")) == Decimal("350000")
    assert default_service_fee(Decimal("1234567"), rate=10) == Decimal("123457")
