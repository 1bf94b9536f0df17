"""
Voucher eligibility rule unit tests
"""

from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from luxestay.services.voucher_rules import (
    ACCEPTED,
    BookingContext,
    VoucherRejection,
    check_voucher,
    is_allowed_percentage,
)


NOW = datetime(2026, 6, 1, 12, 0, 0)


def make_voucher(**overrides):
    fields = dict(
        code="LUXE10",
        is_active=True,
        valid_from=NOW - timedelta(days=7),
        valid_until=NOW + timedelta(days=7),
        min_booking_value=None,
        max_uses=None,
        used_count=0,
        max_uses_per_user=None,
        allowed_membership_tiers=[],
        listing_ids=[],
        property_types=[],
        guest_ids=[],
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def make_context(**overrides):
    fields = dict(
        subtotal=Decimal("3000000"),
        listing_id="listing-1",
        property_type="VILLA",
        membership_tier="GOLD",
        prior_redemptions=0,
        now=NOW,
    )
    fields.update(overrides)
    return BookingContext(**fields)


class TestCheckVoucher:
    """check_voucher"""

    def test_eligible_voucher_is_accepted(self):
        result = check_voucher(make_voucher(), make_context())

        assert result == ACCEPTED
        assert result.accepted is True
        assert result.message == ""

    def test_inactive(self):
        result = check_voucher(make_voucher(is_active=False), make_context())

        assert result.reason == VoucherRejection.VOUCHER_INACTIVE

    def test_not_yet_valid(self):
        voucher = make_voucher(valid_from=NOW + timedelta(hours=1))

        assert check_voucher(voucher, make_context()).reason == VoucherRejection.VOUCHER_NOT_YET_VALID

    def test_expired(self):
        voucher = make_voucher(valid_until=NOW - timedelta(seconds=1))

        assert check_voucher(voucher, make_context()).reason == VoucherRejection.VOUCHER_EXPIRED

    def test_window_bounds_are_inclusive(self):
        voucher = make_voucher(valid_from=NOW, valid_until=NOW)

        assert check_voucher(voucher, make_context()).accepted is True

    def test_below_minimum_spend(self):
        """min 2,000,000 against a 1,500,000 subtotal"""
        voucher = make_voucher(min_booking_value=Decimal("2000000"))
        context = make_context(subtotal=Decimal("1500000"))

        result = check_voucher(voucher, context)

        assert result.reason == VoucherRejection.BELOW_MINIMUM_SPEND
        assert result.accepted is False
        assert "minimum" in result.message

    def test_minimum_spend_met_exactly(self):
        voucher = make_voucher(min_booking_value=Decimal("2000000"))

        assert check_voucher(voucher, make_context(subtotal=Decimal("2000000"))).accepted

    def test_exhausted(self):
        """max_uses=1 with used_count=1 is exhausted"""
        voucher = make_voucher(max_uses=1, used_count=1)

        assert check_voucher(voucher, make_context()).reason == VoucherRejection.VOUCHER_EXHAUSTED

    def test_per_user_limit(self):
        voucher = make_voucher(max_uses_per_user=1)
        context = make_context(prior_redemptions=1)

        assert check_voucher(voucher, context).reason == VoucherRejection.PER_USER_LIMIT_REACHED

    def test_guest_restriction(self):
        voucher = make_voucher(guest_ids=["guest-2"])

        result = check_voucher(voucher, make_context(guest_id="guest-1"))

        assert result.reason == VoucherRejection.GUEST_NOT_ELIGIBLE

    def test_listed_guest_accepted(self):
        guest_id = uuid4()
        voucher = make_voucher(guest_ids=[str(guest_id)])

        assert check_voucher(voucher, make_context(guest_id=guest_id)).accepted

    def test_guest_restriction_checked_before_tier(self):
        voucher = make_voucher(guest_ids=["guest-2"], allowed_membership_tiers=["DIAMOND"])

        result = check_voucher(voucher, make_context(guest_id="guest-1"))

        assert result.reason == VoucherRejection.GUEST_NOT_ELIGIBLE

    def test_tier_not_eligible(self):
        voucher = make_voucher(allowed_membership_tiers=["PLATINUM", "DIAMOND"])

        assert check_voucher(voucher, make_context()).reason == VoucherRejection.TIER_NOT_ELIGIBLE

    def test_guest_without_tier_not_eligible_for_tier_voucher(self):
        voucher = make_voucher(allowed_membership_tiers=["GOLD"])

        result = check_voucher(voucher, make_context(membership_tier=None))

        assert result.reason == VoucherRejection.TIER_NOT_ELIGIBLE

    def test_listing_restriction(self):
        voucher = make_voucher(listing_ids=["listing-2"])

        assert (
            check_voucher(voucher, make_context()).reason
            == VoucherRejection.NOT_APPLICABLE_TO_LISTING
        )

    def test_property_type_restriction(self):
        voucher = make_voucher(property_types=["APARTMENT"])

        assert (
            check_voucher(voucher, make_context()).reason
            == VoucherRejection.NOT_APPLICABLE_TO_LISTING
        )

    def test_matching_restrictions_accepted(self):
        voucher = make_voucher(
            allowed_membership_tiers=["GOLD"],
            listing_ids=["listing-1"],
            property_types=["VILLA"],
        )

        assert check_voucher(voucher, make_context()).accepted is True

    def test_first_failing_rule_wins(self):
        """Inactive is reported before expiry, minimum spend and exhaustion"""
        voucher = make_voucher(
            is_active=False,
            valid_until=NOW - timedelta(days=1),
            min_booking_value=Decimal("9000000"),
            max_uses=1,
            used_count=1,
        )

        assert check_voucher(voucher, make_context()).reason == VoucherRejection.VOUCHER_INACTIVE

    def test_exhausted_regardless_of_other_eligibility(self):
        """Exhaustion is reported before per-user and tier checks"""
        voucher = make_voucher(
            max_uses=1,
            used_count=1,
            max_uses_per_user=1,
            allowed_membership_tiers=["DIAMOND"],
        )

        result = check_voucher(voucher, make_context(prior_redemptions=1))

        assert result.reason == VoucherRejection.VOUCHER_EXHAUSTED

    def test_check_is_idempotent(self):
        """Same inputs, same result; nothing is mutated"""
        voucher = make_voucher(max_uses=5, used_count=2)
        context = make_context()

        first = check_voucher(voucher, context)
        second = check_voucher(voucher, context)

        assert first == second
        assert voucher.used_count == 2


class TestAllowedPercentage:
    """Percentage whitelist"""

    @pytest.mark.parametrize("value", [5, 10, 15, 20, Decimal("10.00"), "15"])
    def test_allowed(self, value):
        assert is_allowed_percentage(value, [5, 10, 15, 20]) is True

    @pytest.mark.parametrize("value", [1, 12, 25, Decimal("10.5")])
    def test_not_allowed(self, value):
        assert is_allowed_percentage(value, [5, 10, 15, 20]) is False


def test_every_rejection_has_a_message():
    for reason in VoucherRejection:
        assert reason.message
