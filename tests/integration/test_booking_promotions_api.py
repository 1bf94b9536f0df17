"""
[OK] Integration Tests: Booking promotion API

Booking quote, code apply/remove, voucher preview, confirm and cancel endpoints.
"""

import pytest
from decimal import Decimal
from httpx import AsyncClient

from luxestay.models import DiscountType, Guest


async def _create_booking(client: AsyncClient, guest: Guest, **overrides) -> dict:
    payload = {
        "guest_id": str(guest.id),
        "listing_id": "listing-1",
        "property_type": "VILLA",
        "base_price": 1000000,
        "nights": 3,
        "cleaning_fee": 150000,
        "service_fee": 300000,
    }
    payload.update(overrides)
    response = await client.post("/v1/bookings", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
class TestBookingQuote:
    """Booking quote API"""

    async def test_create_booking_applies_membership(
        self, async_client: AsyncClient, member_guest: Guest
    ):
        """Test: Quote carries the membership discount"""
        # When: Quote a booking for a member
        data = await _create_booking(async_client, member_guest)

        # Then: 10% off the room subtotal
        assert data["status"] == "PENDING"
        assert data["room_subtotal"] == 3000000
        assert data["membership_discount"] == 300000
        assert data["total_price"] == 3150000
        assert data["currency"] == "VND"
        assert data["applied_promotions"][0]["type"] == "MEMBERSHIP"

    async def test_get_booking(self, async_client: AsyncClient, guest: Guest):
        created = await _create_booking(async_client, guest)

        response = await async_client.get(f"/v1/bookings/{created['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    async def test_get_unknown_booking(self, async_client: AsyncClient):
        response = await async_client.get("/v1/bookings/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    async def test_unknown_guest(self, async_client: AsyncClient):
        response = await async_client.post(
            "/v1/bookings",
            json={
                "guest_id": "00000000-0000-0000-0000-000000000000",
                "listing_id": "listing-1",
                "property_type": "VILLA",
                "base_price": 1000000,
                "nights": 1,
            },
        )

        assert response.status_code == 404

    async def test_fractional_base_price(self, async_client: AsyncClient, guest: Guest):
        """Test: Nightly price is rounded before the subtotal is computed"""
        data = await _create_booking(
            async_client, guest, base_price="100.5", nights=2, cleaning_fee=0, service_fee=0
        )

        assert data["base_price"] == 101
        assert data["room_subtotal"] == 202
        assert data["total_price"] == 202

    async def test_zero_nights_rejected_by_schema(self, async_client: AsyncClient, guest: Guest):
        response = await async_client.post(
            "/v1/bookings",
            json={
                "guest_id": str(guest.id),
                "listing_id": "listing-1",
                "property_type": "VILLA",
                "base_price": 1000000,
                "nights": 0,
            },
        )

        assert response.status_code == 422


@pytest.mark.asyncio
class TestBookingPromotions:
    """Apply / remove code API"""

    async def test_apply_code(
        self, async_client: AsyncClient, member_guest: Guest, make_voucher
    ):
        """Test: Membership 10% + stackable 200,000 voucher"""
        # Given: Stackable fixed voucher and a member booking
        await make_voucher(
            code="STAY200K",
            discount_type=DiscountType.FIXED_AMOUNT.value,
            discount_value=Decimal("200000"),
        )
        booking = await _create_booking(async_client, member_guest)

        # When: Apply the code
        response = await async_client.post(
            f"/v1/bookings/{booking['id']}/promotions",
            json={"code": "stay200k"},
        )

        # Then: Both discounts in the snapshot
        assert response.status_code == 200
        data = response.json()
        assert data["membership_discount"] == 300000
        assert data["promotion_discount"] == 200000
        assert data["total_price"] == 2950000
        assert [e["type"] for e in data["applied_promotions"]] == ["MEMBERSHIP", "PROMOTION"]

    async def test_apply_rejected_code_returns_reason(
        self, async_client: AsyncClient, guest: Guest, make_voucher
    ):
        """Test: Rejection reason is exposed in the error body"""
        await make_voucher(min_booking_value=Decimal("2000000"))
        booking = await _create_booking(async_client, guest, base_price=500000)

        response = await async_client.post(
            f"/v1/bookings/{booking['id']}/promotions",
            json={"code": "LUXE10"},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "voucher_rejected"
        assert error["details"]["reason"] == "BELOW_MINIMUM_SPEND"

        unchanged = (await async_client.get(f"/v1/bookings/{booking['id']}")).json()
        assert unchanged["total_price"] == booking["total_price"]
        assert unchanged["voucher_id"] is None

    async def test_apply_unknown_code(self, async_client: AsyncClient, guest: Guest):
        booking = await _create_booking(async_client, guest)

        response = await async_client.post(
            f"/v1/bookings/{booking['id']}/promotions",
            json={"code": "DOESNOTEXIST"},
        )

        assert response.status_code == 404
        assert response.json()["error"]["details"]["reason"] == "VOUCHER_NOT_FOUND"

    async def test_remove_code(self, async_client: AsyncClient, guest: Guest, make_voucher):
        await make_voucher()
        booking = await _create_booking(async_client, guest)
        await async_client.post(
            f"/v1/bookings/{booking['id']}/promotions", json={"code": "LUXE10"}
        )

        response = await async_client.delete(f"/v1/bookings/{booking['id']}/promotions")

        assert response.status_code == 200
        data = response.json()
        assert data["promotion_discount"] == 0
        assert data["voucher_id"] is None
        assert data["total_price"] == 3450000


@pytest.mark.asyncio
class TestVoucherPreview:
    """Voucher preview API"""

    async def test_preview_valid_code(
        self, async_client: AsyncClient, guest: Guest, make_voucher
    ):
        """Test: LUXE10 capped at 500,000 on a 6,000,000 stay"""
        await make_voucher(max_discount=Decimal("500000"))

        response = await async_client.post(
            "/v1/vouchers/validate",
            json={
                "code": "LUXE10",
                "guest_id": str(guest.id),
                "listing_id": "listing-1",
                "property_type": "VILLA",
                "base_price": 2000000,
                "nights": 3,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["discount_amount"] == 500000
        assert data["total_price"] == 6100000

    async def test_preview_total_is_the_charged_total(
        self, async_client: AsyncClient, guest: Guest, make_voucher
    ):
        """Test: Same inputs, same total in the preview and on the booking"""
        await make_voucher(
            code="STAY100K",
            discount_type=DiscountType.FIXED_AMOUNT.value,
            discount_value=Decimal("100000"),
        )
        stay = {
            "guest_id": str(guest.id),
            "listing_id": "listing-1",
            "property_type": "VILLA",
            "base_price": 1000000,
            "nights": 2,
        }

        preview = await async_client.post(
            "/v1/vouchers/validate", json={"code": "STAY100K", **stay}
        )
        created = await async_client.post("/v1/bookings", json=stay)
        applied = await async_client.post(
            f"/v1/bookings/{created.json()['id']}/promotions", json={"code": "STAY100K"}
        )

        assert preview.json()["total_price"] == 2100000
        assert applied.json()["total_price"] == preview.json()["total_price"]

    async def test_preview_exhausted_code(
        self, async_client: AsyncClient, guest: Guest, make_voucher
    ):
        """Test: max_uses=1 with used_count=1 is reported as exhausted"""
        await make_voucher(max_uses=1, used_count=1)

        response = await async_client.post(
            "/v1/vouchers/validate",
            json={
                "code": "LUXE10",
                "guest_id": str(guest.id),
                "listing_id": "listing-1",
                "property_type": "VILLA",
                "base_price": 2000000,
                "nights": 3,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert data["reason"] == "VOUCHER_EXHAUSTED"
        assert data["discount_amount"] == 0
        assert data["total_price"] == 6600000


@pytest.mark.asyncio
class TestConfirmAndCancel:
    """Confirmation and cancellation API"""

    async def test_confirm_then_cancel(
        self, async_client: AsyncClient, guest: Guest, make_voucher
    ):
        """Test: Confirm counts the use; cancel gives it back"""
        # Given: Booking with a code from a single-use voucher
        voucher = await make_voucher(max_uses=1)
        booking = await _create_booking(async_client, guest)
        await async_client.post(
            f"/v1/bookings/{booking['id']}/promotions", json={"code": "LUXE10"}
        )

        # When: Confirm
        response = await async_client.post(f"/v1/bookings/{booking['id']}/confirm")

        # Then: Confirmed and counted
        assert response.status_code == 200
        assert response.json()["status"] == "CONFIRMED"
        admin_view = await async_client.get(f"/v1/admin/vouchers/{voucher.id}")
        assert admin_view.json()["used_count"] == 1
        assert admin_view.json()["is_exhausted"] is True
        assert admin_view.json()["redemptions"]["by_status"] == {"USED": 1}

        # When: Cancel
        response = await async_client.post(f"/v1/bookings/{booking['id']}/cancel")

        # Then: Use released, snapshot kept
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CANCELLED"
        assert data["applied_promotions"][0]["code"] == "LUXE10"
        admin_view = await async_client.get(f"/v1/admin/vouchers/{voucher.id}")
        assert admin_view.json()["used_count"] == 0
        assert admin_view.json()["is_exhausted"] is False

    async def test_confirm_twice_conflicts(self, async_client: AsyncClient, guest: Guest):
        booking = await _create_booking(async_client, guest)
        await async_client.post(f"/v1/bookings/{booking['id']}/confirm")

        response = await async_client.post(f"/v1/bookings/{booking['id']}/confirm")

        assert response.status_code == 409

    async def test_cancel_twice_conflicts(self, async_client: AsyncClient, guest: Guest):
        booking = await _create_booking(async_client, guest)
        await async_client.post(f"/v1/bookings/{booking['id']}/cancel")

        response = await async_client.post(f"/v1/bookings/{booking['id']}/cancel")

        assert response.status_code == 409
