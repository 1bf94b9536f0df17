"""
Booking API endpoints

Booking quote, voucher apply/remove, confirmation and cancellation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from luxestay.config import settings
from luxestay.models.base import get_db
from luxestay.models.booking import Booking
from luxestay.services.booking_pricing_service import BookingPricingService
from luxestay.api.schemas.booking_schemas import (
    BookingCreateRequest,
    ApplyPromotionRequest,
    BookingResponse,
)

router = APIRouter(prefix="/v1/bookings", tags=["bookings"])


def _booking_to_dict(booking: Booking) -> dict:
    return {
        "id": str(booking.id),
        "guest_id": str(booking.guest_id),
        "listing_id": booking.listing_id,
        "property_type": booking.property_type,
        "status": booking.status,
        "base_price": float(booking.base_price),
        "nights": booking.nights,
        "room_subtotal": float(booking.room_subtotal),
        "addons_total": float(booking.addons_total or 0),
        "cleaning_fee": float(booking.cleaning_fee or 0),
        "service_fee": float(booking.service_fee or 0),
        "membership_discount": float(booking.membership_discount or 0),
        "promotion_discount": float(booking.promotion_discount or 0),
        "total_price": float(booking.total_price),
        "currency": settings.CURRENCY,
        "applied_promotions": list(booking.applied_promotions or []),
        "voucher_id": str(booking.voucher_id) if booking.voucher_id else None,
        "confirmed_at": booking.confirmed_at.isoformat() if booking.confirmed_at else None,
        "cancelled_at": booking.cancelled_at.isoformat() if booking.cancelled_at else None,
    }


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Quote a booking

    The guest's active membership discount is applied immediately.
    """
    service = BookingPricingService(db)

    booking = await service.create_booking(
        guest_id=request.guest_id,
        listing_id=request.listing_id,
        property_type=request.property_type,
        base_price=request.base_price,
        nights=request.nights,
        cleaning_fee=request.cleaning_fee,
        service_fee=request.service_fee,
        addons_total=request.addons_total,
    )
    return _booking_to_dict(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Booking with its price breakdown"""
    service = BookingPricingService(db)
    booking = await service.get_booking(booking_id)
    return _booking_to_dict(booking)


@router.post("/{booking_id}/promotions", response_model=BookingResponse)
async def apply_promotion(
    booking_id: UUID,
    request: ApplyPromotionRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Apply a voucher code

    Replaces any code already on the booking.

    **Error cases**:
    - `400`: code rejected (`details.reason` holds the rule that failed)
    - `404`: unknown booking or code
    - `409`: booking is no longer pending
    """
    service = BookingPricingService(db)
    booking = await service.apply_voucher(booking_id, request.code)
    return _booking_to_dict(booking)


@router.delete("/{booking_id}/promotions", response_model=BookingResponse)
async def remove_promotion(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Remove the voucher code from a pending booking"""
    service = BookingPricingService(db)
    booking = await service.remove_voucher(booking_id)
    return _booking_to_dict(booking)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Confirm a booking

    Counts the voucher use. Fails with `VOUCHER_EXHAUSTED` when the last use
    was taken by another booking first.
    """
    service = BookingPricingService(db)
    booking = await service.confirm_booking(booking_id)
    return _booking_to_dict(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; a confirmed booking gives its voucher use back"""
    service = BookingPricingService(db)
    booking = await service.cancel_booking(booking_id)
    return _booking_to_dict(booking)
