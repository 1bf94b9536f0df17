"""
Booking API request/response schemas
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class BookingCreateRequest(BaseModel):
    """Booking quote request"""

    guest_id: UUID = Field(..., description="Guest ID")
    listing_id: str = Field(..., description="Listing ID", min_length=1)
    property_type: str = Field(..., description="Listing property type", min_length=1)
    base_price: Decimal = Field(..., description="Nightly price (VND)", ge=0)
    nights: int = Field(..., description="Number of nights", ge=1)
    cleaning_fee: Decimal = Field(default=Decimal("0"), description="Cleaning fee (VND)", ge=0)
    service_fee: Optional[Decimal] = Field(None, description="Service fee (VND, platform rate when empty)", ge=0)
    addons_total: Decimal = Field(default=Decimal("0"), description="Ancillary services total (VND)", ge=0)


class ApplyPromotionRequest(BaseModel):
    """Apply a voucher code to a booking"""

    code: str = Field(..., description="Voucher code", min_length=1, max_length=32)


class BookingResponse(BaseModel):
    """Booking with its price breakdown"""

    id: str = Field(..., description="Booking ID")
    guest_id: str = Field(..., description="Guest ID")
    listing_id: str = Field(..., description="Listing ID")
    property_type: str = Field(..., description="Property type")
    status: str = Field(..., description="PENDING, CONFIRMED or CANCELLED")
    base_price: float = Field(..., description="Nightly price")
    nights: int = Field(..., description="Number of nights")
    room_subtotal: float = Field(..., description="base_price x nights")
    addons_total: float = Field(..., description="Ancillary services total")
    cleaning_fee: float = Field(..., description="Cleaning fee")
    service_fee: float = Field(..., description="Service fee")
    membership_discount: float = Field(..., description="Membership discount")
    promotion_discount: float = Field(..., description="Voucher discount")
    total_price: float = Field(..., description="Final total")
    currency: str = Field(..., description="Currency of all amounts")
    applied_promotions: List[dict] = Field(default_factory=list, description="Applied discounts, membership first")
    voucher_id: Optional[str] = Field(None, description="Applied voucher")
    confirmed_at: Optional[str] = Field(None, description="Confirmation time")
    cancelled_at: Optional[str] = Field(None, description="Cancellation time")
