"""
Voucher API request/response schemas
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from luxestay.models.guest import LoyaltyTier
from luxestay.models.voucher import DiscountType


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class VoucherCreateRequest(BaseModel):
    """Voucher creation request"""

    code: str = Field(..., description="Voucher code (stored upper case)", min_length=3, max_length=32)
    name: str = Field(..., description="Display name", min_length=1, max_length=120)
    description: Optional[str] = Field(None, description="Description")
    discount_type: DiscountType = Field(..., description="PERCENTAGE or FIXED_AMOUNT")
    discount_value: Decimal = Field(..., description="Percent (5/10/15/20) or VND amount", gt=0)
    max_discount: Optional[Decimal] = Field(None, description="Cap for percentage vouchers (VND)", gt=0)
    min_booking_value: Decimal = Field(default=Decimal("0"), description="Minimum room subtotal (VND)", ge=0)
    max_uses: Optional[int] = Field(None, description="Global use cap (unlimited when empty)", ge=1)
    max_uses_per_user: Optional[int] = Field(None, description="Per-guest use cap", ge=1)
    valid_from: Optional[datetime] = Field(None, description="Start of validity (defaults to now)")
    valid_until: datetime = Field(..., description="End of validity")
    allowed_membership_tiers: List[LoyaltyTier] = Field(default_factory=list, description="Eligible loyalty tiers (all when empty)")
    listing_ids: List[str] = Field(default_factory=list, description="Eligible listings (all when empty)")
    property_types: List[str] = Field(default_factory=list, description="Eligible property types (all when empty)")
    guest_ids: List[UUID] = Field(default_factory=list, description="Guests allowed to use the code (everyone when empty)")
    stack_with_membership: bool = Field(default=True, description="Combinable with the membership discount")
    stack_with_promotions: bool = Field(default=False, description="Combinable with other promotions")
    point_cost: int = Field(default=0, description="Loyalty points needed to exchange for this voucher", ge=0)
    is_active: bool = Field(default=True, description="Active flag")

    @field_validator("valid_from", "valid_until")
    @classmethod
    def strip_timezone(cls, value):
        return _naive_utc(value)


class VoucherUpdateRequest(BaseModel):
    """Voucher update request (only given fields change)"""

    code: Optional[str] = Field(None, description="Voucher code", min_length=3, max_length=32)
    name: Optional[str] = Field(None, description="Display name", min_length=1, max_length=120)
    description: Optional[str] = Field(None, description="Description")
    discount_type: Optional[DiscountType] = Field(None, description="PERCENTAGE or FIXED_AMOUNT")
    discount_value: Optional[Decimal] = Field(None, description="Discount value", gt=0)
    max_discount: Optional[Decimal] = Field(None, description="Cap for percentage vouchers (VND)", gt=0)
    min_booking_value: Optional[Decimal] = Field(None, description="Minimum room subtotal (VND)", ge=0)
    max_uses: Optional[int] = Field(None, description="Global use cap", ge=1)
    max_uses_per_user: Optional[int] = Field(None, description="Per-guest use cap", ge=1)
    valid_from: Optional[datetime] = Field(None, description="Start of validity")
    valid_until: Optional[datetime] = Field(None, description="End of validity")
    allowed_membership_tiers: Optional[List[LoyaltyTier]] = Field(None, description="Eligible loyalty tiers")
    listing_ids: Optional[List[str]] = Field(None, description="Eligible listings")
    property_types: Optional[List[str]] = Field(None, description="Eligible property types")
    guest_ids: Optional[List[UUID]] = Field(None, description="Guests allowed to use the code")
    stack_with_membership: Optional[bool] = Field(None, description="Combinable with the membership discount")
    stack_with_promotions: Optional[bool] = Field(None, description="Combinable with other promotions")
    is_active: Optional[bool] = Field(None, description="Active flag")

    @field_validator("valid_from", "valid_until")
    @classmethod
    def strip_timezone(cls, value):
        return _naive_utc(value)


class RedemptionStats(BaseModel):
    """Redemption counts"""

    total: int = Field(default=0, description="All redemptions")
    by_status: dict = Field(default_factory=dict, description="Counts per status (USED, RELEASED)")


class VoucherResponse(BaseModel):
    """Voucher"""

    id: str = Field(..., description="Voucher ID")
    code: str = Field(..., description="Voucher code")
    name: str = Field(..., description="Display name")
    description: Optional[str] = Field(None, description="Description")
    discount_type: str = Field(..., description="PERCENTAGE or FIXED_AMOUNT")
    discount_value: float = Field(..., description="Discount value")
    max_discount: Optional[float] = Field(None, description="Cap for percentage vouchers")
    min_booking_value: float = Field(..., description="Minimum room subtotal")
    max_uses: Optional[int] = Field(None, description="Global use cap")
    max_uses_per_user: Optional[int] = Field(None, description="Per-guest use cap")
    used_count: int = Field(..., description="Uses counted so far")
    is_exhausted: bool = Field(default=False, description="Global use cap reached")
    valid_from: str = Field(..., description="Start of validity")
    valid_until: str = Field(..., description="End of validity")
    allowed_membership_tiers: List[str] = Field(default_factory=list, description="Eligible loyalty tiers")
    listing_ids: List[str] = Field(default_factory=list, description="Eligible listings")
    property_types: List[str] = Field(default_factory=list, description="Eligible property types")
    guest_ids: List[str] = Field(default_factory=list, description="Guests allowed to use the code")
    stack_with_membership: bool = Field(..., description="Combinable with the membership discount")
    stack_with_promotions: bool = Field(..., description="Combinable with other promotions")
    is_active: bool = Field(..., description="Active flag")
    source: str = Field(..., description="ADMIN, HOST or LOYALTY_EXCHANGE")
    host_id: Optional[str] = Field(None, description="Issuing host")
    point_cost: int = Field(default=0, description="Loyalty point cost")
    redemptions: Optional[RedemptionStats] = Field(None, description="Redemption counts")


class VoucherListResponse(BaseModel):
    """Voucher list"""

    vouchers: List[VoucherResponse] = Field(..., description="Vouchers, newest first")


class VoucherValidateRequest(BaseModel):
    """Voucher preview for a booking context"""

    code: str = Field(..., description="Voucher code", min_length=1, max_length=32)
    guest_id: UUID = Field(..., description="Guest ID")
    listing_id: str = Field(..., description="Listing ID")
    property_type: str = Field(..., description="Listing property type")
    base_price: Decimal = Field(..., description="Nightly price (VND)", ge=0)
    nights: int = Field(..., description="Number of nights", ge=1)
    cleaning_fee: Decimal = Field(default=Decimal("0"), description="Cleaning fee (VND)", ge=0)
    service_fee: Optional[Decimal] = Field(None, description="Service fee (VND, platform rate when empty)", ge=0)
    addons_total: Decimal = Field(default=Decimal("0"), description="Ancillary services total (VND)", ge=0)


class VoucherValidateResponse(BaseModel):
    """Voucher preview result"""

    is_valid: bool = Field(..., description="Whether the code can be applied")
    reason: Optional[str] = Field(None, description="Rejection reason code")
    message: str = Field(default="", description="Rejection message")
    discount_amount: float = Field(..., description="Voucher discount")
    membership_discount: float = Field(..., description="Membership discount")
    total_price: float = Field(..., description="Total after discounts")
