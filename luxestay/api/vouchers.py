"""
Voucher API endpoints

Admin voucher management, host-scoped coupons and the voucher preview used by
the checkout page.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from luxestay.models.base import get_db
from luxestay.models.voucher import Voucher, VoucherSource
from luxestay.services.voucher_service import VoucherService
from luxestay.services.booking_pricing_service import BookingPricingService
from luxestay.api.schemas.voucher_schemas import (
    VoucherCreateRequest,
    VoucherUpdateRequest,
    VoucherResponse,
    VoucherListResponse,
    VoucherValidateRequest,
    VoucherValidateResponse,
)
from luxestay.utils.exceptions import VoucherNotFoundException

admin_router = APIRouter(prefix="/v1/admin/vouchers", tags=["admin-vouchers"])
host_router = APIRouter(prefix="/v1/hosts/{host_id}/coupons", tags=["host-coupons"])
router = APIRouter(prefix="/v1/vouchers", tags=["vouchers"])

# Fields that may be cleared with an explicit null on PATCH
NULLABLE_FIELDS = {"description", "max_discount", "max_uses", "max_uses_per_user"}


def _voucher_to_dict(voucher: Voucher, redemptions: Optional[dict] = None) -> dict:
    return {
        "id": str(voucher.id),
        "code": voucher.code,
        "name": voucher.name,
        "description": voucher.description,
        "discount_type": voucher.discount_type,
        "discount_value": float(voucher.discount_value),
        "max_discount": float(voucher.max_discount) if voucher.max_discount is not None else None,
        "min_booking_value": float(voucher.min_booking_value or 0),
        "max_uses": voucher.max_uses,
        "max_uses_per_user": voucher.max_uses_per_user,
        "used_count": voucher.used_count or 0,
        "is_exhausted": voucher.is_usage_limit_reached(),
        "valid_from": voucher.valid_from.isoformat(),
        "valid_until": voucher.valid_until.isoformat(),
        "allowed_membership_tiers": list(voucher.allowed_membership_tiers or []),
        "listing_ids": list(voucher.listing_ids or []),
        "property_types": list(voucher.property_types or []),
        "guest_ids": list(voucher.guest_ids or []),
        "stack_with_membership": voucher.stack_with_membership,
        "stack_with_promotions": voucher.stack_with_promotions,
        "is_active": voucher.is_active,
        "source": voucher.source,
        "host_id": voucher.host_id,
        "point_cost": voucher.point_cost or 0,
        "redemptions": redemptions,
    }


def _changes(request: VoucherUpdateRequest) -> dict:
    return {
        field: value
        for field, value in request.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }


async def _get_host_voucher(service: VoucherService, host_id: str, voucher_id: UUID) -> Voucher:
    voucher = await service.get_voucher(voucher_id)
    if voucher.source != VoucherSource.HOST.value or voucher.host_id != host_id:
        raise VoucherNotFoundException(str(voucher_id))
    return voucher


# ----------------------------------------------------------------------
# Admin
# ----------------------------------------------------------------------


@admin_router.get("", response_model=VoucherListResponse)
async def list_vouchers(
    source: Optional[VoucherSource] = Query(None, description="ADMIN, HOST or LOYALTY_EXCHANGE"),
    active: Optional[bool] = Query(None, description="Active flag"),
    search: Optional[str] = Query(None, description="Matches code, name or description"),
    limit: Optional[int] = Query(None, ge=1, le=500, description="Max rows"),
    db: AsyncSession = Depends(get_db),
):
    """
    List vouchers with redemption counts

    Newest first.
    """
    service = VoucherService(db)

    vouchers = await service.list_vouchers(
        source=source.value if source else None,
        active=active,
        search=search,
        limit=limit,
    )
    counts = await service.redemption_counts([v.id for v in vouchers])

    return {"vouchers": [_voucher_to_dict(v, counts.get(v.id)) for v in vouchers]}


@admin_router.post("", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def create_voucher(
    request: VoucherCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a voucher

    **Error cases**:
    - `400`: percentage outside 5/10/15/20, end date not after start date
    - `409`: code already exists
    """
    service = VoucherService(db)
    voucher = await service.create_voucher(request.model_dump(), actor_id="admin")
    return _voucher_to_dict(voucher)


@admin_router.get("/{voucher_id}", response_model=VoucherResponse)
async def get_voucher(
    voucher_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Voucher detail with redemption counts"""
    service = VoucherService(db)
    voucher = await service.get_voucher(voucher_id)
    counts = await service.redemption_counts([voucher.id])
    return _voucher_to_dict(voucher, counts.get(voucher.id))


@admin_router.patch("/{voucher_id}", response_model=VoucherResponse)
async def update_voucher(
    voucher_id: UUID,
    request: VoucherUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Edit a voucher (partial update)"""
    service = VoucherService(db)
    voucher = await service.get_voucher(voucher_id)
    voucher = await service.update_voucher(voucher, _changes(request), actor_id="admin")
    return _voucher_to_dict(voucher)


@admin_router.delete("/{voucher_id}", response_model=VoucherResponse)
async def disable_voucher(
    voucher_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Disable a voucher

    Vouchers are never hard-deleted; the row stays for redemption history.
    """
    service = VoucherService(db)
    voucher = await service.get_voucher(voucher_id)
    voucher = await service.disable_voucher(voucher, actor_id="admin")
    return _voucher_to_dict(voucher)


# ----------------------------------------------------------------------
# Host coupons
# ----------------------------------------------------------------------


@host_router.get("", response_model=VoucherListResponse)
async def list_host_coupons(
    host_id: str,
    active: Optional[bool] = Query(None, description="Active flag"),
    db: AsyncSession = Depends(get_db),
):
    """Coupons issued by a host"""
    service = VoucherService(db)
    vouchers = await service.list_vouchers(
        source=VoucherSource.HOST.value,
        host_id=host_id,
        active=active,
    )
    return {"vouchers": [_voucher_to_dict(v) for v in vouchers]}


@host_router.post("", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def create_host_coupon(
    host_id: str,
    request: VoucherCreateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Create a coupon for the host's listings

    The coupon is always stored with source HOST.
    """
    data = request.model_dump()
    data["host_id"] = host_id
    data["source"] = VoucherSource.HOST.value

    service = VoucherService(db)
    voucher = await service.create_voucher(data, actor_id=host_id)
    return _voucher_to_dict(voucher)


@host_router.patch("/{voucher_id}", response_model=VoucherResponse)
async def update_host_coupon(
    host_id: str,
    voucher_id: UUID,
    request: VoucherUpdateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Edit one of the host's coupons"""
    service = VoucherService(db)
    voucher = await _get_host_voucher(service, host_id, voucher_id)
    voucher = await service.update_voucher(voucher, _changes(request), actor_id=host_id)
    return _voucher_to_dict(voucher)


@host_router.delete("/{voucher_id}", response_model=VoucherResponse)
async def disable_host_coupon(
    host_id: str,
    voucher_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Disable one of the host's coupons"""
    service = VoucherService(db)
    voucher = await _get_host_voucher(service, host_id, voucher_id)
    voucher = await service.disable_voucher(voucher, actor_id=host_id)
    return _voucher_to_dict(voucher)


# ----------------------------------------------------------------------
# Checkout preview
# ----------------------------------------------------------------------


@router.post("/validate", response_model=VoucherValidateResponse)
async def validate_voucher(
    request: VoucherValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Check whether a code applies to a booking context

    Nothing is stored and the usage counter does not move.

    **Response**:
    - `is_valid`: whether the code can be applied
    - `reason`: rejection code (e.g. `BELOW_MINIMUM_SPEND`)
    - `discount_amount`: voucher discount
    - `total_price`: total after membership and voucher discounts
    """
    service = BookingPricingService(db)

    result = await service.preview_voucher(
        code=request.code,
        guest_id=request.guest_id,
        listing_id=request.listing_id,
        property_type=request.property_type,
        base_price=request.base_price,
        nights=request.nights,
        cleaning_fee=request.cleaning_fee,
        service_fee=request.service_fee,
        addons_total=request.addons_total,
    )

    return VoucherValidateResponse(
        is_valid=result["is_valid"],
        reason=result["reason"],
        message=result["message"],
        discount_amount=float(result["discount_amount"]),
        membership_discount=float(result["membership_discount"]),
        total_price=float(result["total_price"]),
    )
