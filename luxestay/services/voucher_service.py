"""
Voucher service

Voucher management (create, list, edit, soft-disable), eligibility checks
against a booking context, and the usage counter.
"""

from datetime import datetime
from typing import Optional, List, Any
from uuid import UUID
from sqlalchemy import select, update, func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from luxestay.config import get_settings
from luxestay.models.voucher import (
    Voucher,
    DiscountType,
    VoucherSource,
    normalize_code,
)
from luxestay.models.voucher_redemption import VoucherRedemption, RedemptionStatus
from luxestay.services.voucher_rules import (
    BookingContext,
    VoucherCheck,
    VoucherRejection,
    check_voucher,
    is_allowed_percentage,
)
from luxestay.utils.exceptions import (
    ValidationException,
    VoucherNotFoundException,
    DuplicateVoucherCodeException,
)
from luxestay.utils.logging import get_logger, audit_logger

logger = get_logger(__name__)


class VoucherService:
    """Voucher service"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_voucher_by_code(self, code: str) -> Optional[Voucher]:
        """
        Find a voucher by code

        Args:
            code: voucher code, any case, surrounding spaces ignored

        Returns:
            Voucher or None
        """
        result = await self.db.execute(
            select(Voucher).where(Voucher.code == normalize_code(code))
        )
        return result.scalar_one_or_none()

    async def get_voucher(self, voucher_id: UUID) -> Voucher:
        """
        Voucher by id

        Raises:
            VoucherNotFoundException: unknown id
        """
        voucher = await self.db.get(Voucher, voucher_id)
        if voucher is None:
            raise VoucherNotFoundException(str(voucher_id))
        return voucher

    async def list_vouchers(
        self,
        source: Optional[str] = None,
        host_id: Optional[str] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Voucher]:
        """
        List vouchers, newest first

        Args:
            source: ADMIN, HOST or LOYALTY_EXCHANGE
            host_id: issuing host
            active: filter on the active flag
            search: case-insensitive match on code, name or description
            limit: max rows (defaults to VOUCHER_LIST_LIMIT)
        """
        query = select(Voucher)

        if source:
            query = query.where(Voucher.source == source)
        if host_id:
            query = query.where(Voucher.host_id == host_id)
        if active is not None:
            query = query.where(Voucher.is_active.is_(active))
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(Voucher.code).like(pattern),
                    func.lower(Voucher.name).like(pattern),
                    func.lower(Voucher.description).like(pattern),
                )
            )

        query = query.order_by(Voucher.created_at.desc()).limit(
            limit or self.settings.VOUCHER_LIST_LIMIT
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def redemption_counts(self, voucher_ids: List[UUID]) -> dict[UUID, dict]:
        """
        Redemption totals per voucher, split by status

        Returns:
            {voucher_id: {"total": int, "by_status": {status: int}}}
        """
        counts: dict[UUID, dict] = {
            voucher_id: {"total": 0, "by_status": {}} for voucher_id in voucher_ids
        }
        if not voucher_ids:
            return counts

        result = await self.db.execute(
            select(
                VoucherRedemption.voucher_id,
                VoucherRedemption.status,
                func.count(VoucherRedemption.id),
            )
            .where(VoucherRedemption.voucher_id.in_(voucher_ids))
            .group_by(VoucherRedemption.voucher_id, VoucherRedemption.status)
        )
        for voucher_id, status, count in result.all():
            entry = counts.setdefault(voucher_id, {"total": 0, "by_status": {}})
            entry["by_status"][status] = count
            entry["total"] += count

        return counts

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def _check_terms(
        self,
        discount_type: str,
        discount_value: Any,
        valid_from: datetime,
        valid_until: Optional[datetime],
    ):
        if discount_type == DiscountType.PERCENTAGE.value and not is_allowed_percentage(
            discount_value, self.settings.PERCENTAGE_DISCOUNT_OPTIONS
        ):
            options = ", ".join(f"{o}%" for o in self.settings.PERCENTAGE_DISCOUNT_OPTIONS)
            raise ValidationException(
                message=f"Percentage vouchers only support {options}.",
                field="discount_value",
            )

        if valid_until is None or valid_until <= valid_from:
            raise ValidationException(
                message="The end date is required and must be after the start date.",
                field="valid_until",
            )

    async def create_voucher(
        self,
        data: dict,
        actor_id: Optional[str] = None,
    ) -> Voucher:
        """
        Create a voucher

        Args:
            data: voucher fields (see VoucherCreateRequest)
            actor_id: admin or host creating it, for the audit log

        Returns:
            The new voucher

        Raises:
            ValidationException: percentage outside the whitelist, bad window
            DuplicateVoucherCodeException: code already exists
        """
        data = dict(data)
        data["code"] = normalize_code(data["code"])
        data["discount_type"] = _enum_value(data["discount_type"])
        data["valid_from"] = data.get("valid_from") or datetime.utcnow()

        self._check_terms(
            data["discount_type"],
            data["discount_value"],
            data["valid_from"],
            data.get("valid_until"),
        )

        if data["discount_type"] == DiscountType.FIXED_AMOUNT.value:
            data["max_discount"] = None

        if not data.get("source"):
            if data.get("host_id"):
                data["source"] = VoucherSource.HOST.value
            elif (data.get("point_cost") or 0) > 0:
                data["source"] = VoucherSource.LOYALTY_EXCHANGE.value
            else:
                data["source"] = VoucherSource.ADMIN.value
        data["source"] = _enum_value(data["source"])

        for key in ("allowed_membership_tiers", "listing_ids", "property_types"):
            data[key] = [_enum_value(v) for v in (data.get(key) or [])]
        data["guest_ids"] = [str(v) for v in (data.get("guest_ids") or [])]

        if await self.get_voucher_by_code(data["code"]) is not None:
            raise DuplicateVoucherCodeException(data["code"])

        voucher = Voucher(**data)
        self.db.add(voucher)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateVoucherCodeException(data["code"])

        audit_logger.log_event(
            event_type="voucher.created",
            user_id=actor_id,
            resource_type="voucher",
            resource_id=str(voucher.id),
            action="create",
            details={"code": voucher.code, "source": voucher.source},
        )
        return voucher

    async def update_voucher(
        self,
        voucher: Voucher,
        changes: dict,
        actor_id: Optional[str] = None,
    ) -> Voucher:
        """
        Edit a voucher

        Only the given fields change. The percentage whitelist and the validity
        window are re-checked against the merged result.
        """
        changes = dict(changes)
        if "code" in changes and changes["code"] is not None:
            changes["code"] = normalize_code(changes["code"])
            if changes["code"] != voucher.code:
                existing = await self.get_voucher_by_code(changes["code"])
                if existing is not None:
                    raise DuplicateVoucherCodeException(changes["code"])

        for key in ("discount_type", "source"):
            if changes.get(key) is not None:
                changes[key] = _enum_value(changes[key])
        for key in ("allowed_membership_tiers", "listing_ids", "property_types"):
            if changes.get(key) is not None:
                changes[key] = [_enum_value(v) for v in changes[key]]
        if changes.get("guest_ids") is not None:
            changes["guest_ids"] = [str(v) for v in changes["guest_ids"]]

        discount_type = changes.get("discount_type") or voucher.discount_type
        discount_value = (
            changes["discount_value"]
            if changes.get("discount_value") is not None
            else voucher.discount_value
        )
        valid_from = changes.get("valid_from") or voucher.valid_from
        valid_until = changes.get("valid_until") or voucher.valid_until
        self._check_terms(discount_type, discount_value, valid_from, valid_until)

        max_uses = changes["max_uses"] if "max_uses" in changes else voucher.max_uses
        if max_uses is not None and max_uses < (voucher.used_count or 0):
            raise ValidationException(
                message="max_uses cannot be lower than the number of uses so far.",
                field="max_uses",
            )

        for field, value in changes.items():
            setattr(voucher, field, value)
        if discount_type == DiscountType.FIXED_AMOUNT.value:
            voucher.max_discount = None
        voucher.updated_at = datetime.utcnow()

        await self.db.flush()

        audit_logger.log_event(
            event_type="voucher.updated",
            user_id=actor_id,
            resource_type="voucher",
            resource_id=str(voucher.id),
            action="update",
            details={"fields": sorted(changes.keys())},
        )
        return voucher

    async def disable_voucher(
        self,
        voucher: Voucher,
        actor_id: Optional[str] = None,
    ) -> Voucher:
        """Soft-disable a voucher; used vouchers are never deleted."""
        voucher.is_active = False
        voucher.updated_at = datetime.utcnow()
        await self.db.flush()

        audit_logger.log_event(
            event_type="voucher.disabled",
            user_id=actor_id,
            resource_type="voucher",
            resource_id=str(voucher.id),
            action="disable",
            details={"code": voucher.code},
        )
        return voucher

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    async def count_guest_redemptions(self, voucher_id: UUID, guest_id: UUID) -> int:
        """Number of USED redemptions of a voucher by a guest"""
        result = await self.db.execute(
            select(func.count(VoucherRedemption.id)).where(
                and_(
                    VoucherRedemption.voucher_id == voucher_id,
                    VoucherRedemption.guest_id == guest_id,
                    VoucherRedemption.status == RedemptionStatus.USED.value,
                )
            )
        )
        return result.scalar_one()

    async def validate_for_booking(
        self,
        code: str,
        guest_id: UUID,
        subtotal: Any,
        listing_id: Optional[str] = None,
        property_type: Optional[str] = None,
        membership_tier: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[Voucher], VoucherCheck]:
        """
        Look up a code and check it against a booking context

        Returns:
            (voucher or None, check result). Unknown codes yield
            VOUCHER_NOT_FOUND.
        """
        voucher = await self.get_voucher_by_code(code)
        if voucher is None:
            return None, VoucherCheck(VoucherRejection.VOUCHER_NOT_FOUND)

        prior = await self.count_guest_redemptions(voucher.id, guest_id)
        context = BookingContext(
            subtotal=subtotal,
            listing_id=listing_id,
            property_type=property_type,
            membership_tier=membership_tier,
            prior_redemptions=prior,
            guest_id=guest_id,
            now=now,
        )
        return voucher, check_voucher(voucher, context)

    # ------------------------------------------------------------------
    # Usage counter
    # ------------------------------------------------------------------

    async def consume_usage(self, voucher_id: UUID) -> bool:
        """
        Count one use of a voucher

        A single conditional UPDATE: the row only changes while the voucher is
        active and below `max_uses`, so concurrent finalizations cannot push
        `used_count` past the cap.

        Returns:
            True if the use was counted, False if the voucher is exhausted or
            inactive
        """
        result = await self.db.execute(
            update(Voucher)
            .where(
                Voucher.id == voucher_id,
                Voucher.is_active.is_(True),
                or_(Voucher.max_uses.is_(None), Voucher.used_count < Voucher.max_uses),
            )
            .values(used_count=Voucher.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        counted = result.rowcount == 1
        await self._reload(voucher_id)
        return counted

    async def release_usage(self, voucher_id: UUID) -> bool:
        """
        Give one use back (compensating decrement)

        Never drops `used_count` below zero.
        """
        result = await self.db.execute(
            update(Voucher)
            .where(Voucher.id == voucher_id, Voucher.used_count > 0)
            .values(used_count=Voucher.used_count - 1)
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount == 1
        await self._reload(voucher_id)
        return released

    async def _reload(self, voucher_id: UUID):
        # bulk updates bypass the identity map
        await self.db.get(Voucher, voucher_id, populate_existing=True)


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value
