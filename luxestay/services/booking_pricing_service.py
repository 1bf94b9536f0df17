"""
Booking pricing service

Checkout flow around the pricing core: quote a pending booking, apply or
remove a voucher code, confirm (finalize) and cancel.

The voucher usage counter only moves at confirmation. Applying, replacing or
removing a code on a pending booking never touches it; confirmation counts the
use with a conditional update in the same transaction as the status change, and
cancelling a confirmed booking gives the use back.
"""

from datetime import datetime
from typing import Optional, Any
from uuid import UUID
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from luxestay.config import get_settings
from luxestay.models.booking import Booking, BookingStatus
from luxestay.models.guest import Guest
from luxestay.models.voucher import Voucher, normalize_code
from luxestay.models.voucher_redemption import VoucherRedemption, RedemptionStatus
from luxestay.services.discount_calculator import (
    MembershipDiscountEntry,
    round_currency,
    to_decimal,
)
from luxestay.services.membership_service import MembershipService
from luxestay.services.price_composer import (
    PriceBreakdown,
    compose_booking_price,
    default_service_fee,
)
from luxestay.services.voucher_rules import (
    BookingContext,
    VoucherRejection,
    check_voucher,
)
from luxestay.services.voucher_service import VoucherService
from luxestay.utils.exceptions import (
    BookingNotFoundException,
    BookingNotPendingException,
    ConflictException,
    GuestNotFoundException,
    ValidationException,
    VoucherRejectedException,
)
from luxestay.utils.logging import get_logger, audit_logger

logger = get_logger(__name__)


class BookingPricingService:
    """Booking pricing and voucher redemption"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.vouchers = VoucherService(db)
        self.memberships = MembershipService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFoundException(str(booking_id))
        return booking

    async def _get_guest(self, guest_id: UUID) -> Guest:
        guest = await self.db.get(Guest, guest_id)
        if guest is None:
            raise GuestNotFoundException(str(guest_id))
        return guest

    async def _get_pending_booking(self, booking_id: UUID) -> Booking:
        booking = await self.get_booking(booking_id)
        if not booking.is_pending():
            raise BookingNotPendingException(str(booking.id), booking.status)
        return booking

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def _compose(
        self,
        base_price: Any,
        nights: int,
        cleaning_fee: Any,
        service_fee: Any,
        addons_total: Any,
        membership: Optional[MembershipDiscountEntry],
        voucher: Optional[Voucher] = None,
    ) -> PriceBreakdown:
        return compose_booking_price(
            base_price=base_price,
            nights=nights,
            cleaning_fee=cleaning_fee,
            service_fee=service_fee,
            membership=membership,
            voucher=voucher.to_terms() if voucher is not None else None,
            addons_total=addons_total,
        )

    async def _price_with_code(
        self,
        guest: Guest,
        code: str,
        listing_id: str,
        property_type: str,
        base_price: Any,
        nights: int,
        cleaning_fee: Any,
        service_fee: Any,
        addons_total: Any,
        now: Optional[datetime] = None,
        record_expiry: bool = True,
    ) -> tuple[Voucher, PriceBreakdown]:
        """
        Validate a code for a booking context and price it

        Raises:
            VoucherRejectedException: any rule failure, a stacking conflict, or
            a code that takes nothing off
        """
        now = now or datetime.utcnow()
        membership = await self.memberships.get_membership_entry(
            guest, now, record_expiry=record_expiry
        )
        subtotal = round_currency(to_decimal(base_price) * nights)

        voucher, check = await self.vouchers.validate_for_booking(
            code=code,
            guest_id=guest.id,
            subtotal=subtotal,
            listing_id=listing_id,
            property_type=property_type,
            membership_tier=guest.loyalty_tier,
            now=now,
        )
        if not check.accepted:
            raise VoucherRejectedException(check.reason, normalize_code(code))

        breakdown = self._compose(
            base_price, nights, cleaning_fee, service_fee, addons_total, membership, voucher
        )

        if breakdown.resolution.voucher_blocked:
            raise VoucherRejectedException(VoucherRejection.STACKING_CONFLICT, voucher.code)
        if breakdown.promotion_discount <= 0:
            raise VoucherRejectedException(
                VoucherRejection.NO_EFFECTIVE_DISCOUNT, voucher.code
            )

        return voucher, breakdown

    def _service_fee(self, base_price: Any, nights: int, service_fee: Any, addons_total: Any):
        """Explicit fee, or the platform rate on room subtotal and add-ons."""
        if service_fee is not None:
            return service_fee
        room_subtotal = round_currency(to_decimal(base_price) * nights)
        return default_service_fee(room_subtotal, addons_total, self.settings.SERVICE_FEE_RATE)

    def _store_breakdown(
        self,
        booking: Booking,
        breakdown: PriceBreakdown,
        voucher_id: Optional[UUID],
    ):
        booking.membership_discount = breakdown.membership_discount
        booking.promotion_discount = breakdown.promotion_discount
        booking.total_price = breakdown.total_price
        booking.applied_promotions = list(breakdown.applied_promotions)
        booking.voucher_id = voucher_id
        booking.updated_at = datetime.utcnow()

    # ------------------------------------------------------------------
    # Checkout operations
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        guest_id: UUID,
        listing_id: str,
        property_type: str,
        base_price: Any,
        nights: int,
        cleaning_fee: Any = 0,
        service_fee: Any = None,
        addons_total: Any = 0,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Create a pending booking quote

        The guest's membership discount is applied right away. Without an
        explicit service fee the platform rate from settings is used.

        Args:
            guest_id: guest
            listing_id: listing
            property_type: listing property type
            base_price: nightly price
            nights: number of nights
            cleaning_fee: cleaning fee
            service_fee: service fee, or None for the default rate
            addons_total: ancillary services total

        Returns:
            Booking in PENDING status
        """
        if nights <= 0:
            raise ValidationException(message="A booking needs at least one night.", field="nights")

        guest = await self._get_guest(guest_id)
        membership = await self.memberships.get_membership_entry(guest, now)

        base_price = round_currency(base_price)
        service_fee = self._service_fee(base_price, nights, service_fee, addons_total)

        breakdown = self._compose(
            base_price, nights, cleaning_fee, service_fee, addons_total, membership
        )

        booking = Booking(
            guest_id=guest.id,
            listing_id=listing_id,
            property_type=_enum_value(property_type),
            base_price=base_price,
            nights=nights,
            cleaning_fee=breakdown.cleaning_fee,
            service_fee=breakdown.service_fee,
            addons_total=breakdown.addons_total,
            status=BookingStatus.PENDING.value,
        )
        self._store_breakdown(booking, breakdown, None)
        self.db.add(booking)
        await self.db.flush()

        logger.info(
            "Booking quoted",
            extra={
                "booking_id": str(booking.id),
                "total_price": str(booking.total_price),
                "membership_discount": str(booking.membership_discount),
            },
        )
        return booking

    async def preview_voucher(
        self,
        code: str,
        guest_id: UUID,
        listing_id: str,
        property_type: str,
        base_price: Any,
        nights: int,
        cleaning_fee: Any = 0,
        service_fee: Any = None,
        addons_total: Any = 0,
        now: Optional[datetime] = None,
    ) -> dict:
        """
        Check a code against a booking context without changing anything

        Amounts are priced exactly as `create_booking` would price the same
        inputs, so the quoted total is the total charged once the code is
        applied. A lapsed membership gives no discount here but is not marked
        EXPIRED.

        Returns:
            {"is_valid", "reason", "message", "discount_amount",
             "membership_discount", "total_price"}
        """
        guest = await self._get_guest(guest_id)
        base_price = round_currency(base_price)
        service_fee = self._service_fee(base_price, nights, service_fee, addons_total)

        try:
            _, breakdown = await self._price_with_code(
                guest,
                code,
                listing_id,
                _enum_value(property_type),
                base_price,
                nights,
                cleaning_fee,
                service_fee,
                addons_total,
                now,
                record_expiry=False,
            )
        except VoucherRejectedException as exc:
            membership = await self.memberships.get_membership_entry(
                guest, now, record_expiry=False
            )
            breakdown = self._compose(
                base_price, nights, cleaning_fee, service_fee, addons_total, membership
            )
            return {
                "is_valid": False,
                "reason": exc.reason.value,
                "message": exc.message,
                "discount_amount": 0,
                "membership_discount": breakdown.membership_discount,
                "total_price": breakdown.total_price,
            }

        return {
            "is_valid": True,
            "reason": None,
            "message": "",
            "discount_amount": breakdown.promotion_discount,
            "membership_discount": breakdown.membership_discount,
            "total_price": breakdown.total_price,
        }

    async def apply_voucher(
        self,
        booking_id: UUID,
        code: str,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Apply a code to a pending booking

        A booking carries at most one code; applying another one replaces it.
        A rejected code leaves the booking exactly as it was.

        Raises:
            BookingNotPendingException: booking already confirmed or cancelled
            VoucherRejectedException: code rejected
        """
        booking = await self._get_pending_booking(booking_id)
        guest = await self._get_guest(booking.guest_id)

        voucher, breakdown = await self._price_with_code(
            guest,
            code,
            booking.listing_id,
            booking.property_type,
            booking.base_price,
            booking.nights,
            booking.cleaning_fee,
            booking.service_fee,
            booking.addons_total,
            now,
        )

        previous_voucher_id = booking.voucher_id
        self._store_breakdown(booking, breakdown, voucher.id)
        await self.db.flush()

        audit_logger.log_event(
            event_type="voucher.applied",
            user_id=str(guest.id),
            resource_type="booking",
            resource_id=str(booking.id),
            action="apply",
            details={
                "code": voucher.code,
                "promotion_discount": str(breakdown.promotion_discount),
                "membership_dropped": breakdown.resolution.membership_dropped,
                "replaced_voucher_id": (
                    str(previous_voucher_id)
                    if previous_voucher_id and previous_voucher_id != voucher.id
                    else None
                ),
            },
        )
        return booking

    async def remove_voucher(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Remove the code from a pending booking

        The price falls back to the membership-only quote. The usage counter is
        untouched because nothing was counted yet.
        """
        booking = await self._get_pending_booking(booking_id)
        if booking.voucher_id is None:
            raise ValidationException(
                message="No voucher code is applied to this booking.",
                field="code",
            )

        guest = await self._get_guest(booking.guest_id)
        membership = await self.memberships.get_membership_entry(guest, now)
        breakdown = self._compose(
            booking.base_price,
            booking.nights,
            booking.cleaning_fee,
            booking.service_fee,
            booking.addons_total,
            membership,
        )

        removed_voucher_id = booking.voucher_id
        self._store_breakdown(booking, breakdown, None)
        await self.db.flush()

        audit_logger.log_event(
            event_type="voucher.removed",
            user_id=str(guest.id),
            resource_type="booking",
            resource_id=str(booking.id),
            action="remove",
            details={"voucher_id": str(removed_voucher_id)},
        )
        return booking

    async def confirm_booking(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Finalize a pending booking

        An attached code is re-checked against the current voucher row and its
        use is counted with a conditional update. If the voucher ran out in the
        meantime the confirmation fails with VOUCHER_EXHAUSTED and the booking
        stays pending and unchanged. The same holds when a membership change
        leaves the code with nothing to take off (NO_EFFECTIVE_DISCOUNT).

        Raises:
            BookingNotPendingException: already confirmed or cancelled
            VoucherRejectedException: attached code no longer valid
        """
        now = now or datetime.utcnow()
        booking = await self._get_pending_booking(booking_id)
        guest = await self._get_guest(booking.guest_id)

        voucher = None
        breakdown = None
        if booking.voucher_id is not None:
            voucher = await self.db.get(
                Voucher, booking.voucher_id, populate_existing=True
            )
            if voucher is None:
                raise VoucherRejectedException(VoucherRejection.VOUCHER_NOT_FOUND)

            prior = await self.vouchers.count_guest_redemptions(voucher.id, guest.id)
            check = check_voucher(
                voucher,
                BookingContext(
                    subtotal=booking.room_subtotal,
                    listing_id=booking.listing_id,
                    property_type=booking.property_type,
                    membership_tier=guest.loyalty_tier,
                    prior_redemptions=prior,
                    guest_id=guest.id,
                    now=now,
                ),
            )
            if not check.accepted:
                raise VoucherRejectedException(check.reason, voucher.code)

            membership = await self.memberships.get_membership_entry(guest, now)
            breakdown = self._compose(
                booking.base_price,
                booking.nights,
                booking.cleaning_fee,
                booking.service_fee,
                booking.addons_total,
                membership,
                voucher,
            )
            if breakdown.resolution.voucher_blocked:
                raise VoucherRejectedException(
                    VoucherRejection.STACKING_CONFLICT, voucher.code
                )
            if breakdown.promotion_discount <= 0:
                raise VoucherRejectedException(
                    VoucherRejection.NO_EFFECTIVE_DISCOUNT, voucher.code
                )

            if not await self.vouchers.consume_usage(voucher.id):
                logger.warning(
                    "Voucher exhausted at confirmation",
                    extra={"booking_id": str(booking.id), "code": voucher.code},
                )
                raise VoucherRejectedException(
                    VoucherRejection.VOUCHER_EXHAUSTED, voucher.code
                )

            # The counter update holds the voucher row until commit, so this
            # count sees every confirmation that finished before ours.
            if voucher.max_uses_per_user is not None:
                used = await self.vouchers.count_guest_redemptions(voucher.id, guest.id)
                if used >= voucher.max_uses_per_user:
                    await self.vouchers.release_usage(voucher.id)
                    raise VoucherRejectedException(
                        VoucherRejection.PER_USER_LIMIT_REACHED, voucher.code
                    )

        if breakdown is not None:
            self._store_breakdown(booking, breakdown, voucher.id)
            self.db.add(
                VoucherRedemption(
                    voucher_id=voucher.id,
                    guest_id=guest.id,
                    booking_id=booking.id,
                    status=RedemptionStatus.USED.value,
                    redeemed_at=now,
                )
            )

        booking.mark_as_confirmed()
        await self.db.flush()

        audit_logger.log_event(
            event_type="booking.confirmed",
            user_id=str(guest.id),
            resource_type="booking",
            resource_id=str(booking.id),
            action="confirm",
            details={
                "total_price": str(booking.total_price),
                "code": voucher.code if voucher is not None else None,
            },
        )
        return booking

    async def cancel_booking(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Cancel a booking

        For a confirmed booking the voucher use is given back (redemption
        RELEASED, counter decremented). The applied-promotion snapshot is kept
        as it was.
        """
        now = now or datetime.utcnow()
        booking = await self.get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise ConflictException(
                message="Booking is already cancelled.",
                details={"booking_id": str(booking.id)},
            )

        released = False
        if booking.status == BookingStatus.CONFIRMED.value and booking.voucher_id:
            result = await self.db.execute(
                select(VoucherRedemption).where(
                    and_(
                        VoucherRedemption.booking_id == booking.id,
                        VoucherRedemption.status == RedemptionStatus.USED.value,
                    )
                )
            )
            redemption = result.scalar_one_or_none()
            if redemption is not None:
                redemption.release(now)
                await self.vouchers.release_usage(redemption.voucher_id)
                released = True

        booking.mark_as_cancelled()
        await self.db.flush()

        audit_logger.log_event(
            event_type="booking.cancelled",
            user_id=str(booking.guest_id),
            resource_type="booking",
            resource_id=str(booking.id),
            action="cancel",
            details={"voucher_released": released},
        )
        return booking


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value
