"""
Membership service

Resolves the membership discount a guest is entitled to at booking time.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from luxestay.models.guest import Guest, MembershipPlan, MembershipStatus
from luxestay.services.discount_calculator import MembershipDiscountEntry
from luxestay.utils.logging import get_logger

logger = get_logger(__name__)


class MembershipService:
    """Membership lookups"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_membership_entry(
        self,
        guest: Guest,
        now: Optional[datetime] = None,
        record_expiry: bool = True,
    ) -> Optional[MembershipDiscountEntry]:
        """
        Membership discount entry for a guest

        An ACTIVE membership found past its expiry date is flipped to EXPIRED
        and yields no discount.

        Args:
            guest: guest row
            now: current time
            record_expiry: store the EXPIRED flip (off for read-only previews)

        Returns:
            MembershipDiscountEntry or None when there is no active plan with a
            positive booking discount
        """
        now = now or datetime.utcnow()

        if guest.membership_status != MembershipStatus.ACTIVE.value:
            return None

        if guest.membership_expires_at is not None and guest.membership_expires_at < now:
            if record_expiry:
                guest.membership_status = MembershipStatus.EXPIRED.value
                await self.db.flush()
                logger.info(
                    "Membership expired",
                    extra={"guest_id": str(guest.id)},
                )
            return None

        if guest.membership_plan_id is None:
            return None

        plan = await self.db.get(MembershipPlan, guest.membership_plan_id)
        if plan is None or Decimal(str(plan.booking_discount_rate)) <= 0:
            return None

        return MembershipDiscountEntry(
            tier_name=plan.name,
            rate=Decimal(str(plan.booking_discount_rate)),
            applies_to_services=bool(plan.apply_discount_to_services),
            plan_slug=plan.slug,
        )
