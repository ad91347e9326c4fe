"""Affiliate attribution and commission use cases."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import structlog
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone

from modules.affiliates.models import Affiliate, AffiliateCommission
from modules.affiliates.tiers import tier_for_monthly_sales
from modules.core.money import ZERO, quantize_money

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


def calendar_month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` of the local calendar month containing *moment*."""
    local = timezone.localtime(moment)
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class AffiliateService:
    """Resolves referral codes at checkout and credits commissions once paid."""

    # ------------------------------------------------------------------
    # Attribution
    # ------------------------------------------------------------------

    def resolve_affiliate(
        self,
        affiliate_ref: Optional[str],
        discount_code: Optional[str] = None,
    ) -> Optional[Affiliate]:
        """Find the affiliate to attribute an order to.

        ``affiliate_ref`` wins.  Otherwise a discount code that is also an
        affiliate's referral code attributes the order, but only when it
        differs from the ref already tried.  The chosen affiliate's
        ``usage_count`` is incremented.
        """
        ref = (affiliate_ref or "").strip().upper()
        code = (discount_code or "").strip().upper()

        affiliate = None
        if ref:
            affiliate = Affiliate.objects.filter(code=ref, is_active=True).first()
        if affiliate is None and code and code != ref:
            affiliate = Affiliate.objects.filter(code=code, is_active=True).first()
        if affiliate is None:
            return None

        Affiliate.objects.filter(pk=affiliate.pk).update(
            usage_count=F("usage_count") + 1
        )
        logger.info("affiliate.attributed", affiliate_id=str(affiliate.id))
        return affiliate

    # ------------------------------------------------------------------
    # Commission
    # ------------------------------------------------------------------

    def monthly_paid_sales(self, affiliate_id, moment: datetime) -> Decimal:
        from modules.orders.constants import PaymentStatus
        from modules.orders.models import Order

        start, end = calendar_month_bounds(moment)
        total = Order.objects.filter(
            affiliate_id=affiliate_id,
            payment_status=PaymentStatus.PAID,
            created_at__gte=start,
            created_at__lt=end,
        ).aggregate(total=Sum("total"))["total"]
        return total or ZERO

    @transaction.atomic
    def credit_commission(self, order: Order) -> Optional[AffiliateCommission]:
        """Create the order's commission unless one already exists.

        The tier comes from the affiliate's paid sales in the calendar
        month of ``order.created_at`` (this order included, since it is
        already paid).  Returns ``None`` when nothing was credited.
        """
        log = logger.bind(order_id=str(order.id), affiliate_id=str(order.affiliate_id))
        if not order.affiliate_id or order.total <= 0:
            return None

        if AffiliateCommission.objects.filter(order_id=order.id).exists():
            log.info("affiliate.commission_exists")
            return None

        monthly_sales = self.monthly_paid_sales(order.affiliate_id, order.created_at)
        tier = tier_for_monthly_sales(monthly_sales)
        amount = quantize_money(order.total * tier.commission_rate / Decimal("100"))

        try:
            with transaction.atomic():
                commission = AffiliateCommission.objects.create(
                    affiliate_id=order.affiliate_id,
                    order_id=order.id,
                    amount=amount,
                    tier=tier.tier,
                    commission_rate=tier.commission_rate,
                )
        except IntegrityError:
            log.info("affiliate.commission_race_lost")
            return None

        Affiliate.objects.filter(pk=order.affiliate_id).update(
            total_sales=F("total_sales") + order.total,
            total_orders=F("total_orders") + 1,
            total_commission=F("total_commission") + amount,
            pending_commission=F("pending_commission") + amount,
        )
        log.info(
            "affiliate.commission_credited",
            amount=str(amount),
            tier=tier.tier,
            monthly_sales=str(monthly_sales),
        )
        return commission
