"""Order service layer (Use Cases).

Orchestrates pending-order creation, admin status transitions and the
buyer-facing order lookup.  Payment confirmation lives in
``modules.orders.confirmation``.

Business rules enforced:
- Buyer name, email and shipping address are validated before any
  row is written.
- Totals are computed server-side from variant prices.
- Stock is taken on payment confirmation (or a manual move to
  PROCESSING) and given back when a PROCESSING order is cancelled.
- Each status change appends a history record.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.money import ZERO, quantize_money
from modules.customers.validation import validate_guest_order_info
from modules.orders.confirmation import decrement_item_stock, restore_item_stock
from modules.orders.constants import (
    DISCOUNTED_PAYMENT_METHODS,
    PAYMENT_METHOD_DISCOUNT_RATE,
    SHIPPING_INSURANCE,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from modules.orders.exceptions import InvalidCheckout, InvalidOrderStatus, OrderNotFound
from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured
from modules.rewards.calculations import points_earned

if TYPE_CHECKING:
    from modules.affiliates.services import AffiliateService
    from modules.catalog.models import ProductVariant
    from modules.catalog.repositories.interfaces import IVariantRepository
    from modules.customers.repositories.interfaces import IAddressRepository
    from modules.discounts.services import DiscountService
    from modules.notifications.emails import OrderNotifier
    from modules.orders.confirmation import PaymentConfirmationService
    from modules.orders.dtos import CheckoutDTO, CheckoutItemDTO, StatusChangeDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.providers import BarterPayClient

logger = structlog.get_logger(__name__)

MANUAL_CONFIRMATION_NOTE = "Payment confirmed manually by admin"


def calculate_totals(
    subtotal: Decimal,
    shipping_cost: Decimal,
    discount_amount: Decimal,
    payment_method: str,
) -> Dict[str, Decimal]:
    """Return the monetary fields of a new order.

    The payment-method discount applies to subtotal, insurance and
    shipping, before any code discount is taken off.
    """
    base = subtotal + SHIPPING_INSURANCE + shipping_cost
    method_discount = ZERO
    if payment_method in DISCOUNTED_PAYMENT_METHODS:
        method_discount = quantize_money(base * PAYMENT_METHOD_DISCOUNT_RATE)
    total = quantize_money(base - discount_amount - method_discount)
    return {
        "subtotal": quantize_money(subtotal),
        "shipping_insurance": SHIPPING_INSURANCE,
        "shipping_cost": quantize_money(shipping_cost),
        "discount_amount": quantize_money(discount_amount),
        "payment_method_discount": method_discount,
        "total": max(total, ZERO),
    }


class CheckoutService:
    """Creates PENDING orders for every payment adapter.

    Receives repositories and collaborating services via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        variant_repository: IVariantRepository,
        address_repository: IAddressRepository,
        discount_service: DiscountService,
        affiliate_service: AffiliateService,
    ) -> None:
        self._order_repo = order_repository
        self._variant_repo = variant_repository
        self._address_repo = address_repository
        self._discounts = discount_service
        self._affiliates = affiliate_service

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_pending_order(
        self,
        dto: CheckoutDTO,
        payment_method: str,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Order:
        """Validate the cart and buyer, then persist a PENDING order.

        Raises:
            GuestInfoInvalid: buyer name or email rejected.
            InvalidCheckout: address incomplete or a variant unavailable.
            DiscountCodeNotFound / DiscountCodeRejected: bad discount code.
        """
        contact = validate_guest_order_info(
            dto.shipping.name, dto.shipping.email, dto.account_email
        )
        missing = dto.shipping.missing_address_fields()
        if missing:
            raise InvalidCheckout(
                f"Missing required shipping fields: {', '.join(missing)}"
            )

        variants = self._variant_repo.get_many(item.variant_id for item in dto.items)
        lines = [self._line_for(item, variants) for item in dto.items]
        subtotal = sum((line["price"] * line["quantity"] for line in lines), ZERO)

        log = logger.bind(payment_method=payment_method, user_id=dto.user_id)
        log.info("order.creation_started", item_count=len(lines))

        with transaction.atomic():
            discount_amount = ZERO
            shipping_cost = dto.shipping_cost
            discount_code = ""
            if dto.discount_code and dto.discount_code.strip():
                quote = self._discounts.redeem(dto.discount_code, subtotal)
                discount_amount = quote.discount_amount
                discount_code = quote.code
                if quote.free_shipping:
                    shipping_cost = ZERO

            totals = calculate_totals(
                subtotal, shipping_cost, discount_amount, payment_method
            )
            address = self._address_repo.find_or_create(
                dto.user_id, dto.shipping.address_data(contact.full_name)
            )
            affiliate = self._affiliates.resolve_affiliate(
                dto.affiliate_ref, dto.discount_code
            )

            data: Dict[str, Any] = {
                **totals,
                "user_id": dto.user_id,
                "email": contact.email,
                "payment_method": payment_method,
                "points_earned": points_earned(subtotal),
                "shipping_address": address,
                "shipping_method": dto.shipping_method,
                "discount_code": discount_code,
                "affiliate": affiliate,
                "sms_opt_in": dto.sms_opt_in,
                **(extra_fields or {}),
            }
            order = self._order_repo.create(data, lines)

        log.info(
            "order.pending_created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _line_for(
        item: CheckoutItemDTO, variants: Dict[Any, ProductVariant]
    ) -> Dict[str, Any]:
        variant = variants.get(item.variant_id)
        if variant is None:
            raise InvalidCheckout(f"Product variant {item.variant_id} is not available")
        if item.product_id and variant.product_id != item.product_id:
            raise InvalidCheckout(
                f"Variant {item.variant_id} does not belong to product {item.product_id}"
            )
        return {
            "product_id": variant.product_id,
            "variant_id": variant.id,
            "quantity": item.quantity,
            "price": variant.price,
            "is_backorder": variant.stock_count < item.quantity,
        }


class OrderAdminService:
    """Admin-driven fulfillment transitions."""

    def __init__(
        self,
        order_repository: IOrderRepository,
        variant_repository: IVariantRepository,
        confirmation_service: PaymentConfirmationService,
        notifier: OrderNotifier,
        barterpay_client: Optional[BarterPayClient] = None,
    ) -> None:
        self._order_repo = order_repository
        self._variant_repo = variant_repository
        self._confirmation = confirmation_service
        self._notifier = notifier
        self._barterpay = barterpay_client

    def change_status(self, order_id, dto: StatusChangeDTO, user_id: Optional[int] = None) -> Order:
        """Move an order to ``dto.status`` and run the transition's side effects.

        Raises:
            InvalidOrderStatus: unknown status or SHIPPED without tracking.
            OrderNotFound: order does not exist.
        """
        new_status = (dto.status or "").upper()
        if new_status not in OrderStatus.values:
            raise InvalidOrderStatus(
                f"Invalid status. Must be one of: {', '.join(OrderStatus.values)}"
            )
        tracking_number = (dto.tracking_number or "").strip()
        if new_status == OrderStatus.SHIPPED and not tracking_number:
            raise InvalidOrderStatus(
                "Tracking number is required when changing status to SHIPPED"
            )

        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")

            old_status = order.status
            log = logger.bind(
                order_id=str(order.id), old_status=old_status, new_status=new_status
            )

            if (
                old_status == OrderStatus.PENDING
                and new_status == OrderStatus.PROCESSING
                and order.payment_status != PaymentStatus.PAID
            ):
                self._confirmation.confirm_payment(order.id, MANUAL_CONFIRMATION_NOTE)
                if dto.note:
                    self._order_repo.add_history(
                        order.id,
                        new_status=OrderStatus.PROCESSING,
                        note=dto.note,
                        old_status=OrderStatus.PROCESSING,
                        user_id=user_id,
                    )
                log.info("order.admin_payment_confirmed")
                return self._order_repo.get_by_id(str(order.id))

            if new_status == OrderStatus.PROCESSING and old_status != OrderStatus.PROCESSING:
                decrement_item_stock(order, self._variant_repo)
            elif old_status == OrderStatus.PROCESSING and new_status == OrderStatus.CANCELLED:
                restore_item_stock(order, self._variant_repo)

            changes: Dict[str, Any] = {"status": new_status}
            if new_status == OrderStatus.SHIPPED:
                changes["tracking_number"] = tracking_number
                changes["shipped_at"] = timezone.now()
            elif new_status == OrderStatus.DELIVERED:
                changes["delivered_at"] = timezone.now()
            self._order_repo.update_fields(order, **changes)

            note = dto.cancellation_reason or dto.note or f"Status updated to {new_status}"
            self._order_repo.add_history(
                order.id,
                new_status=new_status,
                note=note,
                old_status=old_status,
                user_id=user_id,
            )
            log.info("order.status_updated")

        if new_status == OrderStatus.CANCELLED:
            self._cancel_provider_payment(order)
        if dto.send_email:
            self._send_status_email(order, new_status)
        return self._order_repo.get_by_id(str(order.id))

    def _send_status_email(self, order: Order, new_status: str) -> None:
        try:
            self._notifier.send_status_change(order, new_status)
        except Exception:
            logger.exception("email.status_change_failed", order_id=str(order.id))

    def _cancel_provider_payment(self, order: Order) -> None:
        """Drop the queued BarterPay deposit of an order cancelled before payment."""
        if (
            self._barterpay is None
            or order.payment_method != PaymentMethod.BARTERPAY
            or order.payment_status == PaymentStatus.PAID
            or not order.barterpay_transaction_index
        ):
            return
        try:
            self._barterpay.cancel_transaction(order.barterpay_transaction_index)
        except (PaymentProviderError, ProviderNotConfigured) as exc:
            logger.warning(
                "order.provider_cancel_failed",
                order_id=str(order.id),
                provider="barterpay",
                error=str(exc),
            )


class OrderLookupService:
    """Lets a buyer look an order up by number."""

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    def find_for_buyer(
        self,
        order_number: str,
        email: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Order:
        """Return the order when *email* or *user_id* owns it.

        Unknown numbers and ownership mismatches look the same to the
        caller.

        Raises:
            OrderNotFound: no visible order with that number.
        """
        order = self._order_repo.get_by_order_number((order_number or "").strip())
        if order is None:
            raise OrderNotFound("Order not found")

        owned_by_user = user_id is not None and order.user_id == user_id
        given = (email or "").strip().lower()
        owned_by_email = bool(given) and order.customer_email.lower() == given
        if not (owned_by_user or owned_by_email):
            raise OrderNotFound("Order not found")
        return order
