"""Order email builders and the ``OrderNotifier`` that sends them.

Bodies are plain text.  Each builder returns ``(subject, body)`` so the
wording can be asserted without a mail backend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

import structlog
from django.conf import settings
from django.core.mail import send_mail

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)

BRAND = "Purgo Style Labs"

PAYMENT_METHOD_LABELS = {
    "CREDIT_CARD": "Credit/Debit Card",
    "CARD_LINK": "Credit/Debit Card (payment link)",
    "BARTERPAY": "BarterPay",
    "CRYPTO": "Cryptocurrency",
    "GREEN": "Green eDebit (bank account)",
    "VENMO": "Venmo",
}

CONFIRMATION_LINES = {
    "CRYPTO": "Your cryptocurrency payment has been confirmed on the network.",
    "CREDIT_CARD": "Your card payment was processed successfully.",
    "BARTERPAY": "Your BarterPay payment was received.",
    "GREEN": "Your bank debit was approved.",
    "VENMO": "We received your Venmo payment.",
    "CARD_LINK": "We received your card payment.",
}

STATUS_TITLES = {
    "PENDING": "Order Pending",
    "PROCESSING": "Order Processing",
    "SHIPPED": "Order Shipped!",
    "DELIVERED": "Order Delivered",
    "CANCELLED": "Order Cancelled",
    "REFUNDED": "Order Refunded",
}


def payment_method_label(method: str) -> str:
    return PAYMENT_METHOD_LABELS.get(method, method)


def _item_lines(order: Order) -> Iterable[str]:
    for item in order.items.all():
        name = item.product.name if item.product_id else "Item"
        size = f" ({item.variant.size})" if item.variant_id and item.variant.size else ""
        backorder = " [BACKORDER]" if item.is_backorder else ""
        yield f"  - {name}{size} x{item.quantity} @ ${item.price}{backorder}"


def _totals_lines(order: Order) -> list[str]:
    lines = [
        f"Subtotal: ${order.subtotal}",
        f"Shipping insurance: ${order.shipping_insurance}",
        f"Shipping: ${order.shipping_cost}",
    ]
    if order.discount_amount:
        lines.append(f"Discount: -${order.discount_amount}")
    if order.payment_method_discount:
        lines.append(f"Payment method discount: -${order.payment_method_discount}")
    lines.append(f"Total: ${order.total}")
    return lines


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_order_confirmation(order: Order, payment_method: Optional[str] = None) -> tuple[str, str]:
    method = payment_method or order.payment_method
    subject = f"Order #{order.order_number} confirmed - {BRAND}"
    lines = [
        "Thank you for your order!",
        "",
        CONFIRMATION_LINES.get(method, "Your payment has been confirmed."),
        f"Payment method: {payment_method_label(method)}",
        "",
        "Items:",
        *_item_lines(order),
        "",
        *_totals_lines(order),
    ]
    if any(item.is_backorder for item in order.items.all()):
        lines += [
            "",
            "Some items are on backorder and will ship as soon as they are restocked.",
        ]
    if order.points_earned and order.user_id:
        lines += ["", f"You earned {order.points_earned} rewards points with this order."]
    return subject, "\n".join(lines)


def build_payment_instructions(order: Order, instructions: dict) -> tuple[str, str]:
    subject = f"Complete your payment - Order #{order.order_number} - {BRAND}"
    lines = [
        f"Your order #{order.order_number} is reserved and awaiting payment.",
        "",
        f"Amount due: ${order.total}",
    ]
    if order.payment_method == "VENMO":
        lines += [
            f"Send the payment to {instructions['handle']} on Venmo.",
            f"Use the note '{instructions['note']}' and nothing else.",
        ]
    else:
        lines += [f"Pay securely by card here: {instructions['payment_link']}"]
    lines += ["", "Your order ships once the payment is confirmed."]
    return subject, "\n".join(lines)


def build_status_change(order: Order, new_status: str) -> tuple[str, str]:
    title = STATUS_TITLES.get(new_status, new_status.title())
    subject = f"Order #{order.order_number} - {title} - {BRAND}"
    lines = [f"{title}", "", f"Your order #{order.order_number} is now {new_status}."]
    if new_status == "SHIPPED" and order.tracking_number:
        lines.append(f"Tracking number: {order.tracking_number}")
    return subject, "\n".join(lines)


def build_support_notification(order: Order) -> tuple[str, str]:
    paid = "PAID" if order.payment_status == "PAID" else "PENDING PAYMENT"
    subject = f"New Order Received: #{order.order_number} - {paid}"
    address = order.shipping_address
    lines = [
        f"Order: {order.order_number}",
        f"Customer: {order.customer_email or 'unknown'}",
        f"Payment method: {payment_method_label(order.payment_method)}",
        f"Payment status: {order.payment_status}",
        "",
        "Items:",
        *_item_lines(order),
        "",
        *_totals_lines(order),
    ]
    if address is not None:
        lines += ["", "Ship to:", f"  {address}"]
    return subject, "\n".join(lines)


# ---------------------------------------------------------------------------
# Sender
# ---------------------------------------------------------------------------


class OrderNotifier:
    """Sends order emails through Django's configured mail backend."""

    def __init__(self, from_email: Optional[str] = None, support_email: Optional[str] = None) -> None:
        self._from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self._support_email = support_email or settings.SUPPORT_EMAIL

    def _send(self, event: str, order: Order, recipient: str, subject: str, body: str) -> None:
        send_mail(subject, body, self._from_email, [recipient], fail_silently=False)
        logger.info(event, order_id=str(order.id), order_number=order.order_number)

    def send_order_confirmation(self, order: Order, payment_method: Optional[str] = None) -> bool:
        """Email the customer; ``False`` when the order has no usable address."""
        recipient = order.customer_email
        if not recipient:
            logger.warning("email.confirmation_skipped", order_id=str(order.id))
            return False
        subject, body = build_order_confirmation(order, payment_method)
        self._send("email.confirmation_sent", order, recipient, subject, body)
        return True

    def send_payment_instructions(self, order: Order, instructions: dict) -> bool:
        recipient = order.customer_email
        if not recipient:
            return False
        subject, body = build_payment_instructions(order, instructions)
        self._send("email.payment_instructions_sent", order, recipient, subject, body)
        return True

    def send_status_change(self, order: Order, new_status: str) -> bool:
        recipient = order.customer_email
        if not recipient:
            return False
        subject, body = build_status_change(order, new_status)
        self._send("email.status_change_sent", order, recipient, subject, body)
        return True

    def send_support_notification(self, order: Order) -> bool:
        if not self._support_email:
            return False
        subject, body = build_support_notification(order)
        self._send("email.support_notified", order, self._support_email, subject, body)
        return True
