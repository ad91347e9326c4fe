"""Order, OrderItem, and OrderStatusHistory models.

Business rules implemented:
- ``payment_status`` moves PENDING -> PAID at most once (enforced by
  ``PaymentConfirmationService`` under a row lock).
- Each status change generates a history record.
- Order number auto-generated as ``PL-<epoch millis>-<4 hex>``.
- OrderItem snapshots the variant price at creation time (``price``).
- Backordered items (``is_backorder``) never touch stock: they are
  skipped by both the decrement on payment and the restore on cancel.
- A guest order carries ``email``; a registered buyer's order may rely
  on ``user.email`` instead.
"""

from __future__ import annotations

import secrets
import time
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    ORDER_NUMBER_PREFIX,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

logger = structlog.get_logger(__name__)


def _money_field(**kwargs: Any) -> models.DecimalField:
    return models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"), **kwargs
    )


class Order(BaseModel):
    """Order aggregate root.

    The UUIDv7 ``id`` is what providers echo back (Stripe
    ``client_reference_id``); ``order_number`` is what the customer sees
    and what BarterPay/NOWPayments receive as their external id.
    """

    order_number = models.CharField(max_length=32, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    email = models.EmailField(blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)

    subtotal = _money_field()
    shipping_insurance = _money_field()
    shipping_cost = _money_field()
    discount_amount = _money_field()
    payment_method_discount = _money_field()
    total = _money_field()
    points_earned = models.PositiveIntegerField(default=0)

    shipping_address = models.ForeignKey(
        "customers.Address",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="orders",
    )
    shipping_method = models.CharField(max_length=50, blank=True, default="")
    discount_code = models.CharField(max_length=64, blank=True, default="")
    affiliate = models.ForeignKey(
        "affiliates.Affiliate",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    sms_opt_in = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default="")

    # Provider references
    stripe_session_id = models.CharField(max_length=255, blank=True, default="", db_index=True)
    barterpay_transaction_index = models.CharField(max_length=255, blank=True, default="", db_index=True)
    nowpayments_payment_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    green_payor_id = models.CharField(max_length=64, blank=True, default="")
    green_check_id = models.CharField(max_length=64, blank=True, default="")

    # Fulfillment
    tracking_number = models.CharField(max_length=128, blank=True, default="")
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(
                fields=["payment_status", "payment_method"],
                name="orders_payment_idx",
            ),
            models.Index(
                fields=["affiliate", "payment_status", "created_at"],
                name="orders_affiliate_month_idx",
            ),
        ]

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def customer_email(self) -> str:
        """Guest email first, then the account email; empty when unusable."""
        email = self.email or (self.user.email if self.user_id and self.user else "")
        return email if email and "@" in email else ""

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``PL-<millis>-XXXX``."""
        millis = int(time.time() * 1000)
        suffix = secrets.token_hex(2).upper()
        return f"{ORDER_NUMBER_PREFIX}-{millis}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status}/{self.payment_status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a product variant.

    ``price`` is a snapshot of the variant price at checkout.
    ``is_backorder`` is decided at checkout: the variant had fewer units
    in stock than requested.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    variant = models.ForeignKey(
        "catalog.ProductVariant",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    quantity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    price = models.DecimalField(max_digits=10, decimal_places=2)
    is_backorder = models.BooleanField(default=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def __str__(self) -> str:
        return f"{self.variant_id or self.product_id} x{self.quantity} (${self.price})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Records are immutable: they are never edited or deleted.  ``user`` is
    nullable; ``None`` means the change came from the system (webhook,
    poller, checkout).
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    note = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"
