"""Order domain constants.

Fulfillment status moves freely under admin control; the only guarded
transition is payment ``PENDING -> PAID``, which happens at most once
and only through ``PaymentConfirmationService``.
"""

from decimal import Decimal

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PROCESSING = "PROCESSING", "Processing"
    SHIPPED = "SHIPPED", "Shipped"
    DELIVERED = "DELIVERED", "Delivered"
    CANCELLED = "CANCELLED", "Cancelled"
    REFUNDED = "REFUNDED", "Refunded"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PAID = "PAID", "Paid"
    FAILED = "FAILED", "Failed"


class PaymentMethod(models.TextChoices):
    CREDIT_CARD = "CREDIT_CARD", "Credit card (Stripe)"
    CARD_LINK = "CARD_LINK", "Card payment link"
    BARTERPAY = "BARTERPAY", "BarterPay"
    CRYPTO = "CRYPTO", "Cryptocurrency (NOWPayments)"
    GREEN = "GREEN", "Green eDebit"
    VENMO = "VENMO", "Venmo"


class OrderEffect(models.TextChoices):
    """Side effects fanned out after a payment is confirmed."""

    POINTS_AWARD = "order.points_award", "Award rewards points"
    CONFIRMATION_EMAIL = "order.confirmation_email", "Send confirmation email"
    AFFILIATE_COMMISSION = "order.affiliate_commission", "Credit affiliate commission"


SHIPPING_INSURANCE = Decimal("3.50")

PAYMENT_METHOD_DISCOUNT_RATE = Decimal("0.05")
DISCOUNTED_PAYMENT_METHODS: frozenset[str] = frozenset(
    {PaymentMethod.VENMO, PaymentMethod.CRYPTO}
)

MINIMUM_CHECKOUT_CENTS = 50

ORDER_NUMBER_PREFIX = "PL"
ORDER_NUMBER_MAX_RETRIES = 5

MAX_EFFECT_ATTEMPTS = 5

GENERIC_PROVIDER_ERROR = (
    "Something went wrong. Please try again shortly or contact support"
)
