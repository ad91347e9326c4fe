"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CheckoutItemDTO``: a single cart line.
- ``ShippingInfoDTO``: buyer contact and shipping address, as typed.
- ``CheckoutDTO``: everything a payment adapter needs to create an order.
- ``StatusChangeDTO``: an admin status transition request.
- ``OrderSummaryDTO``: the order fields returned to buyers and partners.

Buyer name and email are deliberately plain strings here: their rules
and messages live in ``modules.customers.validation``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from modules.orders.models import Order


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CheckoutItemDTO(BaseModel):
    """One cart line.  The price is resolved from the variant, never sent."""

    model_config = ConfigDict(frozen=True)

    product_id: Optional[UUID] = None
    variant_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class ShippingInfoDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    email: Optional[str] = None
    street: str = ""
    apartment: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "US"
    phone: str = ""

    def missing_address_fields(self) -> List[str]:
        return [
            field
            for field in ("street", "city", "state", "zip_code")
            if not (getattr(self, field) or "").strip()
        ]

    def address_data(self, full_name: str) -> dict:
        return {
            "name": full_name,
            "street": self.street.strip(),
            "apartment": self.apartment.strip(),
            "city": self.city.strip(),
            "state": self.state.strip(),
            "zip_code": self.zip_code.strip(),
            "country": self.country or "US",
            "phone": self.phone.strip(),
        }


class CheckoutDTO(BaseModel):
    """Immutable DTO for pending-order creation.

    ``user_id``/``account_email`` are filled from the authenticated
    request, never from the body.  ``payor_id`` is only meaningful for
    GREEN and ``pay_currency`` only for CRYPTO.
    """

    model_config = ConfigDict(frozen=True)

    items: List[CheckoutItemDTO]
    shipping: ShippingInfoDTO
    shipping_cost: Decimal = Decimal("0.00")
    shipping_method: str = ""
    discount_code: Optional[str] = None
    affiliate_ref: Optional[str] = None
    sms_opt_in: bool = False
    user_id: Optional[int] = None
    account_email: Optional[str] = None
    payor_id: Optional[str] = None
    pay_currency: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CheckoutItemDTO]
    ) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("shipping_cost")
    @classmethod
    def shipping_cost_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Shipping cost cannot be negative.")
        return v


class StatusChangeDTO(BaseModel):
    """Admin PATCH body."""

    model_config = ConfigDict(frozen=True)

    status: str
    tracking_number: Optional[str] = None
    note: Optional[str] = None
    cancellation_reason: Optional[str] = None
    send_email: bool = True


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderSummaryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    order_number: str
    status: str
    payment_status: str
    payment_method: str
    subtotal: Decimal
    shipping_insurance: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    payment_method_discount: Decimal
    total: Decimal
    points_earned: int
    tracking_number: str
    created_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderSummaryDTO:
        return cls(
            id=order.id,
            order_number=order.order_number,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            subtotal=order.subtotal,
            shipping_insurance=order.shipping_insurance,
            shipping_cost=order.shipping_cost,
            discount_amount=order.discount_amount,
            payment_method_discount=order.payment_method_discount,
            total=order.total,
            points_earned=order.points_earned,
            tracking_number=order.tracking_number,
            created_at=order.created_at,
        )
