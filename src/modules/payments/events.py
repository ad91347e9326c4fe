"""Typed payment events.

Every provider callback, poll result or redirect is normalized into one
of three events before it touches an order:

- ``PaymentConfirmed``: the money arrived; goes through the reconciler.
- ``PaymentFailed``: the provider gave up; the order is marked FAILED
  unless it is already PAID.
- ``PaymentPending``: nothing to do yet.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from modules.orders.constants import PaymentStatus

ReferenceType = Literal[
    "id",
    "order_number",
    "stripe_session_id",
    "barterpay_transaction_index",
    "nowpayments_payment_id",
]


class _PaymentEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference: str
    reference_type: ReferenceType = "id"
    note: str = ""
    source: str = ""


class PaymentConfirmed(_PaymentEventBase):
    kind: Literal["confirmed"] = "confirmed"
    payment_method: Optional[str] = None


class PaymentFailed(_PaymentEventBase):
    kind: Literal["failed"] = "failed"


class PaymentPending(_PaymentEventBase):
    kind: Literal["pending"] = "pending"


PaymentEvent = Annotated[
    Union[PaymentConfirmed, PaymentFailed, PaymentPending],
    Field(discriminator="kind"),
]


def event_for_status(
    status: str,
    *,
    reference: str,
    reference_type: ReferenceType = "id",
    note: str = "",
    source: str = "",
    payment_method: Optional[str] = None,
) -> PaymentEvent:
    """Build the event matching a mapped ``PaymentStatus``."""
    common: Dict[str, Any] = {
        "reference": reference,
        "reference_type": reference_type,
        "note": note,
        "source": source,
    }
    if status == PaymentStatus.PAID:
        return PaymentConfirmed(payment_method=payment_method, **common)
    if status == PaymentStatus.FAILED:
        return PaymentFailed(**common)
    return PaymentPending(**common)


# ---------------------------------------------------------------------------
# Stripe webhook payload
# ---------------------------------------------------------------------------


class StripeSessionObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    client_reference_id: Optional[str] = None
    payment_status: Optional[str] = None


class StripeEventData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: StripeSessionObject = Field(default_factory=StripeSessionObject)


class StripeEvent(BaseModel):
    """The subset of a Stripe event this service reads."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str
    data: StripeEventData = Field(default_factory=StripeEventData)


# ---------------------------------------------------------------------------
# Callback payloads
# ---------------------------------------------------------------------------


class BarterPayCallbackData(BaseModel):
    model_config = ConfigDict(extra="allow")

    ExternalTransactionId: str = ""
    TransactionIndex: str = ""
    TransactionStatus: str = ""
    TransactionAmount: Optional[float] = None


class BarterPayCallback(BaseModel):
    data: Dict[str, Any]
    signature: str = ""

    def parsed(self) -> BarterPayCallbackData:
        return BarterPayCallbackData.model_validate(self.data)


class NOWPaymentsIPN(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    payment_id: str
    payment_status: str
    order_id: Optional[str] = None
