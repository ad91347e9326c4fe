"""NOWPayments REST client and IPN signature check.

Requests authenticate with ``x-api-key``.  IPN callbacks carry
``x-nowpayments-sig``: the HMAC-SHA512 of the key-sorted JSON body under
the IPN secret.
"""

from __future__ import annotations

import hashlib
import hmac
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from modules.orders.constants import PaymentStatus
from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured
from modules.payments.providers.signing import js_stringify

logger = structlog.get_logger(__name__)

PAID_STATUSES = frozenset({"finished", "confirmed"})
FAILED_STATUSES = frozenset({"failed", "expired", "refunded"})


class NOWPayment(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    payment_id: str
    payment_status: str = "waiting"
    pay_address: Optional[str] = None
    pay_amount: Optional[Decimal] = None
    pay_currency: Optional[str] = None
    price_amount: Optional[Decimal] = None
    order_id: Optional[str] = None


def map_nowpayments_status(status: Optional[str]) -> str:
    normalized = (status or "").lower()
    if normalized in PAID_STATUSES:
        return PaymentStatus.PAID
    if normalized in FAILED_STATUSES:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def _sorted_json(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _sorted_json(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [_sorted_json(item) for item in value]
    return value


def nowpayments_signature(body: Dict[str, Any], ipn_secret: str) -> str:
    message = js_stringify(_sorted_json(body))
    return hmac.new(
        ipn_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512
    ).hexdigest()


def verify_nowpayments_signature(
    body: Dict[str, Any], signature: Optional[str], ipn_secret: str
) -> bool:
    if not ipn_secret or not signature:
        return False
    expected = nowpayments_signature(body, ipn_secret)
    return hmac.compare_digest(signature.lower(), expected)


class NOWPaymentsClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    @classmethod
    def from_settings(cls) -> NOWPaymentsClient:
        from django.conf import settings

        return cls(
            settings.NOWPAYMENTS_API_URL,
            settings.NOWPAYMENTS_API_KEY,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
        )

    def create_payment(
        self,
        *,
        price_amount: Decimal,
        order_id: str,
        pay_currency: str,
        order_description: str = "",
        ipn_callback_url: Optional[str] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        price_currency: str = "usd",
    ) -> NOWPayment:
        body: Dict[str, Any] = {
            "price_amount": float(price_amount),
            "price_currency": price_currency,
            "pay_currency": pay_currency,
            "order_id": order_id,
            "order_description": order_description,
        }
        for key, value in (
            ("ipn_callback_url", ipn_callback_url),
            ("success_url", success_url),
            ("cancel_url", cancel_url),
        ):
            if value:
                body[key] = value

        payment = self._parse(self._request("POST", "/payment", json=body))
        logger.info(
            "nowpayments.payment_created",
            order_id=order_id,
            payment_id=payment.payment_id,
            pay_currency=payment.pay_currency,
        )
        return payment

    def get_payment(self, payment_id: str) -> NOWPayment:
        return self._parse(self._request("GET", f"/payment/{payment_id}"))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(data: Dict[str, Any]) -> NOWPayment:
        try:
            return NOWPayment.model_validate(data)
        except ValidationError as exc:
            logger.error("nowpayments.unexpected_response", error=str(exc))
            raise PaymentProviderError("NOWPayments returned an unexpected response") from exc

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._api_key:
            raise ProviderNotConfigured("NOWPAYMENTS_API_KEY is not set")

        headers = {"x-api-key": self._api_key, "Content-Type": "application/json"}
        try:
            with httpx.Client(
                base_url=self._api_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = client.request(method, path, headers=headers, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "nowpayments.api_error",
                path=path,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise PaymentProviderError(
                f"NOWPayments API error: {exc.response.status_code}"
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.error("nowpayments.request_failed", path=path, error=str(exc))
            raise PaymentProviderError(f"NOWPayments request failed: {exc}") from exc
