"""BarterPay REST client and callback signature check.

Every request carries the API key in ``X-SAO-Token``.  Callbacks are
signed with ``sha512(JSON.stringify(sorted data) + api_key)``, delivered either as
hex or base64.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from modules.orders.constants import PaymentStatus
from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured
from modules.payments.providers.signing import js_stringify

logger = structlog.get_logger(__name__)

DEPOSIT_PATH = "/api/pay/m-api/add-in-deposit-queue"
STATUS_PATH = "/api/pay/m-api/check-transaction-status"
CANCEL_PATH = "/api/pay/m-api/cancel-transaction-queue"

PAID_STATUSES = frozenset({"success", "completed"})
FAILED_STATUSES = frozenset({"failed", "cancelled", "expired"})


class BarterPayDeposit(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_index: str = Field(alias="transactionIndex")
    redirect_url: str = Field(alias="redirectUrl")


class BarterPayTransaction(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    transaction_index: Optional[str] = Field(default=None, alias="transactionIndex")
    transaction_status: str = Field(default="", alias="transactionStatus")
    transaction_amount: Optional[Decimal] = Field(default=None, alias="transactionAmount")


def _parse(model, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("barterpay.unexpected_response", model=model.__name__, error=str(exc))
        raise PaymentProviderError("BarterPay returned an unexpected response") from exc


def map_barterpay_status(status: Optional[str]) -> str:
    normalized = (status or "").lower()
    if normalized in PAID_STATUSES:
        return PaymentStatus.PAID
    if normalized in FAILED_STATUSES:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def _signed_material(data: Dict[str, Any], api_key: str) -> bytes:
    serialized = js_stringify(dict(sorted(data.items())))
    return (serialized + api_key).encode("utf-8")


def barterpay_signature(data: Dict[str, Any], api_key: str) -> str:
    """Hex form of the callback signature."""
    return hashlib.sha512(_signed_material(data, api_key)).hexdigest()


def verify_barterpay_signature(
    data: Dict[str, Any], signature: Optional[str], api_key: str
) -> bool:
    if not api_key or not signature:
        return False
    digest = hashlib.sha512(_signed_material(data, api_key)).digest()
    candidates = (digest.hex(), base64.b64encode(digest).decode("ascii"))
    return any(hmac.compare_digest(signature, candidate) for candidate in candidates)


class BarterPayClient:
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
    def from_settings(cls) -> BarterPayClient:
        from django.conf import settings

        return cls(
            settings.BARTERPAY_API_URL,
            settings.BARTERPAY_API_KEY,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
        )

    @property
    def api_key(self) -> str:
        return self._api_key

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    def add_in_deposit_queue(
        self, transaction_id: str, amount: Decimal, currency: str = "USD"
    ) -> BarterPayDeposit:
        body = {
            "TransactionId": transaction_id,
            "Currency": currency,
            "Amount": float(amount),
        }
        data = self._request("POST", DEPOSIT_PATH, json=body)
        deposit = _parse(BarterPayDeposit, data)
        logger.info(
            "barterpay.deposit_queued",
            transaction_id=transaction_id,
            transaction_index=deposit.transaction_index,
        )
        return deposit

    def check_transaction_status(self, transaction_index: str) -> BarterPayTransaction:
        data = self._request(
            "GET", STATUS_PATH, params={"TransactionIndex": transaction_index}
        )
        return _parse(BarterPayTransaction, data)

    def cancel_transaction(self, transaction_index: str) -> None:
        self._request("POST", CANCEL_PATH, json={"TransactionIndex": transaction_index})
        logger.info("barterpay.transaction_cancelled", transaction_index=transaction_index)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self._api_key.strip():
            raise ProviderNotConfigured("BARTERPAY_API_KEY is not set")

        headers = {"X-SAO-Token": self._api_key, "Content-Type": "application/json"}
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
                "barterpay.api_error",
                path=path,
                status_code=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise PaymentProviderError(
                f"BarterPay API error: {exc.response.status_code}"
            ) from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.error("barterpay.request_failed", path=path, error=str(exc))
            raise PaymentProviderError(f"BarterPay request failed: {exc}") from exc
