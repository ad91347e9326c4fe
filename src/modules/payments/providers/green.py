"""Green eDebit (Green By Phone) SOAP client.

Each call posts a ``CheckProcessing`` envelope carrying ``Client_ID`` and
``ApiPassword`` with ``SOAPAction: "CheckProcessing/<action>"``.  A
``Result`` of ``"0"`` is success; anything else is reported with its
``ResultDescription``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal
from typing import Dict, Optional
from urllib.parse import urlencode
from xml.sax.saxutils import escape

import httpx
import structlog

from modules.payments.exceptions import PaymentProviderError, ProviderNotConfigured

logger = structlog.get_logger(__name__)

SOAP_NAMESPACE = "CheckProcessing"
PLAID_URL = "https://greenbyphone.com/Plaid"
SUCCESS_RESULT = "0"

ENVELOPE = """<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/" xmlns:tns="CheckProcessing">
  <soap:Body>
    <tns:{action}>
{fields}
    </tns:{action}>
  </soap:Body>
</soap:Envelope>"""


def build_envelope(action: str, fields: Dict[str, str]) -> str:
    lines = [
        f"      <tns:{name}>{escape(str(value))}</tns:{name}>"
        for name, value in fields.items()
    ]
    return ENVELOPE.format(action=action, fields="\n".join(lines))


def parse_result(xml_text: str) -> Dict[str, str]:
    """Flatten every leaf element of the SOAP body into ``{tag: text}``.

    Namespaces are dropped; the first occurrence of a tag wins.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise PaymentProviderError("Green returned a non-XML response") from exc

    values: Dict[str, str] = {}
    for element in root.iter():
        if len(element):
            continue
        tag = element.tag.rsplit("}", 1)[-1]
        values.setdefault(tag, (element.text or "").strip())
    return values


def plaid_iframe_url(merchant_id: str, payor_id: str) -> str:
    if not payor_id or not payor_id.strip():
        raise ValueError("Payor_ID is required")
    if not merchant_id:
        raise ProviderNotConfigured("GREEN_MERCHANT_ID is not set")
    return f"{PLAID_URL}?{urlencode({'client_id': merchant_id, 'customer_id': payor_id})}"


class GreenClient:
    def __init__(
        self,
        api_url: str,
        client_id: str,
        api_password: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._client_id = client_id
        self._api_password = api_password
        self._timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    @classmethod
    def from_settings(cls) -> GreenClient:
        from django.conf import settings

        return cls(
            settings.GREEN_API_URL,
            settings.GREEN_CLIENT_ID,
            settings.GREEN_API_PASSWORD,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_customer_information(self, payor_id: str) -> Dict[str, str]:
        return self._call("GetCustomerInformation", {"Payor_ID": payor_id})

    def one_time_draft_rtv(
        self,
        payor_id: str,
        amount: Decimal,
        memo: str,
        check_date: Optional[date] = None,
    ) -> Dict[str, str]:
        """Create a real-time-verified one-time draft against the payor."""
        result = self._call(
            "CustomerOneTimeDraftRTV",
            {
                "Payor_ID": payor_id,
                "CheckAmount": f"{amount:.2f}",
                "CheckDate": (check_date or date.today()).isoformat(),
                "CheckMemo": memo,
            },
        )
        logger.info(
            "green.draft_created",
            payor_id=payor_id,
            check_id=result.get("Check_ID", ""),
        )
        return result

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _call(self, action: str, params: Dict[str, str]) -> Dict[str, str]:
        if not self._client_id or not self._api_password:
            raise ProviderNotConfigured("GREEN_CLIENT_ID / GREEN_API_PASSWORD are not set")

        fields = {
            "Client_ID": self._client_id,
            "ApiPassword": self._api_password,
            **params,
            "x_delim_data": "",
            "x_delim_char": "",
        }
        headers = {
            "Content-Type": "text/xml; charset=utf-8",
            "SOAPAction": f'"{SOAP_NAMESPACE}/{action}"',
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(
                    self._api_url,
                    content=build_envelope(action, fields).encode("utf-8"),
                    headers=headers,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "green.api_error",
                action=action,
                status_code=exc.response.status_code,
            )
            raise PaymentProviderError(f"Green API error: {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            logger.error("green.request_failed", action=action, error=str(exc))
            raise PaymentProviderError(f"Green request failed: {exc}") from exc

        result = parse_result(response.text)
        if result.get("Result") != SUCCESS_RESULT:
            description = result.get("ResultDescription") or result.get("Result") or "unknown"
            logger.warning("green.call_rejected", action=action, description=description)
            raise PaymentProviderError(f"Green {action} failed: {description}")
        return result
