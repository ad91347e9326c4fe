"""Shared-secret authentication for partner (server-to-server) calls.

The partner storefront authenticates with the value of
``STRIPE_CREATE_SESSION_SECRET`` sent either as
``Authorization: Bearer <secret>`` or in one of the legacy headers
``X-Internal-Secret`` / ``X-Website-B-Secret``.

Security decisions
------------------
* **Fail Closed**: an unset secret rejects every request.
* Constant-time comparison (``hmac.compare_digest``).
"""

import hmac

import structlog
from django.conf import settings
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

logger = structlog.get_logger(__name__)

LEGACY_SECRET_HEADERS = ("HTTP_X_INTERNAL_SECRET", "HTTP_X_WEBSITE_B_SECRET")


class PartnerClient:
    """Principal attached to requests authenticated with the partner secret."""

    is_authenticated = True
    is_active = True
    is_staff = False

    def __str__(self) -> str:  # pragma: no cover
        return "partner"


class PartnerSecretAuthentication(BaseAuthentication):
    """DRF authentication class validating the partner shared secret."""

    keyword = "Bearer"

    # ------------------------------------------------------------------
    # Public API (DRF contract)
    # ------------------------------------------------------------------

    def authenticate(self, request):
        """Return ``(PartnerClient, secret)`` or ``None`` (no credentials)."""
        provided = self._extract_secret(request)
        if not provided:
            return None

        expected = getattr(settings, "STRIPE_CREATE_SESSION_SECRET", "") or ""
        if not expected:
            logger.error("partner_auth.secret_not_configured")
            raise AuthenticationFailed("Unauthorized")

        if not hmac.compare_digest(provided.encode(), expected.encode()):
            logger.warning("partner_auth.invalid_secret")
            raise AuthenticationFailed("Unauthorized")

        return (PartnerClient(), provided)

    def authenticate_header(self, request):
        """Value for the ``WWW-Authenticate`` response header on 401."""
        return f'{self.keyword} realm="api"'

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _extract_secret(self, request) -> str:
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if header:
            parts = header.split()
            if len(parts) != 2 or parts[0].lower() != self.keyword.lower():
                raise AuthenticationFailed("Invalid Authorization header format.")
            return parts[1]
        for meta_key in LEGACY_SECRET_HEADERS:
            value = request.META.get(meta_key, "")
            if value:
                return value
        return ""
