"""Payment provider exceptions.

Raised by provider clients and payment services; views translate them
into HTTP responses.
"""

from __future__ import annotations


class PaymentProviderError(Exception):
    """A provider call failed or returned an error result.

    The message is for logs only; customers see the generic support text.
    """


class ProviderNotConfigured(Exception):
    """A required provider credential is missing from settings."""


class InvalidSignature(Exception):
    """A webhook/callback signature is missing or does not verify."""
