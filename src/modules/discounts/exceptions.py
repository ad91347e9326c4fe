"""Discount domain exceptions.

Raised by ``DiscountService``; the views translate them into
404 (unknown code) and 400 (code exists but cannot be applied).
"""

from __future__ import annotations


class DiscountCodeNotFound(Exception):
    """No discount code matches the normalised input."""


class DiscountCodeRejected(Exception):
    """The code exists but is inactive, expired, below minimum or used up.

    The message is customer-facing and returned verbatim.
    """
