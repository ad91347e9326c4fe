"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """The requested status is not one of ``OrderStatus`` or misses a prerequisite."""


class InvalidCheckout(Exception):
    """The checkout request cannot produce an order (400).

    Covers unknown/inactive variants, missing address fields, an
    out-of-range amount or a missing provider prerequisite.
    """
