"""Buyer contact validation shared by every checkout entry point.

All checks run before any order row is written, so a rejected buyer
never leaves a half-created order behind.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from modules.customers.exceptions import GuestInfoInvalid

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class GuestContact(BaseModel):
    """Validated buyer identity.

    Validates:
    - ``email`` is trimmed and matched against ``EMAIL_PATTERN``.
    - ``name`` has at least a first and a last name; runs of whitespace
      collapse to one space.

    ``email`` is declared first so its error is the one reported when
    both are wrong.
    """

    model_config = ConfigDict(frozen=True)

    email: str
    name: str

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> str:
        if not v or not isinstance(v, str):
            raise ValueError("Email is required")
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("Email cannot be empty")
        if not EMAIL_PATTERN.match(trimmed):
            raise ValueError("Please enter a valid email address")
        return trimmed

    @field_validator("name", mode="before")
    @classmethod
    def check_name(cls, v: Any) -> str:
        if not v or not isinstance(v, str):
            raise ValueError("Name is required")
        parts = v.split()
        if not parts:
            raise ValueError("Name cannot be empty")
        if len(parts) < 2:
            raise ValueError("Please enter your full name (first and last name)")
        return " ".join(parts)

    @property
    def first_name(self) -> str:
        return self.name.split(" ", 1)[0]

    @property
    def last_name(self) -> str:
        """Every part after the first: ``"Mary Ann van Dyke"`` gives ``"Ann van Dyke"``."""
        return self.name.split(" ", 1)[1]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


def validate_guest_order_info(
    shipping_name: Optional[str],
    shipping_email: Optional[str],
    account_email: Optional[str] = None,
) -> GuestContact:
    """Validate the buyer for an order.

    A logged-in buyer's account email takes precedence over whatever was
    typed into the shipping form; guests must supply a valid one.

    Raises:
        GuestInfoInvalid: with the message of the first failing field.
    """
    try:
        return GuestContact(
            email=account_email if account_email else shipping_email,
            name=shipping_name,
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        message = str(first.get("ctx", {}).get("error", first["msg"]))
        raise GuestInfoInvalid(message) from exc
