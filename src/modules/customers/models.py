"""Shipping address model.

Business rules implemented:
- Addresses belong to a registered user or, for guest checkout, to no
  one (``user`` is nullable).
- A registered user's address is deduplicated on (street, city,
  zip_code) at checkout; guests always get a fresh row.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel


class Address(BaseModel):
    """Postal address used as an order's shipping destination."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="addresses",
    )
    name = models.CharField(max_length=255)
    street = models.CharField(max_length=255)
    apartment = models.CharField(max_length=100, blank=True, default="")
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100)
    zip_code = models.CharField(max_length=20)
    country = models.CharField(max_length=2, default="US")
    phone = models.CharField(max_length=30, blank=True, default="")
    is_default = models.BooleanField(default=False)

    class Meta:
        db_table = "addresses"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["user", "street", "city", "zip_code"],
                name="addresses_dedup_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name}, {self.street}, {self.city} {self.zip_code}"
