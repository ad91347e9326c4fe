"""Product and ProductVariant models.

Business rules implemented:
- SKU is unique and normalised to uppercase.
- Price must be greater than zero.
- ``ProductVariant.stock_count`` is the only stock ledger.  It is
  decremented once per non-backordered order item when payment is
  confirmed and restored when a processing order is cancelled.
- Stock may go negative: overselling is recorded, not prevented, since
  the customer has already paid when the decrement runs.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel

logger = structlog.get_logger(__name__)


class Product(BaseModel):
    """Catalog product; sellable units are its variants."""

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "products"
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class ProductVariant(BaseModel):
    """A purchasable size/strength of a product with its own stock."""

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="variants",
    )
    sku = models.CharField(max_length=64, unique=True)
    size = models.CharField(max_length=64, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock_count = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "product_variants"
        ordering = ["product__name", "size"]
        indexes = [
            models.Index(fields=["product", "is_active"], name="variants_product_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="variants_price_positive",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    def is_in_stock(self, quantity: int) -> bool:
        return self.stock_count >= quantity

    def __str__(self) -> str:
        return f"{self.sku} ({self.size})" if self.size else self.sku
