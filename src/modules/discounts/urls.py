"""Discount URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.discounts.views import ValidateDiscountView

urlpatterns = [
    path("discount/validate", ValidateDiscountView.as_view(), name="discount_validate"),
]
