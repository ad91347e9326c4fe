"""Order URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.orders.constants import PaymentMethod
from modules.orders.views import (
    AdminOrderListView,
    AdminOrderStatusView,
    CreatePaymentOrderView,
    OrderLookupView,
)

CHECKOUT_ROUTES = {
    "stripe": PaymentMethod.CREDIT_CARD,
    "card": PaymentMethod.CARD_LINK,
    "barterpay": PaymentMethod.BARTERPAY,
    "crypto": PaymentMethod.CRYPTO,
    "green": PaymentMethod.GREEN,
    "venmo": PaymentMethod.VENMO,
}

urlpatterns = [
    path(
        f"orders/create-{slug}",
        CreatePaymentOrderView.as_view(payment_method=method),
        name=f"order_create_{slug}",
    )
    for slug, method in CHECKOUT_ROUTES.items()
] + [
    path("orders/by-order-number", OrderLookupView.as_view(), name="order_lookup"),
    path("admin/orders", AdminOrderListView.as_view(), name="admin_order_list"),
    path(
        "admin/orders/<uuid:order_id>",
        AdminOrderStatusView.as_view(),
        name="admin_order_status",
    ),
]
