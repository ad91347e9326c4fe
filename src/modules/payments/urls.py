"""Payment URL configuration."""

from __future__ import annotations

from django.urls import path

from modules.payments.views import (
    BarterPayCallbackView,
    BarterPayStatusView,
    CheckoutSuccessView,
    CreateCheckoutSessionView,
    GreenPlaidURLView,
    NOWPaymentsIPNView,
    NOWPaymentsStatusView,
    StripeWebhookView,
)

urlpatterns = [
    path("webhooks/stripe", StripeWebhookView.as_view(), name="stripe_webhook"),
    path("webhooks/barterpay", BarterPayCallbackView.as_view(), name="barterpay_webhook"),
    path("webhooks/nowpayments", NOWPaymentsIPNView.as_view(), name="nowpayments_ipn"),
    path(
        "payments/barterpay/status/<str:transaction_index>",
        BarterPayStatusView.as_view(),
        name="barterpay_status",
    ),
    path(
        "payments/nowpayments/status/<str:payment_id>",
        NOWPaymentsStatusView.as_view(),
        name="nowpayments_status",
    ),
    path("payments/green/plaid-url", GreenPlaidURLView.as_view(), name="green_plaid_url"),
    path(
        "create-checkout-session",
        CreateCheckoutSessionView.as_view(),
        name="create_checkout_session",
    ),
    path("checkout-success", CheckoutSuccessView.as_view(), name="checkout_success"),
]
