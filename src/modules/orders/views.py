"""Order API views.

Exposes order services via HTTP using DRF APIViews.
Domain exceptions are caught and translated into appropriate
HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

import structlog
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.generics import GenericAPIView
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.affiliates.services import AffiliateService
from modules.catalog.repositories import VariantDjangoRepository
from modules.customers.exceptions import GuestInfoInvalid
from modules.customers.repositories.django_repository import AddressDjangoRepository
from modules.discounts.exceptions import DiscountCodeNotFound, DiscountCodeRejected
from modules.discounts.repositories.django_repository import (
    DiscountCodeDjangoRepository,
)
from modules.discounts.services import DiscountService
from modules.notifications.emails import OrderNotifier
from modules.orders.confirmation import build_confirmation_service
from modules.orders.constants import GENERIC_PROVIDER_ERROR
from modules.orders.dtos import OrderSummaryDTO
from modules.orders.exceptions import InvalidCheckout, InvalidOrderStatus, OrderNotFound
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    CheckoutSerializer,
    OrderListSerializer,
    OrderLookupSerializer,
    OrderSerializer,
    StatusChangeSerializer,
)
from modules.orders.services import (
    CheckoutService,
    OrderAdminService,
    OrderLookupService,
)
from modules.payments.adapters import build_adapter
from modules.payments.exceptions import PaymentProviderError
from modules.payments.providers import BarterPayClient
from modules.payments.services import PaymentCheckoutService, build_event_service

logger = structlog.get_logger(__name__)


class CreatePaymentOrderView(APIView):
    """POST /api/orders/create-<method>

    One view class per payment method, bound through
    ``as_view(payment_method=...)``.  Guests and signed-in buyers alike;
    a valid JWT only links the order to the account.
    """

    permission_classes = [AllowAny]
    throttle_scope = "order_creation"
    payment_method = ""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repo = OrderDjangoRepository()
        self._service = PaymentCheckoutService(
            checkout_service=CheckoutService(
                order_repository=order_repo,
                variant_repository=VariantDjangoRepository(),
                address_repository=AddressDjangoRepository(),
                discount_service=DiscountService(
                    discount_repository=DiscountCodeDjangoRepository(),
                ),
                affiliate_service=AffiliateService(),
            ),
            event_service=build_event_service(),
            order_repository=order_repo,
            notifier=OrderNotifier(),
        )

    def post(self, request: Request) -> Response:
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = serializer.to_dto(user=request.user)

        try:
            outcome = self._service.checkout(dto, build_adapter(self.payment_method))
        except (
            GuestInfoInvalid,
            InvalidCheckout,
            DiscountCodeNotFound,
            DiscountCodeRejected,
        ) as exc:
            logger.info(
                "checkout.rejected",
                payment_method=self.payment_method,
                error_type=type(exc).__name__,
            )
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentProviderError:
            return Response(
                {"detail": GENERIC_PROVIDER_ERROR},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        return Response(
            {
                "success": True,
                "order": OrderSerializer(outcome.order).data,
                **outcome.start.response,
            },
            status=status.HTTP_201_CREATED,
        )


class AdminOrderListView(GenericAPIView):
    """GET /api/admin/orders

    Staff only.  Newest first; filtering (statuses, method, email, date
    range) is handled by ``OrderFilter``.  Results are paginated.
    """

    permission_classes = [IsAdminUser]
    queryset = Order.objects.select_related("user")
    serializer_class = OrderListSerializer
    pagination_class = PageNumberPagination
    filterset_class = OrderFilter
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    search_fields = ["order_number", "email", "user__email"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]

    def get(self, request: Request) -> Response:
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)


class AdminOrderStatusView(APIView):
    """PATCH /api/admin/orders/<order_id>

    Staff only.  Moves an order to any valid status; the side effects
    depend on the transition (see ``OrderAdminService.change_status``).
    """

    permission_classes = [IsAdminUser]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repo = OrderDjangoRepository()
        self._service = OrderAdminService(
            order_repository=order_repo,
            variant_repository=VariantDjangoRepository(),
            confirmation_service=build_confirmation_service(),
            notifier=OrderNotifier(),
            barterpay_client=BarterPayClient.from_settings(),
        )

    def patch(self, request: Request, order_id: str) -> Response:
        serializer = StatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = self._service.change_status(
                order_id, serializer.to_dto(), user_id=request.user.pk
            )
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except OrderNotFound:
            return Response(
                {"detail": "Order not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response({"success": True, "order": OrderSerializer(order).data})


class OrderLookupView(APIView):
    """GET /api/orders/by-order-number?order_number=&email=

    Guests prove ownership with the order email; signed-in buyers with
    their account.  Anything else is a 404.
    """

    permission_classes = [AllowAny]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderLookupService(order_repository=OrderDjangoRepository())

    def get(self, request: Request) -> Response:
        serializer = OrderLookupSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user_id = request.user.pk if request.user and request.user.is_authenticated else None
        try:
            order = self._service.find_for_buyer(
                data["order_number"], email=data["email"], user_id=user_id
            )
        except OrderNotFound:
            return Response(
                {"detail": "Order not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(OrderSummaryDTO.from_entity(order).model_dump(mode="json"))
