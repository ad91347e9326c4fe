"""Discount API views."""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.discounts.exceptions import DiscountCodeNotFound, DiscountCodeRejected
from modules.discounts.repositories.django_repository import (
    DiscountCodeDjangoRepository,
)
from modules.discounts.serializers import ValidateDiscountSerializer
from modules.discounts.services import DiscountService


class ValidateDiscountView(APIView):
    """POST /api/discount/validate

    Public: the checkout page calls it before the buyer is known.
    Does not consume the code.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "discount_validation"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = DiscountService(
            discount_repository=DiscountCodeDjangoRepository(),
        )

    def post(self, request: Request) -> Response:
        serializer = ValidateDiscountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            quote = self._service.quote(data["code"], data["subtotal"])
        except DiscountCodeNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except DiscountCodeRejected as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {
                "code": quote.code,
                "discount_amount": quote.discount_amount,
                "free_shipping": quote.free_shipping,
                "discount_percentage": quote.discount_percentage,
            }
        )
