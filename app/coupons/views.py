"""
API views for coupons.

- CouponValidateView: Preview the discount a code would give
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from coupons.serializers import CouponValidateSerializer, CouponValidationSerializer
from coupons.services import CouponService


class CouponValidateView(APIView):
    """
    POST /api/v1/coupons/validate/

    Always answers 200 for a well-formed request; ``valid`` and
    ``error_code`` say whether the coupon would apply.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="validate_coupon",
        summary="Validate coupon",
        request=CouponValidateSerializer,
        responses={200: CouponValidationSerializer},
        tags=["Coupons"],
    )
    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        validation = CouponService.validate(
            data["code"],
            request.user,
            data["amount_paisa"],
            course_ids=data["course_ids"],
            product_ids=data["product_ids"],
        )
        return Response(CouponValidationSerializer(validation).data)
