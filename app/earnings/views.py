"""
API views for commissions.

Provides:
- MyEarningsSummaryView: Instructor/affiliate aggregates for the caller
- MyEarningListView: The caller's earning rows
- AffiliateRegisterView: Become an affiliate (pending approval)
- PayoutView: Administrator batch payout
- CommissionRateView: Administrator rate change for one payee
- AffiliateStatusView: Administrator approve/suspend
- EarningCancelView: Administrator cancellation of one earning
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsAdministrator
from earnings.models import Affiliate, AffiliateEarning, Instructor, InstructorEarning
from earnings.serializers import (
    AffiliateSerializer,
    CommissionRateSerializer,
    EarningCancelSerializer,
    EarningQuerySerializer,
    EarningSerializer,
    PayoutRequestSerializer,
    PayoutSummarySerializer,
)
from earnings.services import (
    AffiliateCommissionService,
    AffiliateService,
    InstructorCommissionService,
)

COMMISSION_ENGINES = {
    "instructor": InstructorCommissionService,
    "affiliate": AffiliateCommissionService,
}


class MyEarningsSummaryView(APIView):
    """GET /api/v1/earnings/me/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_my_earnings_summary",
        summary="My commission summary",
        responses={200: OpenApiResponse(description="Instructor and affiliate aggregates (null when not a payee)")},
        tags=["Earnings"],
    )
    def get(self, request):
        instructor = Instructor.objects.filter(user=request.user).first()
        affiliate = Affiliate.objects.filter(user=request.user).first()

        data = {"instructor": None, "affiliate": None}
        if instructor is not None:
            data["instructor"] = InstructorCommissionService.summary(instructor)
        if affiliate is not None:
            data["affiliate"] = {
                **AffiliateCommissionService.summary(affiliate),
                "affiliate_code": affiliate.affiliate_code,
                "status": affiliate.status,
            }
        return Response(data)


class MyEarningListView(APIView):
    """GET /api/v1/earnings/me/earnings/?role=instructor|affiliate"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_my_earnings",
        summary="My earnings",
        parameters=[EarningQuerySerializer],
        responses={200: EarningSerializer(many=True)},
        tags=["Earnings"],
    )
    def get(self, request):
        query = EarningQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        if query.validated_data["role"] == "affiliate":
            earnings = AffiliateEarning.objects.filter(affiliate__user=request.user)
        else:
            earnings = InstructorEarning.objects.filter(instructor__user=request.user)
        earnings = earnings.select_related("course").order_by("-created_at")
        return Response(EarningSerializer(earnings, many=True).data)


class AffiliateRegisterView(APIView):
    """POST /api/v1/earnings/affiliates/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="register_affiliate",
        summary="Register as affiliate",
        request=None,
        responses={
            201: AffiliateSerializer,
            200: OpenApiResponse(response=AffiliateSerializer, description="Already registered"),
        },
        tags=["Earnings"],
    )
    def post(self, request):
        existed = Affiliate.objects.filter(user=request.user).exists()
        affiliate = AffiliateService.register(request.user)
        return Response(
            AffiliateSerializer(affiliate).data,
            status=status.HTTP_200_OK if existed else status.HTTP_201_CREATED,
        )


# =============================================================================
# Administrator Operations
# =============================================================================


class PayoutView(APIView):
    """
    POST /api/v1/earnings/payouts/

    Marks PENDING earnings paid. Earnings in any other state are skipped,
    so repeating a request is harmless.
    """

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="create_payout",
        summary="Pay out earnings",
        request=PayoutRequestSerializer,
        responses={200: PayoutSummarySerializer},
        tags=["Earnings - Admin"],
    )
    def post(self, request):
        serializer = PayoutRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        summary = COMMISSION_ENGINES[data["role"]].mark_paid(
            data["earning_ids"],
            paid_by=request.user,
            payout_method=data["payout_method"],
            reference=data["reference"],
        )
        return Response(PayoutSummarySerializer(summary).data)


class CommissionRateView(APIView):
    """POST /api/v1/earnings/{role}/{payee_id}/rate/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="update_commission_rate",
        summary="Update commission rate",
        description="Applies to future accruals only; existing earnings keep their rate.",
        request=CommissionRateSerializer,
        responses={200: OpenApiResponse(description="Updated payee summary")},
        tags=["Earnings - Admin"],
    )
    def post(self, request, role, payee_id):
        engine = COMMISSION_ENGINES.get(role)
        if engine is None:
            return Response({"error": f"Unknown role: {role}"}, status=status.HTTP_404_NOT_FOUND)

        serializer = CommissionRateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        payee = engine.update_commission_rate(
            engine.get_payee(payee_id), serializer.validated_data["commission_rate"]
        )
        return Response(engine.summary(payee))


class AffiliateStatusView(APIView):
    """POST /api/v1/earnings/affiliates/{affiliate_id}/{action}/ (approve | suspend)"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="update_affiliate_status",
        summary="Approve or suspend affiliate",
        request=None,
        responses={200: AffiliateSerializer, 404: OpenApiResponse(description="Affiliate not found")},
        tags=["Earnings - Admin"],
    )
    def post(self, request, affiliate_id, action):
        affiliate = AffiliateCommissionService.get_payee(affiliate_id)
        if action == "approve":
            affiliate = AffiliateService.approve(affiliate)
        elif action == "suspend":
            affiliate = AffiliateService.suspend(affiliate)
        else:
            return Response({"error": f"Unknown action: {action}"}, status=status.HTTP_404_NOT_FOUND)
        return Response(AffiliateSerializer(affiliate).data)


class EarningCancelView(APIView):
    """POST /api/v1/earnings/{role}/earnings/{earning_id}/cancel/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="cancel_earning",
        summary="Cancel earning",
        request=EarningCancelSerializer,
        responses={
            200: EarningSerializer,
            404: OpenApiResponse(description="Earning not found"),
            409: OpenApiResponse(description="Earning already cancelled"),
        },
        tags=["Earnings - Admin"],
    )
    def post(self, request, role, earning_id):
        engine = COMMISSION_ENGINES.get(role)
        if engine is None:
            return Response({"error": f"Unknown role: {role}"}, status=status.HTTP_404_NOT_FOUND)

        serializer = EarningCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        earning = engine.cancel(earning_id, reason=serializer.validated_data["reason"])
        return Response(EarningSerializer(earning).data)
