"""
API views for payments.

Provides:
- PaymentGatewayListView: Configured gateways and the methods they serve
- PaymentInitiateView: Start a payment for a course or an order
- PaymentVerifyView: Verify a payment after the gateway redirect
- PaymentListView / PaymentDetailView: Owner-scoped read access
- PaymentRetryView: New attempt for a FAILED payment
- PaymentRefundView: Administrator refund (full or partial)
- PaymentConfirmView: Administrator confirmation of a bank transfer

Gateway callbacks and webhooks live in payments.webhooks.views.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.helpers import get_client_ip, get_user_agent
from core.permissions import IsAdministrator
from core.responses import error_response, failure_response
from payments.adapters import available_gateways
from payments.exceptions import InvalidGatewayOperationError
from payments.models import Payment
from payments.serializers import (
    GatewaySerializer,
    PaymentInitiateSerializer,
    PaymentInitiationSerializer,
    PaymentListQuerySerializer,
    PaymentRetrySerializer,
    PaymentSerializer,
    PaymentVerificationSerializer,
    PaymentVerifySerializer,
    RefundOutcomeSerializer,
    RefundRequestSerializer,
)
from payments.services import (
    InitiatePaymentParams,
    PaymentOrchestrator,
    VerifyPaymentParams,
)
from payments.state_machines import GatewayName


class PaymentGatewayListView(APIView):
    """
    GET /api/v1/payments/gateways/
        Gateways that are configured right now.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_payment_gateways",
        summary="List payment gateways",
        description="Configured gateways with the payment methods each one serves.",
        responses={200: GatewaySerializer(many=True)},
        tags=["Payments - Checkout"],
    )
    def get(self, request):
        return Response(GatewaySerializer(available_gateways(), many=True).data)


class PaymentInitiateView(APIView):
    """
    Start a payment.

    POST /api/v1/payments/initiate/

    Response:
        201 Created: Payment created; gateway_payload tells the client how to continue
        400 Bad Request: Validation error (amount, coupon, method)
        403 Forbidden: Blocked by the fraud check
        409 Conflict: Already enrolled / stock exhausted
        502 Bad Gateway: Gateway rejected or timed out; the payment is FAILED
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="initiate_payment",
        summary="Initiate payment",
        description=(
            "Prices the course or order (coupon discount included), runs the fraud "
            "check and starts the gateway flow. Zero-amount payments complete "
            "immediately."
        ),
        request=PaymentInitiateSerializer,
        responses={
            201: OpenApiResponse(response=PaymentInitiationSerializer, description="Payment started"),
            400: OpenApiResponse(description="Validation error"),
            403: OpenApiResponse(description="Payment blocked"),
            409: OpenApiResponse(description="Already enrolled or order not payable"),
            502: OpenApiResponse(description="Gateway error"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request):
        serializer = PaymentInitiateSerializer(data=request.data, context={"request": request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        params = InitiatePaymentParams(
            payer=request.user,
            ip_address=get_client_ip(request) or None,
            user_agent=get_user_agent(request),
            **serializer.validated_data,
        )
        result = PaymentOrchestrator.initiate(params)
        if not result.success:
            return failure_response(result)

        return Response(
            PaymentInitiationSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class PaymentVerifyView(APIView):
    """
    POST /api/v1/payments/verify/
        Verify the caller's payment after returning from the gateway.

    Verification is idempotent; an already completed payment is reported
    with ``already_verified``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        request=PaymentVerifySerializer,
        responses={
            200: OpenApiResponse(response=PaymentVerificationSerializer, description="Verified"),
            402: OpenApiResponse(description="Gateway reports the payment failed"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Verification already in progress"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request):
        serializer = PaymentVerifySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        payments = Payment.objects.all()
        if not request.user.is_administrator:
            payments = payments.filter(payer=request.user)
        if data.get("payment_id"):
            payment = payments.filter(pk=data["payment_id"]).first()
        else:
            payment = payments.filter(transaction_id=data["transaction_id"]).first()
        if payment is None:
            return Response(
                {"success": False, "error": "Payment not found", "error_code": "PAYMENT_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        result = PaymentOrchestrator.verify(
            VerifyPaymentParams(
                payment_id=payment.pk,
                gateway_reference=data.get("gateway_reference") or None,
                callback_data=data.get("callback_data") or {},
            )
        )
        if not result.success:
            return failure_response(result)
        return Response(PaymentVerificationSerializer(result.data).data)


class PaymentListView(ListAPIView):
    """
    GET /api/v1/payments/
        The caller's payments, newest first. Optional ``?status=``.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        query = PaymentListQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        return PaymentOrchestrator.list_payments_for_user(
            self.request.user, status=query.validated_data.get("status")
        )

    @extend_schema(
        operation_id="list_payments",
        summary="List my payments",
        parameters=[PaymentListQuerySerializer],
        tags=["Payments - History"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class PaymentDetailView(APIView):
    """GET /api/v1/payments/{payment_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        responses={
            200: PaymentSerializer,
            404: OpenApiResponse(description="Payment not found"),
        },
        tags=["Payments - History"],
    )
    def get(self, request, payment_id):
        result = PaymentOrchestrator.get_payment_for_user(payment_id, request.user)
        if not result.success:
            return failure_response(result)
        return Response(PaymentSerializer(result.data).data)


class PaymentRetryView(APIView):
    """
    POST /api/v1/payments/{payment_id}/retry/
        Start a new gateway attempt for one of the caller's FAILED payments.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="retry_payment",
        summary="Retry failed payment",
        request=PaymentRetrySerializer,
        responses={
            201: OpenApiResponse(response=PaymentInitiationSerializer, description="New attempt started"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Not failed, or retry limit reached"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request, payment_id):
        serializer = PaymentRetrySerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        owned = PaymentOrchestrator.get_payment_for_user(payment_id, request.user)
        if not owned.success:
            return failure_response(owned)

        result = PaymentOrchestrator.retry(
            payment_id,
            method=serializer.validated_data.get("method"),
            ip_address=get_client_ip(request) or None,
            user_agent=get_user_agent(request),
        )
        if not result.success:
            return failure_response(result)
        return Response(
            PaymentInitiationSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Administrator Operations
# =============================================================================


class PaymentRefundView(APIView):
    """
    POST /api/v1/payments/{payment_id}/refund/

    Refunds are bookkeeping: the money is returned outside the platform
    and the refund is recorded against the payment and the ledger.
    """

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        request=RefundRequestSerializer,
        responses={
            200: RefundOutcomeSerializer,
            400: OpenApiResponse(description="Amount exceeds the refundable balance"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Payment is not refundable"),
        },
        tags=["Payments - Admin"],
    )
    def post(self, request, payment_id):
        serializer = RefundRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = PaymentOrchestrator.refund(
            payment_id,
            amount_paisa=serializer.validated_data.get("amount_paisa"),
            reason=serializer.validated_data.get("reason") or None,
            refunded_by=request.user,
        )
        if not result.success:
            return failure_response(result)
        return Response(RefundOutcomeSerializer(result.data).data)


class PaymentConfirmView(APIView):
    """
    POST /api/v1/payments/{payment_id}/confirm/
        Confirm a bank transfer once the money has been seen on the account.
    """

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="confirm_payment",
        summary="Confirm manual payment",
        request=None,
        responses={
            200: PaymentVerificationSerializer,
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Payment is not a pending bank transfer"),
        },
        tags=["Payments - Admin"],
    )
    def post(self, request, payment_id):
        gateway = (
            Payment.objects.filter(pk=payment_id).values_list("gateway", flat=True).first()
        )
        if gateway is not None and gateway != GatewayName.BANK_TRANSFER:
            return error_response(
                InvalidGatewayOperationError(
                    "Only bank transfers can be confirmed manually",
                    details={"payment_id": str(payment_id), "gateway": gateway},
                )
            )

        result = PaymentOrchestrator.verify(
            VerifyPaymentParams(payment_id=payment_id, confirmed_by=request.user)
        )
        if not result.success:
            return failure_response(result)
        return Response(PaymentVerificationSerializer(result.data).data)
