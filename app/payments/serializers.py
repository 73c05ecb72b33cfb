"""
DRF serializers for the payments API.

This module provides serializers for:
- Payment display (owner and admin views)
- Initiate / verify / retry / refund requests
- Orchestrator results (initiation, verification, refund)

Related files:
    - services/payment_orchestrator.py: Operations behind these payloads
    - views.py: Payment API views

Usage:
    serializer = PaymentInitiateSerializer(data=request.data, context={"request": request})
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from typing import Any

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from commerce.models import Order, OrderStatus
from learning.models import Course
from payments.models import Payment
from payments.state_machines import GatewayName, PaymentMethod, PaymentStatus

# =============================================================================
# Read Serializers
# =============================================================================


class PaymentSerializer(serializers.ModelSerializer):
    """
    Read-only payment representation.

    Amounts are integer paisa. ``refundable_paisa`` is what an
    administrator could still refund.
    """

    course_title = serializers.CharField(source="course.title", read_only=True, default=None)
    order_number = serializers.CharField(source="order.order_number", read_only=True, default=None)
    refundable_paisa = serializers.IntegerField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "transaction_id",
            "status",
            "method",
            "gateway",
            "currency",
            "amount_paisa",
            "discount_paisa",
            "final_amount_paisa",
            "refunded_paisa",
            "refundable_paisa",
            "course",
            "course_title",
            "order",
            "order_number",
            "retry_count",
            "max_retries",
            "failure_reason",
            "completed_at",
            "failed_at",
            "refunded_at",
            "created_at",
        ]
        read_only_fields = fields


class PaymentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PaymentStatus.choices, required=False)


# =============================================================================
# Initiate
# =============================================================================


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Course via eSewa",
            value={
                "method": "wallet",
                "course_id": "9f1c1f7e-2b0e-4c61-9a57-0e7f5a1f3c2d",
                "coupon_code": "WELCOME10",
            },
            request_only=True,
        ),
        OpenApiExample(
            "Order via card",
            value={
                "method": "visa_card",
                "order_id": "0c3e9c2a-5d55-4b8e-8a3f-6d2b8f1e7a10",
            },
            request_only=True,
        ),
    ]
)
class PaymentInitiateSerializer(serializers.Serializer):
    """
    Start a payment for exactly one course or one pending order.

    The course must be published; the order must belong to the caller
    and still be pending.
    """

    method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        help_text="Payment method (wallet, mobile_banking, visa_card, mastercard)",
    )
    course_id = serializers.UUIDField(required=False, help_text="Course to buy")
    order_id = serializers.UUIDField(required=False, help_text="Pending order to pay")
    amount_paisa = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Course price override in paisa; ignored for orders",
    )
    coupon_code = serializers.CharField(
        required=False, allow_blank=True, max_length=50, help_text="Coupon for course payments"
    )
    affiliate_code = serializers.CharField(
        required=False, allow_blank=True, max_length=20, help_text="Referral code"
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        course_id = attrs.pop("course_id", None)
        order_id = attrs.pop("order_id", None)
        if (course_id is None) == (order_id is None):
            raise serializers.ValidationError("Provide exactly one of course_id or order_id.")

        if course_id is not None:
            course = Course.objects.filter(pk=course_id, is_published=True).first()
            if course is None:
                raise serializers.ValidationError({"course_id": "Course not found."})
            attrs["course"] = course
        else:
            user = self.context["request"].user
            order = Order.objects.filter(pk=order_id, user=user).first()
            if order is None:
                raise serializers.ValidationError({"order_id": "Order not found."})
            if order.status != OrderStatus.PENDING:
                raise serializers.ValidationError({"order_id": "Order is not awaiting payment."})
            attrs["order"] = order

        for key in ("coupon_code", "affiliate_code"):
            if not attrs.get(key):
                attrs.pop(key, None)
        return attrs


class PaymentInitiationSerializer(serializers.Serializer):
    """Output of initiate/retry."""

    payment = PaymentSerializer()
    gateway_payload = serializers.DictField(
        help_text="What the client needs to continue at the gateway (form fields, redirect URL, client secret)"
    )
    risk = serializers.DictField(allow_null=True)

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "payment": PaymentSerializer(instance.payment).data,
            "gateway_payload": instance.gateway_payload,
            "risk": instance.risk.to_dict() if instance.risk else None,
        }


# =============================================================================
# Verify
# =============================================================================


class PaymentVerifySerializer(serializers.Serializer):
    """
    Client-side verification after returning from the gateway.

    One of payment_id or transaction_id identifies the payment.
    """

    payment_id = serializers.UUIDField(required=False)
    transaction_id = serializers.CharField(required=False, max_length=64)
    gateway_reference = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=255,
        help_text="Gateway-side id (Khalti pidx, Stripe PaymentIntent id)",
    )
    callback_data = serializers.DictField(
        required=False,
        default=dict,
        help_text="Decoded callback payload, checked against its signature",
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if not (attrs.get("payment_id") or attrs.get("transaction_id")):
            raise serializers.ValidationError("payment_id or transaction_id is required.")
        return attrs


class PaymentVerificationSerializer(serializers.Serializer):
    """Output of verify."""

    payment = PaymentSerializer()
    outcome = serializers.CharField()
    already_verified = serializers.BooleanField()
    message = serializers.CharField(allow_blank=True)
    warnings = serializers.ListField(child=serializers.CharField())
    fulfilment = serializers.DictField(allow_null=True)

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "payment": PaymentSerializer(instance.payment).data,
            "outcome": instance.outcome,
            "already_verified": instance.already_verified,
            "message": instance.message,
            "warnings": instance.warnings,
            "fulfilment": instance.fulfilment.to_dict() if instance.fulfilment else None,
        }


# =============================================================================
# Retry / Refund
# =============================================================================


class PaymentRetrySerializer(serializers.Serializer):
    method = serializers.ChoiceField(
        choices=PaymentMethod.choices,
        required=False,
        help_text="Switch to another method for the new attempt",
    )


class RefundRequestSerializer(serializers.Serializer):
    amount_paisa = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Partial refund amount; omit to refund the remaining balance",
    )
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class RefundOutcomeSerializer(serializers.Serializer):
    payment = PaymentSerializer()
    amount_paisa = serializers.IntegerField()
    refundable_paisa = serializers.IntegerField()
    sequence = serializers.IntegerField()

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "payment": PaymentSerializer(instance.payment).data,
            "amount_paisa": instance.amount_paisa,
            "refundable_paisa": instance.refundable_paisa,
            "sequence": instance.sequence,
        }


class GatewaySerializer(serializers.Serializer):
    id = serializers.ChoiceField(choices=GatewayName.choices)
    name = serializers.CharField()
    methods = serializers.ListField(child=serializers.CharField())
    currencies = serializers.ListField(child=serializers.CharField())
    requires_manual_verification = serializers.BooleanField()
