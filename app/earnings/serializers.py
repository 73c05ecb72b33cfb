"""
Serializers for payee dashboards and payout administration.
"""

from __future__ import annotations

from rest_framework import serializers

from earnings.models import Affiliate

PAYEE_ROLES = (("instructor", "Instructor"), ("affiliate", "Affiliate"))


class AffiliateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Affiliate
        fields = [
            "id",
            "affiliate_code",
            "status",
            "commission_rate",
            "approved_at",
            "total_earnings_paisa",
            "pending_earnings_paisa",
            "paid_earnings_paisa",
            "created_at",
        ]
        read_only_fields = fields


class EarningSerializer(serializers.Serializer):
    """Shared read shape for instructor and affiliate earnings."""

    id = serializers.UUIDField()
    course = serializers.UUIDField(source="course_id")
    course_title = serializers.CharField(source="course.title")
    payment = serializers.UUIDField(source="payment_id", allow_null=True)
    amount_paisa = serializers.IntegerField()
    commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    status = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    payout_method = serializers.CharField()
    payout_reference = serializers.CharField()
    cancelled_at = serializers.DateTimeField(allow_null=True)
    created_at = serializers.DateTimeField()


class EarningQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=PAYEE_ROLES, default="instructor")


class PayoutRequestSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=PAYEE_ROLES)
    earning_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
    payout_method = serializers.CharField(required=False, allow_blank=True, max_length=50, default="")
    reference = serializers.CharField(required=False, allow_blank=True, max_length=100, default="")


class PayoutSummarySerializer(serializers.Serializer):
    count = serializers.IntegerField()
    total_paisa = serializers.IntegerField()
    payee_count = serializers.IntegerField()


class CommissionRateSerializer(serializers.Serializer):
    commission_rate = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100
    )


class EarningCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")

