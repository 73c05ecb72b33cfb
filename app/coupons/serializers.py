"""Serializers for coupon validation."""

from __future__ import annotations

from typing import Any

from rest_framework import serializers


class CouponValidateSerializer(serializers.Serializer):
    """
    Preview a coupon against an amount and the items it would apply to.

    Validation here is advisory; the coupon is checked again when the
    payment is created and when it completes.
    """

    code = serializers.CharField(max_length=50)
    amount_paisa = serializers.IntegerField(min_value=1)
    course_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    product_ids = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)


class CouponValidationSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    code = serializers.CharField(allow_null=True)
    amount_paisa = serializers.IntegerField()
    discount_paisa = serializers.IntegerField()
    final_amount_paisa = serializers.IntegerField()
    reason = serializers.CharField(allow_null=True)
    error_code = serializers.CharField(allow_null=True)

    def to_representation(self, instance) -> dict[str, Any]:
        return {
            "valid": instance.valid,
            "code": instance.coupon.code if instance.coupon else None,
            "amount_paisa": instance.amount_paisa,
            "discount_paisa": instance.discount_paisa,
            "final_amount_paisa": instance.final_amount_paisa,
            "reason": instance.reason,
            "error_code": instance.error_code,
        }
