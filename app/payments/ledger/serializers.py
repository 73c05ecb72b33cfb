"""
Serializers for the finance (ledger) API.

- PeriodQuerySerializer: ``?start=&end=`` filters shared by every report
- TransactionSerializer: Read-only ledger rows
- ExpenseSerializer / ExpenseCreateSerializer / ExpenseRejectSerializer
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from payments.ledger.models import (
    Expense,
    ExpenseCategory,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from payments.state_machines import PaymentMethod


class PeriodQuerySerializer(serializers.Serializer):
    """Half-open reporting period ``[start, end)``; either bound may be omitted."""

    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and start >= end:
            raise serializers.ValidationError("start must be before end.")
        return attrs


class AnalyticsQuerySerializer(PeriodQuerySerializer):
    method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False)


class TrendsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(required=False, min_value=1, max_value=366, default=30)


class TransactionQuerySerializer(PeriodQuerySerializer):
    type = serializers.ChoiceField(choices=TransactionType.choices, required=False)
    category = serializers.ChoiceField(choices=TransactionCategory.choices, required=False)


class TransactionSerializer(serializers.ModelSerializer):
    signed_amount_paisa = serializers.IntegerField(read_only=True)

    class Meta:
        model = Transaction
        fields = [
            "id",
            "type",
            "category",
            "amount_paisa",
            "signed_amount_paisa",
            "currency",
            "description",
            "payment",
            "expense",
            "instructor_earning",
            "affiliate_earning",
            "reference_number",
            "transaction_date",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields


class ExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Expense
        fields = [
            "id",
            "title",
            "description",
            "category",
            "amount_paisa",
            "vendor",
            "invoice_number",
            "status",
            "submitted_by",
            "approved_by",
            "approved_at",
            "rejection_reason",
            "paid_date",
            "created_at",
        ]
        read_only_fields = fields


class ExpenseCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    amount_paisa = serializers.IntegerField(min_value=1)
    category = serializers.ChoiceField(choices=ExpenseCategory.choices, default=ExpenseCategory.OTHER)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    vendor = serializers.CharField(required=False, allow_blank=True, max_length=200, default="")
    invoice_number = serializers.CharField(
        required=False, allow_blank=True, max_length=100, default=""
    )


class ExpenseRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class ExpensePaySerializer(serializers.Serializer):
    paid_date = serializers.DateTimeField(required=False)
