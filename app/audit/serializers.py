"""Serializers for the audit log API."""

from __future__ import annotations

from rest_framework import serializers

from audit.models import AuditAction, AuditLog


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "created_at",
            "user",
            "user_email",
            "action",
            "entity_type",
            "entity_id",
            "description",
            "ip_address",
            "user_agent",
            "request_method",
            "request_path",
            "metadata",
            "risk_score",
            "flagged",
        ]
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    user = serializers.IntegerField(required=False, min_value=1)
    action = serializers.ChoiceField(choices=AuditAction.choices, required=False)
    entity_type = serializers.CharField(required=False, max_length=100)
    entity_id = serializers.CharField(required=False, max_length=64)
    flagged = serializers.BooleanField(required=False, allow_null=True, default=None)
    min_risk = serializers.IntegerField(required=False, min_value=0, max_value=100)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
