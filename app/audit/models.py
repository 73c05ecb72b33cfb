"""
Audit log model.

Rows are append-only. ``flagged`` is derived from ``risk_score`` at write
time so administrators can filter for entries that need review.
"""

from __future__ import annotations

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from core.model_mixins import ImmutableModelMixin, UUIDPrimaryKeyMixin


class AuditAction(models.TextChoices):
    # Payment lifecycle
    PAYMENT_INITIATED = "payment_initiated", "Payment Initiated"
    PAYMENT_COMPLETED = "payment_completed", "Payment Completed"
    PAYMENT_FAILED = "payment_failed", "Payment Failed"
    PAYMENT_REFUNDED = "payment_refunded", "Payment Refunded"
    PAYMENT_RETRIED = "payment_retried", "Payment Retried"
    PAYMENT_EXPIRED = "payment_expired", "Payment Expired"
    MANUAL_VERIFICATION_REQUIRED = "manual_verification_required", "Manual Verification Required"

    # Security
    FRAUD_DETECTED = "fraud_detected", "Fraud Detected"
    USER_FLAGGED = "user_flagged", "User Flagged"
    INVALID_SIGNATURE = "invalid_signature", "Invalid Signature"

    # Fulfilment failures
    COUPON_APPLY_ERROR = "coupon_apply_error", "Coupon Apply Error"
    ENROLLMENT_ERROR = "enrollment_error", "Enrollment Error"
    INSTRUCTOR_COMMISSION_ERROR = "instructor_commission_error", "Instructor Commission Error"
    AFFILIATE_COMMISSION_ERROR = "affiliate_commission_error", "Affiliate Commission Error"
    ORDER_CONFIRMATION_ERROR = "order_confirmation_error", "Order Confirmation Error"
    LEDGER_RECORD_ERROR = "ledger_record_error", "Ledger Record Error"

    # Request trail
    API_REQUEST = "api_request", "API Request"


class AuditLog(UUIDPrimaryKeyMixin, ImmutableModelMixin, models.Model):
    """
    One audited event.

    Fields:
        user: Acting or affected user (nullable for system events)
        action: AuditAction value
        entity_type / entity_id: The record the event is about
        description: Human-readable summary
        ip_address / user_agent / request_method / request_path: Request context
        metadata: Structured details (error messages, amounts, signals)
        risk_score: 0-100
        flagged: True when risk_score reached the flag threshold
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="When the event was recorded",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="User the event concerns",
    )

    action = models.CharField(
        max_length=50,
        choices=AuditAction.choices,
        db_index=True,
        help_text="What happened",
    )

    entity_type = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
        help_text="Model label of the affected record (e.g. payments.payment)",
    )

    entity_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        db_index=True,
        help_text="Primary key of the affected record",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable summary",
    )

    ip_address = models.GenericIPAddressField(
        null=True,
        blank=True,
        help_text="Client IP address",
    )

    user_agent = models.TextField(
        blank=True,
        default="",
        help_text="Client User-Agent header",
    )

    request_method = models.CharField(
        max_length=10,
        blank=True,
        default="",
        help_text="HTTP method of the originating request",
    )

    request_path = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Path of the originating request",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Structured event details",
    )

    risk_score = models.PositiveSmallIntegerField(
        default=0,
        help_text="Risk score 0-100",
    )

    flagged = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether the entry needs review",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Audit Log"
        verbose_name_plural = "Audit Logs"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["flagged", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"AuditLog({self.action}, {self.entity_type}:{self.entity_id})"
