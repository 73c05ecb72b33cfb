"""
Stored gateway callbacks.

Every eSewa redirect, Khalti return and Stripe webhook becomes one row,
keyed by (gateway, event_id), before any payment is touched. A repeated
delivery finds the existing row; once it is PROCESSED it is acknowledged
without running the handler again.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import GatewayName, WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    One delivery from a gateway.

    ``event_id`` is what the gateway uses to identify the delivery: the
    eSewa transaction_uuid, the Khalti pidx or the Stripe ``evt_`` id.
    ``retry_count`` counts processing attempts, not deliveries.
    """

    gateway = models.CharField(max_length=20, choices=GatewayName.choices, db_index=True)
    event_id = models.CharField(max_length=255)
    event_type = models.CharField(max_length=100, db_index=True)
    payload = models.JSONField()

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["gateway", "event_id"], name="unique_gateway_event"),
        ]
        indexes = [
            # retry_failed_webhooks and cleanup_stuck_webhooks
            models.Index(fields=["status", "retry_count"]),
            models.Index(fields=["status", "updated_at"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.gateway}:{self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        return self.is_failed and self.retry_count < settings.WEBHOOK_MAX_RETRIES

    # The mark_* helpers change the instance only; callers save.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
