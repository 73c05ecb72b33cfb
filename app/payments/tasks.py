"""
Celery tasks for the payment engine.

Gateway callbacks are stored as WebhookEvent rows by the views and handed
to ``process_webhook_event``. The remaining tasks run on the beat schedule
in ``config.settings.CELERY_BEAT_SCHEDULE``.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)

# A worker that died mid-event leaves the row in PROCESSING
STUCK_AFTER = timedelta(minutes=30)
RETRY_BATCH_SIZE = 100


def _event_extra(event: WebhookEvent, **extra) -> dict:
    return {
        "webhook_event_id": str(event.id),
        "gateway": event.gateway,
        "event_id": event.event_id,
        **extra,
    }


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Run the gateway handler for one stored callback.

    A handler failure (payment not found, amount mismatch) marks the event
    FAILED for ``retry_failed_webhooks``. An unexpected exception is also
    recorded, then re-raised so Celery retries with backoff.
    """
    from payments.webhooks.handlers import dispatch_webhook

    event = WebhookEvent.objects.filter(id=webhook_event_id).first()
    if event is None:
        logger.error(f"Webhook event {webhook_event_id} not found")
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if event.is_processed:
        logger.info("Webhook event already processed", extra=_event_extra(event))
        return {"status": "already_processed", "webhook_event_id": str(event.id)}

    event.mark_processing()
    event.save()

    try:
        result = dispatch_webhook(event)
    except Exception as e:
        event.mark_failed(f"{type(e).__name__}: {e}")
        event.save()
        logger.exception(
            f"Webhook {event.event_type} raised",
            extra=_event_extra(event, attempt=event.retry_count),
        )
        raise

    if not result.success:
        error = result.error or "Handler returned failure"
        event.mark_failed(error)
        event.save()
        logger.warning(
            f"Webhook {event.event_type} failed: {error}",
            extra=_event_extra(event, error_code=result.error_code),
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(event.id),
            "error": error,
            "error_code": result.error_code,
        }

    event.mark_processed()
    event.save()
    logger.info(f"Webhook {event.event_type} processed", extra=_event_extra(event))
    return {
        "status": "processed",
        "webhook_event_id": str(event.id),
        "event_id": event.event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """Re-queue FAILED events with attempts left (WEBHOOK_MAX_RETRIES), oldest first."""
    events = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued = 0
    for event in events:
        try:
            process_webhook_event.delay(str(event.id))
        except Exception as e:
            # Broker trouble; the event stays FAILED for the next run
            logger.error(f"Could not re-queue webhook: {e}", extra=_event_extra(event))
            continue
        queued += 1

    if queued:
        logger.info(f"Re-queued {queued} failed webhook events")
    return {"queued_count": queued}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """Fail events left in PROCESSING so they are retried."""
    stuck = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=timezone.now() - STUCK_AFTER,
    )

    reset = 0
    for event in stuck:
        logger.warning(
            "Resetting stuck webhook event",
            extra=_event_extra(event, stuck_since=event.updated_at.isoformat()),
        )
        event.mark_failed("Processing timed out - reset for retry")
        event.save()
        reset += 1

    return {"reset_count": reset}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """Delete PROCESSED events older than ``days``; failed ones are kept."""
    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted:
        logger.info(f"Deleted {deleted} webhook events processed before {cutoff:%Y-%m-%d}")
    return {"deleted_count": deleted}


@shared_task
def expire_stale_pending_payments(hours: int | None = None) -> dict:
    from payments.services import PaymentOrchestrator

    return {"expired_count": PaymentOrchestrator.expire_stale_pending(hours)}


@shared_task
def expire_coupons() -> dict:
    from coupons.services import CouponService

    return {"expired_count": CouponService.expire_coupons()}
