"""
Callback and webhook endpoints for payment gateways.

Every view:
1. Verifies what the gateway lets us verify
2. Creates/retrieves the WebhookEvent record (idempotent per gateway)
3. Queues the event for async processing
4. Returns immediately

eSewa and Khalti send the payer's browser back to us, so those views
answer with a redirect to the frontend status page. Stripe calls the
webhook server-to-server and gets a plain 200.

Usage:
    # In urls.py
    from payments.webhooks.views import esewa_callback, khalti_callback, stripe_webhook

    urlpatterns = [
        path("webhooks/esewa/", esewa_callback, name="esewa_callback"),
        path("webhooks/khalti/", khalti_callback, name="khalti_callback"),
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpRequest, HttpResponse, HttpResponseRedirect
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from audit.models import AuditAction
from audit.services import AuditService
from payments.adapters import EsewaAdapter, StripeAdapter
from payments.exceptions import InvalidSignatureError
from payments.models import WebhookEvent
from payments.state_machines import GatewayName, WebhookEventStatus
from payments.webhooks.handlers import ESEWA_CALLBACK, KHALTI_RETURN

logger = logging.getLogger(__name__)


def store_and_queue(
    gateway: str, event_id: str, event_type: str, payload: dict[str, Any]
) -> WebhookEvent:
    """
    Record the event once per (gateway, event_id) and queue processing.

    Already processed events are not queued again. Queue failures are
    logged; retry_failed_webhooks and the gateway's own redelivery pick
    the event up later.
    """
    webhook_event, created = WebhookEvent.objects.get_or_create(
        gateway=gateway,
        event_id=event_id,
        defaults={
            "event_type": event_type,
            "payload": payload,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created:
        if webhook_event.is_processed:
            logger.info(
                "Webhook already processed",
                extra={"gateway": gateway, "event_id": event_id},
            )
            return webhook_event

        logger.info(
            f"Webhook already exists with status: {webhook_event.status}",
            extra={"gateway": gateway, "event_id": event_id},
        )

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={
                "gateway": gateway,
                "event_id": event_id,
                "webhook_event_id": str(webhook_event.id),
            },
        )
    except Exception as e:
        logger.error(
            f"Failed to queue webhook: {type(e).__name__}",
            extra={"gateway": gateway, "event_id": event_id},
            exc_info=True,
        )

    return webhook_event


def frontend_redirect(path: str, **params: Any) -> HttpResponseRedirect:
    query = urlencode({key: value for key, value in params.items() if value})
    url = f"{settings.FRONTEND_URL.rstrip('/')}{path}"
    return HttpResponseRedirect(f"{url}?{query}" if query else url)


def _reject_signature(request: HttpRequest, gateway: str, reason: str) -> None:
    logger.warning(
        f"{gateway} callback rejected: {reason}",
        extra={"gateway": gateway},
    )
    AuditService.record(
        AuditAction.INVALID_SIGNATURE,
        description=f"{gateway} callback rejected: {reason}",
        request=request,
        metadata={"gateway": gateway},
        risk_score=80,
    )


# =============================================================================
# eSewa
# =============================================================================


@csrf_exempt
@require_GET
def esewa_callback(request: HttpRequest) -> HttpResponse:
    """
    eSewa success redirect: ``?data=<base64 JSON>``.

    The decoded payload carries transaction_uuid, total_amount, status,
    signed_field_names and an HMAC-SHA256 signature over those fields.
    """
    data = request.GET.get("data", "")
    if not data:
        return HttpResponse("Missing data", status=400)

    try:
        payload = EsewaAdapter.decode_callback(data)
    except InvalidSignatureError as e:
        _reject_signature(request, GatewayName.ESEWA, e.message)
        return HttpResponse("Invalid payload", status=400)

    if not EsewaAdapter.verify_callback_signature(payload):
        _reject_signature(request, GatewayName.ESEWA, "signature mismatch")
        return HttpResponse("Invalid signature", status=400)

    transaction_uuid = payload.get("transaction_uuid")
    if not transaction_uuid:
        return HttpResponse("Invalid payload", status=400)

    logger.info(
        "Received eSewa callback",
        extra={"transaction_id": transaction_uuid, "gateway_status": payload.get("status")},
    )
    store_and_queue(GatewayName.ESEWA, str(transaction_uuid), ESEWA_CALLBACK, payload)
    return frontend_redirect("/payment/processing", transaction_id=transaction_uuid)


# =============================================================================
# Khalti
# =============================================================================


@csrf_exempt
@require_GET
def khalti_callback(request: HttpRequest) -> HttpResponse:
    """Khalti return URL: ``?pidx=...&status=...&purchase_order_id=...``."""
    payload = request.GET.dict()
    pidx = payload.get("pidx")
    if not pidx:
        return HttpResponse("Missing pidx", status=400)

    logger.info(
        "Received Khalti return",
        extra={"pidx": pidx, "gateway_status": payload.get("status")},
    )
    store_and_queue(GatewayName.KHALTI, pidx, KHALTI_RETURN, payload)
    return frontend_redirect(
        "/payment/processing", transaction_id=payload.get("purchase_order_id")
    )


# =============================================================================
# Stripe
# =============================================================================


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Stripe webhook events.

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Missing or invalid signature, or malformed event
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.construct_event(request.body, signature)
    except InvalidSignatureError as e:
        _reject_signature(request, GatewayName.STRIPE, e.message)
        return HttpResponse("Invalid signature", status=400)

    event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"event_id": event_id, "event_type": event_type},
    )

    webhook_event = store_and_queue(GatewayName.STRIPE, event_id, event_type, event_data)
    if webhook_event.is_processed:
        return HttpResponse("Already processed", status=200)
    return HttpResponse("Accepted", status=200)
