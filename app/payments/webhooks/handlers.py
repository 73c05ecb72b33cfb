"""
Webhook event handlers for gateway callbacks.

This module provides a handler registry keyed by (gateway, event_type)
and one handler per callback shape. Every handler maps the gateway's
native payload onto VerifyPaymentParams and lets the orchestrator do
the rest, so a callback and a client-initiated verify take the same path.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler(GatewayName.KHALTI, "payment.return")
    def handle_khalti_return(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.services import ServiceResult

from payments.models import WebhookEvent
from payments.services import PaymentOrchestrator, VerifyPaymentParams
from payments.state_machines import GatewayName

logger = logging.getLogger(__name__)


ESEWA_CALLBACK = "payment.callback"
KHALTI_RETURN = "payment.return"

# Verify outcomes that settle the event even though the payment did not
# complete; retrying the event would not change them.
SETTLED_ERROR_CODES = frozenset(
    {
        "PAYMENT_FAILED",
        "GATEWAY_ERROR",
        "INVALID_STATE_TRANSITION",
    }
)


# =============================================================================
# Handler Registry
# =============================================================================


WebhookHandler = Callable[[WebhookEvent], ServiceResult]

# Maps (gateway, event_type) to handler functions
WEBHOOK_HANDLERS: dict[tuple[str, str], WebhookHandler] = {}


def register_handler(gateway: str, *event_types: str) -> Callable:
    """
    Decorator to register a handler for one or more event types of a gateway.

    Usage:
        @register_handler(GatewayName.STRIPE, "payment_intent.succeeded")
        def handle_payment_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: WebhookHandler) -> WebhookHandler:
        for event_type in event_types:
            WEBHOOK_HANDLERS[(gateway, event_type)] = func
            logger.debug(f"Registered webhook handler for {gateway}:{event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types are logged and reported as success so they are
    not retried forever.
    """
    handler = WEBHOOK_HANDLERS.get((webhook_event.gateway, webhook_event.event_type))

    if not handler:
        logger.info(
            f"No handler registered for {webhook_event.gateway}:{webhook_event.event_type}",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.gateway}:{webhook_event.event_type} to handler",
        extra={"event_id": webhook_event.event_id},
    )
    return handler(webhook_event)


def _settle(result: ServiceResult, webhook_event: WebhookEvent) -> ServiceResult:
    """Turn a terminal verify failure into a processed event."""
    if result.success or result.error_code not in SETTLED_ERROR_CODES:
        return result

    logger.info(
        f"Callback settled payment as {result.error_code}",
        extra={
            "event_id": webhook_event.event_id,
            "gateway": webhook_event.gateway,
            "error": result.error,
        },
    )
    return ServiceResult.success({"error_code": result.error_code, "error": result.error})


# =============================================================================
# eSewa
# =============================================================================


@register_handler(GatewayName.ESEWA, ESEWA_CALLBACK)
def handle_esewa_callback(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle the decoded ``data`` payload of an eSewa success redirect.

    The signature is checked again by the orchestrator before the status
    API is queried.
    """
    payload: dict[str, Any] = webhook_event.payload
    transaction_uuid = payload.get("transaction_uuid")
    if not transaction_uuid:
        return ServiceResult.failure(
            "eSewa callback has no transaction_uuid",
            error_code="INVALID_CALLBACK",
        )

    result = PaymentOrchestrator.verify(
        VerifyPaymentParams(
            transaction_id=transaction_uuid,
            gateway=GatewayName.ESEWA,
            callback_data=payload,
        )
    )
    return _settle(result, webhook_event)


# =============================================================================
# Khalti
# =============================================================================


@register_handler(GatewayName.KHALTI, KHALTI_RETURN)
def handle_khalti_return(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a Khalti return redirect (pidx, status, purchase_order_id).

    The redirect is unsigned; the lookup API call made during verify is
    what decides the outcome.
    """
    payload: dict[str, Any] = webhook_event.payload
    pidx = payload.get("pidx")
    if not pidx:
        return ServiceResult.failure(
            "Khalti return has no pidx",
            error_code="INVALID_CALLBACK",
        )

    result = PaymentOrchestrator.verify(
        VerifyPaymentParams(
            transaction_id=payload.get("purchase_order_id") or None,
            gateway=GatewayName.KHALTI,
            gateway_reference=pidx,
            callback_data={"pidx": pidx, "status": payload.get("status")},
        )
    )
    return _settle(result, webhook_event)


# =============================================================================
# Stripe
# =============================================================================


@register_handler(
    GatewayName.STRIPE,
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
    "payment_intent.canceled",
)
def handle_payment_intent(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle PaymentIntent outcome events.

    The event only tells us something happened; verify retrieves the
    PaymentIntent and decides. The body signature was checked by the
    view before the event was stored.
    """
    intent = webhook_event.payload.get("data", {}).get("object", {})
    payment_intent_id = intent.get("id")
    if not payment_intent_id:
        logger.error(
            f"{webhook_event.event_type}: Could not extract payment_intent_id",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.failure(
            "Missing payment_intent_id in event data",
            error_code="INVALID_CALLBACK",
        )

    result = PaymentOrchestrator.verify(
        VerifyPaymentParams(
            gateway=GatewayName.STRIPE,
            gateway_reference=payment_intent_id,
            signature_verified=True,
        )
    )
    return _settle(result, webhook_event)
