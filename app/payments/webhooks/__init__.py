"""
Gateway callback and webhook handling.

Callbacks are verified where the gateway allows it, stored idempotently
as WebhookEvent rows, and processed asynchronously via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks import esewa_callback, khalti_callback, stripe_webhook
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import esewa_callback, khalti_callback, stripe_webhook

__all__ = [
    "dispatch_webhook",
    "esewa_callback",
    "khalti_callback",
    "register_handler",
    "stripe_webhook",
]
