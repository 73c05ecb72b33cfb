"""
Payment domain models.

- Payment: Central payment entity tracking the full payment lifecycle
- WebhookEvent: Gateway callback tracking for idempotent processing
- Transaction / Expense: Ledger rows (defined in payments.ledger, imported
  here so they register under the payments app)
"""

from payments.ledger.models import Expense, Transaction
from payments.models.payment import Payment
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Expense",
    "Payment",
    "Transaction",
    "WebhookEvent",
]
