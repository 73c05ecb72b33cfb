"""
State machine enums for payment models.
"""

from payments.state_machines.states import (
    CARD_METHODS,
    REFUNDABLE_STATUSES,
    GatewayName,
    PaymentMethod,
    PaymentStatus,
    VerificationOutcome,
    WebhookEventStatus,
)

__all__ = [
    "CARD_METHODS",
    "GatewayName",
    "PaymentMethod",
    "PaymentStatus",
    "REFUNDABLE_STATUSES",
    "VerificationOutcome",
    "WebhookEventStatus",
]
