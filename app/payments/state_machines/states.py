"""
State and choice enums for payment models.

These are Django TextChoices for database storage and admin integration;
PaymentStatus is driven by django-fsm transitions on Payment.

State Machines Overview:

Payment States:
    pending → completed
    pending → failed → pending (retry, capped by max_retries)
    completed/partially_refunded → partially_refunded/refunded

WebhookEvent States:
    pending → processing → processed
    pending → processing → failed (can retry)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the Payment lifecycle.

    Terminal state: REFUNDED. FAILED is terminal once retries are used up.

    State Flow:
        PENDING → COMPLETED
        PENDING → FAILED

    Recovery Flow:
        FAILED → PENDING (retry)

    Refund Flow:
        COMPLETED → PARTIALLY_REFUNDED / REFUNDED
        PARTIALLY_REFUNDED → PARTIALLY_REFUNDED / REFUNDED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    PARTIALLY_REFUNDED = "partially_refunded", "Partially Refunded"
    REFUNDED = "refunded", "Refunded"


REFUNDABLE_STATUSES = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)


class PaymentMethod(models.TextChoices):
    """
    Payer-facing payment methods.

    WALLET goes through eSewa, MOBILE_BANKING through manual bank
    transfer, and the two card methods through the configured card
    gateway.
    """

    WALLET = "wallet", "Wallet"
    MOBILE_BANKING = "mobile_banking", "Mobile Banking"
    VISA_CARD = "visa_card", "Visa Card"
    MASTERCARD = "mastercard", "Mastercard"


CARD_METHODS = (PaymentMethod.VISA_CARD, PaymentMethod.MASTERCARD)


class GatewayName(models.TextChoices):
    """Adapter keys persisted on Payment.gateway."""

    ESEWA = "esewa", "eSewa"
    KHALTI = "khalti", "Khalti"
    STRIPE = "stripe", "Stripe"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"


class VerificationOutcome(models.TextChoices):
    """
    Result of asking a gateway about a payment.

    MANUAL_REQUIRED is a third outcome, not a failure: the payment stays
    PENDING until an administrator confirms it.
    """

    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    MANUAL_REQUIRED = "manual_required", "Manual Verification Required"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of callback processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "CARD_METHODS",
    "GatewayName",
    "PaymentMethod",
    "PaymentStatus",
    "REFUNDABLE_STATUSES",
    "VerificationOutcome",
    "WebhookEventStatus",
]
