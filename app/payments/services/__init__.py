"""
Payment services for coordinating payment operations.

This module provides:
- PaymentOrchestrator: Entry point for initiate, verify, refund and retry
- PaymentFulfilment: Post-completion side effects of a payment
- RefundService: Records refunds and their ledger rows

Usage:
    from payments.services import PaymentOrchestrator, InitiatePaymentParams

    # Initiate a new payment
    result = PaymentOrchestrator.initiate(
        InitiatePaymentParams(
            payer=user,
            method=PaymentMethod.WALLET,
            course=course,
        )
    )

    # Verify it once the gateway calls back
    result = PaymentOrchestrator.verify(
        VerifyPaymentParams(transaction_id=payment.transaction_id)
    )

    # Refund part of it
    result = PaymentOrchestrator.refund(payment.id, amount_paisa=25000)
"""

from payments.services.fulfilment import (
    FulfilmentReport,
    FulfilmentStep,
    PaymentFulfilment,
    StepStatus,
)
from payments.services.payment_orchestrator import (
    InitiatePaymentParams,
    PaymentInitiation,
    PaymentOrchestrator,
    VerificationResult,
    VerifyPaymentParams,
)
from payments.services.refund_service import (
    RefundEligibility,
    RefundOutcome,
    RefundService,
)

__all__ = [
    "FulfilmentReport",
    "FulfilmentStep",
    "InitiatePaymentParams",
    "PaymentFulfilment",
    "PaymentInitiation",
    "PaymentOrchestrator",
    "RefundEligibility",
    "RefundOutcome",
    "RefundService",
    "StepStatus",
    "VerificationResult",
    "VerifyPaymentParams",
]
