"""
Refund service for returning money to customers.

Refunds are bookkeeping on our side: the gateway contract has no refund
call, so the money goes back out-of-band and this service records it.
A refund never touches commissions; reversing an earning is a separate
admin action (CommissionService.cancel).

The service implements:
1. Refund eligibility checking based on Payment status
2. Partial and full refunds with a cumulative refunded amount
3. A refund history entry in Payment.metadata
4. An EXPENSE / customer_refund ledger row per refund

Usage:
    from payments.services import RefundService

    eligibility = RefundService.check_refund_eligibility(payment)
    if eligibility.eligible:
        result = RefundService.create_refund(
            payment_id=payment.id,
            amount_paisa=30000,
            reason="Customer request",
        )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction
from django.utils import timezone

from audit.models import AuditAction
from audit.services import AuditService
from core.services import BaseService, ServiceResult

from payments.exceptions import (
    LockAcquisitionError,
    PaymentError,
    PaymentValidationError,
    RefundAmountExceededError,
    RefundNotAllowedError,
)
from payments.ledger.models import TransactionCategory, TransactionType
from payments.ledger.services import LedgerService
from payments.ledger.types import RecordTransactionParams
from payments.locks import lock_payment, payment_lock
from payments.state_machines import REFUNDABLE_STATUSES

if TYPE_CHECKING:
    from authentication.models import User
    from payments.models import Payment


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class RefundEligibility:
    """
    Result of refund eligibility check.

    Attributes:
        eligible: Whether the payment can be refunded
        max_refundable_paisa: Maximum amount that can still be refunded
        block_reason: Human-readable reason if not eligible
    """

    eligible: bool
    max_refundable_paisa: int = 0
    block_reason: str | None = None


@dataclass
class RefundOutcome:
    """
    Result of a refund.

    Attributes:
        payment: The updated Payment
        amount_paisa: Amount refunded by this call
        refundable_paisa: Amount still refundable afterwards
        sequence: 1-based number of this refund on the payment
    """

    payment: Payment
    amount_paisa: int
    refundable_paisa: int
    sequence: int


# =============================================================================
# Refund Service
# =============================================================================


class RefundService(BaseService):
    """
    Service for processing refunds.

    Concurrency:
        - DistributedLock ``payment:refund:{id}`` serializes refunds per payment
        - The Payment row is locked while the amount is re-checked and the
          status, history and ledger row are written in one transaction
    """

    @classmethod
    def check_refund_eligibility(cls, payment: Payment) -> RefundEligibility:
        if payment.status not in REFUNDABLE_STATUSES:
            return RefundEligibility(
                eligible=False,
                block_reason=f"Cannot refund a payment that is {payment.status}",
            )
        if payment.refundable_paisa <= 0:
            return RefundEligibility(
                eligible=False,
                block_reason="Payment has been fully refunded",
            )
        return RefundEligibility(
            eligible=True,
            max_refundable_paisa=payment.refundable_paisa,
        )

    @classmethod
    def create_refund(
        cls,
        payment_id: uuid.UUID,
        amount_paisa: int | None = None,
        reason: str | None = None,
        refunded_by: User | None = None,
    ) -> ServiceResult[RefundOutcome]:
        """
        Refund ``amount_paisa`` (default: everything still refundable).

        Returns:
            ServiceResult containing RefundOutcome, or a failure with
            REFUND_NOT_ALLOWED, REFUND_AMOUNT_EXCEEDED,
            PAYMENT_VALIDATION_ERROR, PAYMENT_NOT_FOUND or
            LOCK_ACQUISITION_FAILED
        """
        cls.get_logger().info(
            "Starting refund",
            extra={"payment_id": str(payment_id), "amount_paisa": amount_paisa},
        )

        try:
            if amount_paisa is not None and (
                not isinstance(amount_paisa, int) or amount_paisa <= 0
            ):
                raise PaymentValidationError(
                    "Refund amount must be a positive integer",
                    details={"amount_paisa": amount_paisa},
                )

            with payment_lock(payment_id, "refund"):
                outcome = cls._execute_refund_with_lock(
                    payment_id, amount_paisa, reason, refunded_by
                )
        except LockAcquisitionError as e:
            cls.get_logger().warning(
                "Failed to acquire lock for refund",
                extra={"payment_id": str(payment_id), "error": str(e)},
            )
            return ServiceResult.from_exception(e)
        except PaymentError as e:
            cls.get_logger().warning(
                f"Refund rejected: {e.error_code}",
                extra={"payment_id": str(payment_id)},
            )
            return ServiceResult.from_exception(e)

        AuditService.record(
            AuditAction.PAYMENT_REFUNDED,
            user=refunded_by,
            entity=outcome.payment,
            description=(
                f"Refunded {outcome.amount_paisa} paisa "
                f"({outcome.refundable_paisa} remaining)"
            ),
            metadata={
                "amount_paisa": outcome.amount_paisa,
                "refundable_paisa": outcome.refundable_paisa,
                "sequence": outcome.sequence,
                "reason": reason,
            },
        )

        cls.get_logger().info(
            "Refund completed",
            extra={
                "payment_id": str(payment_id),
                "amount_paisa": outcome.amount_paisa,
                "status": outcome.payment.status,
            },
        )
        return ServiceResult.success(outcome)

    @classmethod
    def _execute_refund_with_lock(
        cls,
        payment_id: uuid.UUID,
        amount_paisa: int | None,
        reason: str | None,
        refunded_by: User | None,
    ) -> RefundOutcome:
        with transaction.atomic():
            payment = lock_payment(payment_id)

            eligibility = cls.check_refund_eligibility(payment)
            if not eligibility.eligible:
                raise RefundNotAllowedError(
                    eligibility.block_reason or "Refund not allowed",
                    details={"payment_id": str(payment.pk), "status": payment.status},
                )

            amount = amount_paisa or eligibility.max_refundable_paisa
            if amount > eligibility.max_refundable_paisa:
                raise RefundAmountExceededError(
                    f"Refund amount ({amount}) exceeds remaining refundable "
                    f"amount ({eligibility.max_refundable_paisa})",
                    details={
                        "payment_id": str(payment.pk),
                        "requested_paisa": amount,
                        "refundable_paisa": eligibility.max_refundable_paisa,
                    },
                )

            history = list(payment.metadata.get("refunds", []))
            sequence = len(history) + 1
            history.append(
                {
                    "sequence": sequence,
                    "amount_paisa": amount,
                    "reason": reason,
                    "refunded_by": str(refunded_by.pk) if refunded_by else None,
                    "refunded_at": timezone.now().isoformat(),
                }
            )

            payment.refund(amount)
            payment.metadata = {**payment.metadata, "refunds": history}
            payment.save()

            LedgerService.record(
                RecordTransactionParams(
                    type=TransactionType.EXPENSE,
                    category=TransactionCategory.CUSTOMER_REFUND,
                    amount_paisa=amount,
                    idempotency_key=f"payment:{payment.pk}:refund:{sequence}",
                    payment=payment,
                    description=reason or f"Refund of payment {payment.transaction_id}",
                    reference_number=payment.transaction_id,
                    metadata={"sequence": sequence},
                    recorded_by=refunded_by,
                )
            )

        return RefundOutcome(
            payment=payment,
            amount_paisa=amount,
            refundable_paisa=payment.refundable_paisa,
            sequence=sequence,
        )
