"""
Side effects of a completed payment.

PaymentFulfilment.run executes a fixed list of steps, one after the
other, each in its own try block. A failing step is logged, written to
the audit log with its own action, and never changes the payment's
status. Every step is idempotent, so running the list twice for the same
payment does not double-apply anything.

Steps:
    coupon               CouponService.apply
    enrollment           EnrollmentService.activate
    instructor_commission InstructorCommissionService.accrue
    affiliate_commission AffiliateCommissionService.accrue
    order_confirmation   OrderService.confirm_payment
    income_ledger        LedgerService.record (INCOME)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from audit.models import AuditAction
from audit.services import AuditService
from commerce.exceptions import StockExhaustedError
from commerce.models import Order
from commerce.services import OrderService
from coupons.services import CouponService
from earnings.services import AffiliateCommissionService, InstructorCommissionService
from learning.services import EnrollmentService
from payments.ledger.models import TransactionCategory, TransactionType
from payments.ledger.services import LedgerService
from payments.ledger.types import RecordTransactionParams

if TYPE_CHECKING:
    from collections.abc import Callable

    from learning.models import Enrollment
    from payments.models import Payment

logger = logging.getLogger(__name__)


class StepStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class FulfilmentStep:
    name: str
    status: str
    error: str | None = None


@dataclass
class FulfilmentReport:
    """
    What happened to each step for one payment.

    Attributes:
        steps: One entry per step, in execution order
        warnings: Messages the caller should show (e.g. order not confirmed)
    """

    payment_id: Any
    steps: list[FulfilmentStep] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def failed_steps(self) -> list[str]:
        return [step.name for step in self.steps if step.status == StepStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed_steps

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [
                {"name": step.name, "status": step.status, "error": step.error}
                for step in self.steps
            ],
            "warnings": list(self.warnings),
        }


class PaymentFulfilment:
    """Runs the post-completion steps for a payment."""

    @classmethod
    def run(cls, payment: Payment) -> FulfilmentReport:
        report = FulfilmentReport(payment_id=payment.pk)
        context: dict[str, Any] = {"enrollment": None}

        steps: list[tuple[str, str, Callable[[Payment, dict[str, Any]], bool]]] = [
            ("coupon", AuditAction.COUPON_APPLY_ERROR, cls._apply_coupon),
            ("enrollment", AuditAction.ENROLLMENT_ERROR, cls._activate_enrollment),
            (
                "instructor_commission",
                AuditAction.INSTRUCTOR_COMMISSION_ERROR,
                cls._accrue_instructor_commission,
            ),
            (
                "affiliate_commission",
                AuditAction.AFFILIATE_COMMISSION_ERROR,
                cls._accrue_affiliate_commission,
            ),
            ("order_confirmation", AuditAction.ORDER_CONFIRMATION_ERROR, cls._confirm_order),
            ("income_ledger", AuditAction.LEDGER_RECORD_ERROR, cls._record_income),
        ]

        for name, error_action, step in steps:
            try:
                ran = step(payment, context)
            except Exception as e:
                logger.exception(
                    f"Fulfilment step {name} failed",
                    extra={"payment_id": str(payment.pk), "step": name},
                )
                AuditService.record(
                    error_action,
                    user=payment.payer,
                    entity=payment,
                    description=f"Fulfilment step '{name}' failed: {e}",
                    metadata={
                        "step": name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                report.steps.append(FulfilmentStep(name, StepStatus.FAILED, str(e)))
                if isinstance(e, StockExhaustedError):
                    report.warnings.append(
                        "Payment received but the order could not be confirmed: "
                        "one or more items are out of stock"
                    )
                continue

            report.steps.append(
                FulfilmentStep(name, StepStatus.SUCCEEDED if ran else StepStatus.SKIPPED)
            )

        logger.info(
            "Payment fulfilment finished",
            extra={
                "payment_id": str(payment.pk),
                "failed_steps": report.failed_steps,
            },
        )
        return report

    # =========================================================================
    # Steps (return False when the step does not apply)
    # =========================================================================

    @staticmethod
    def _apply_coupon(payment: Payment, context: dict[str, Any]) -> bool:
        if payment.coupon_id is None or payment.discount_paisa <= 0:
            return False
        CouponService.apply(
            payment.coupon,
            payment.payer,
            payment,
            payment.discount_paisa,
            order=payment.order,
        )
        return True

    @staticmethod
    def _activate_enrollment(payment: Payment, context: dict[str, Any]) -> bool:
        if payment.course_id is None:
            return False
        context["enrollment"] = EnrollmentService.activate(payment.payer, payment.course)
        return True

    @staticmethod
    def _accrue_instructor_commission(payment: Payment, context: dict[str, Any]) -> bool:
        course = payment.course
        if course is None or course.instructor_id is None:
            return False
        InstructorCommissionService.accrue(
            course.instructor,
            course,
            payment,
            payment.final_amount_paisa,
            enrollment=context["enrollment"],
        )
        return True

    @staticmethod
    def _accrue_affiliate_commission(payment: Payment, context: dict[str, Any]) -> bool:
        enrollment: Enrollment | None = context["enrollment"]
        if payment.course_id is None:
            return False
        if enrollment is None:
            enrollment = EnrollmentService.get_enrollment(payment.payer, payment.course)
        if enrollment is None or enrollment.affiliate_id is None:
            return False
        earning = AffiliateCommissionService.accrue(
            enrollment.affiliate,
            payment.course,
            payment,
            payment.final_amount_paisa,
            enrollment=enrollment,
        )
        return earning is not None

    @staticmethod
    def _confirm_order(payment: Payment, context: dict[str, Any]) -> bool:
        if payment.order_id is None:
            return False
        if Order.objects.filter(pk=payment.order_id, stock_committed=True).exists():
            return False
        OrderService.confirm_payment(payment.order_id)
        return True

    @staticmethod
    def _record_income(payment: Payment, context: dict[str, Any]) -> bool:
        if payment.final_amount_paisa <= 0:
            return False
        category = (
            TransactionCategory.PRODUCT_SALE
            if payment.order_id is not None
            else TransactionCategory.COURSE_SALE
        )
        LedgerService.record(
            RecordTransactionParams(
                type=TransactionType.INCOME,
                category=category,
                amount_paisa=payment.final_amount_paisa,
                idempotency_key=f"payment:{payment.pk}:income",
                payment=payment,
                description=f"Payment {payment.transaction_id} via {payment.gateway}",
                reference_number=payment.external_transaction_id or payment.transaction_id,
                metadata={"method": payment.method, "gateway": payment.gateway},
            )
        )
        return True
