"""
Commission engines for instructors and affiliates.

Both engines share CommissionService; subclasses only bind the payee and
earning models, the ledger category, and who is eligible to accrue.

Every change to a payee's aggregates is a paired ``F()`` update made
while holding the payee row lock, so ``pending + paid == total`` holds
after every statement (a check constraint on the payee table backs this
up). ``recompute_aggregates`` rebuilds the three columns from earning
rows when manual reconciliation is needed.

Usage:
    from earnings.services import InstructorCommissionService

    earning = InstructorCommissionService.accrue(
        payee=course.instructor,
        course=course,
        payment=payment,
        amount_paisa=payment.final_amount_paisa,
        enrollment=enrollment,
    )

    summary = InstructorCommissionService.mark_paid(
        [earning.id], paid_by=admin, payout_method="bank", reference="PAYOUT-1",
    )
"""

from __future__ import annotations

import secrets
import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.db import IntegrityError, transaction
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from earnings.exceptions import (
    EarningNotFoundError,
    EarningStateError,
    InvalidCommissionRateError,
    PayeeNotFoundError,
)
from earnings.models import (
    Affiliate,
    AffiliateEarning,
    AffiliateStatus,
    Earning,
    EarningStatus,
    Instructor,
    InstructorEarning,
    Payee,
)
from payments.ledger.models import TransactionCategory, TransactionType
from payments.ledger.services import LedgerService
from payments.ledger.types import RecordTransactionParams

if TYPE_CHECKING:
    from authentication.models import User
    from learning.models import Course, Enrollment
    from payments.models import Payment


AFFILIATE_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5


def calculate_commission(amount_paisa: int, rate: Decimal) -> int:
    """
    ``amount * rate / 100`` rounded half-up to a whole paisa.

    Example:
        calculate_commission(100050, Decimal("30"))  # 30015
    """
    commission = Decimal(amount_paisa) * Decimal(rate) / Decimal(100)
    return int(commission.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class PayoutSummary:
    """Result of a batch payout."""

    count: int = 0
    total_paisa: int = 0
    payee_count: int = 0


class CommissionService(BaseService):
    """
    Shared commission engine.

    Subclasses set:
        payee_model: Instructor or Affiliate
        earning_model: InstructorEarning or AffiliateEarning
        payee_field: FK name on the earning model
        accrual_category: Ledger category for accrual rows
        label: Prefix for ledger idempotency keys
    """

    payee_model: type[Payee]
    earning_model: type[Earning]
    payee_field: str
    accrual_category: str
    label: str

    # ==========================================================================
    # Accrual
    # ==========================================================================

    @classmethod
    def can_accrue(cls, payee: Payee) -> bool:
        return True

    @classmethod
    def accrue(
        cls,
        payee: Payee,
        course: Course,
        payment: Payment,
        amount_paisa: int,
        enrollment: Enrollment | None = None,
    ) -> Earning | None:
        """
        Accrue a pending commission for ``payee`` on ``payment``.

        Repeat calls for the same (payment, payee) return the existing
        earning without touching aggregates. Returns None when the payee
        is not eligible.
        """
        with transaction.atomic():
            locked = cls._lock_payee(payee.pk)
            if not cls.can_accrue(locked):
                cls.get_logger().info(
                    f"Skipping {cls.label} commission for ineligible payee {locked.pk}"
                )
                return None

            existing = cls.earning_model.objects.filter(
                payment=payment, **{cls.payee_field: locked}
            ).first()
            if existing is not None:
                return existing

            rate = locked.commission_rate
            commission = calculate_commission(amount_paisa, rate)

            try:
                with transaction.atomic():
                    earning = cls.earning_model.objects.create(
                        course=course,
                        payment=payment,
                        enrollment=enrollment,
                        amount_paisa=commission,
                        commission_rate=rate,
                        **{cls.payee_field: locked},
                    )
            except IntegrityError:
                return cls.earning_model.objects.get(
                    payment=payment, **{cls.payee_field: locked}
                )

            cls.payee_model.objects.filter(pk=locked.pk).update(
                pending_earnings_paisa=F("pending_earnings_paisa") + commission,
                total_earnings_paisa=F("total_earnings_paisa") + commission,
            )

            if commission > 0:
                LedgerService.record(
                    RecordTransactionParams(
                        type=TransactionType.COMMISSION,
                        category=cls.accrual_category,
                        amount_paisa=commission,
                        idempotency_key=f"{cls.label}_earning:{earning.id}:accrual",
                        payment=payment,
                        description=f"{cls.label.title()} commission at {rate}%",
                        metadata={"payee_id": str(locked.pk), "rate": str(rate)},
                        **{f"{cls.label}_earning": earning},
                    )
                )

        cls.get_logger().info(
            f"Accrued {cls.label} commission {earning.id}",
            extra={
                "payee_id": str(locked.pk),
                "payment_id": str(payment.pk),
                "amount_paisa": commission,
            },
        )
        return earning

    # ==========================================================================
    # Payout
    # ==========================================================================

    @classmethod
    def mark_paid(
        cls,
        earning_ids: list[uuid.UUID],
        paid_by: User | None = None,
        payout_method: str = "",
        reference: str = "",
    ) -> PayoutSummary:
        """
        Mark pending earnings as paid.

        Rows that are not PENDING are skipped, so repeating the call is
        harmless. For each payee the summed amount moves from pending to
        paid; one salary ledger row is written per earning.
        """
        if not earning_ids:
            return PayoutSummary()

        with transaction.atomic():
            payee_ids = set(
                cls.earning_model.objects.filter(
                    id__in=earning_ids, status=EarningStatus.PENDING
                ).values_list(f"{cls.payee_field}_id", flat=True)
            )
            # Payee rows first, in id order, same as accrue()
            list(
                cls.payee_model.objects.select_for_update()
                .filter(pk__in=payee_ids)
                .order_by("pk")
            )

            earnings = list(
                cls.earning_model.objects.select_for_update()
                .filter(id__in=earning_ids, status=EarningStatus.PENDING)
                .order_by("id")
            )
            if not earnings:
                return PayoutSummary()

            per_payee: dict[Any, int] = defaultdict(int)
            for earning in earnings:
                per_payee[getattr(earning, f"{cls.payee_field}_id")] += earning.amount_paisa

            for payee_id, amount in per_payee.items():
                cls.payee_model.objects.filter(pk=payee_id).update(
                    pending_earnings_paisa=F("pending_earnings_paisa") - amount,
                    paid_earnings_paisa=F("paid_earnings_paisa") + amount,
                )

            for earning in earnings:
                earning.mark_paid(
                    paid_by=paid_by, payout_method=payout_method, reference=reference
                )
                earning.save()

                if earning.amount_paisa > 0:
                    LedgerService.record(
                        cls._payout_params(earning, paid_by, payout_method, reference)
                    )

        summary = PayoutSummary(
            count=len(earnings),
            total_paisa=sum(e.amount_paisa for e in earnings),
            payee_count=len(per_payee),
        )
        cls.get_logger().info(
            f"Marked {summary.count} {cls.label} earnings paid",
            extra={"total_paisa": summary.total_paisa, "reference": reference},
        )
        return summary

    @classmethod
    def _payout_params(
        cls,
        earning: Earning,
        paid_by: User | None,
        payout_method: str,
        reference: str,
    ) -> RecordTransactionParams:
        return RecordTransactionParams(
            type=TransactionType.SALARY,
            category=TransactionCategory.COMMISSION_PAYOUT,
            amount_paisa=earning.amount_paisa,
            idempotency_key=f"{cls.label}_earning:{earning.id}:payout",
            payment=earning.payment,
            reference_number=reference,
            description=f"{cls.label.title()} payout",
            metadata={"payout_method": payout_method},
            recorded_by=paid_by,
            **{f"{cls.label}_earning": earning},
        )

    # ==========================================================================
    # Cancellation
    # ==========================================================================

    @classmethod
    def cancel(cls, earning_id: uuid.UUID, reason: str = "") -> Earning:
        """
        Cancel an earning, typically after its payment was refunded.

        A pending earning is removed from pending and total; a paid one
        from paid and total. A reversing REFUND ledger row is appended.

        Raises:
            EarningNotFoundError: Unknown earning
            EarningStateError: Earning is already cancelled
        """
        payee_id = (
            cls.earning_model.objects.filter(id=earning_id)
            .values_list(f"{cls.payee_field}_id", flat=True)
            .first()
        )
        if payee_id is None:
            raise EarningNotFoundError(
                f"{cls.label.title()} earning {earning_id} not found",
                details={"earning_id": str(earning_id)},
            )

        with transaction.atomic():
            cls._lock_payee(payee_id)
            earning = cls.earning_model.objects.select_for_update().get(id=earning_id)
            previous_status = earning.status

            try:
                earning.cancel(reason=reason)
            except TransitionNotAllowed:
                raise EarningStateError(
                    f"Cannot cancel {cls.label} earning in status {previous_status}",
                    details={"earning_id": str(earning_id), "status": previous_status},
                )
            earning.save()

            amount = earning.amount_paisa
            bucket = (
                "pending_earnings_paisa"
                if previous_status == EarningStatus.PENDING
                else "paid_earnings_paisa"
            )
            cls.payee_model.objects.filter(pk=payee_id).update(
                **{bucket: F(bucket) - amount},
                total_earnings_paisa=F("total_earnings_paisa") - amount,
            )

            if amount > 0:
                LedgerService.record(
                    RecordTransactionParams(
                        type=TransactionType.REFUND,
                        category=TransactionCategory.COMMISSION_REVERSAL,
                        amount_paisa=amount,
                        idempotency_key=f"{cls.label}_earning:{earning.id}:cancel",
                        payment=earning.payment,
                        description=f"{cls.label.title()} commission reversed",
                        metadata={"reason": reason, "previous_status": previous_status},
                        **{f"{cls.label}_earning": earning},
                    )
                )

        cls.get_logger().info(
            f"Cancelled {cls.label} earning {earning_id} (was {previous_status})"
        )
        return earning

    # ==========================================================================
    # Payee management
    # ==========================================================================

    @classmethod
    def summary(cls, payee: Payee) -> dict[str, Any]:
        """Aggregates plus per-status counts for a payee dashboard."""
        payee = cls.get_payee(payee.pk)
        counts = cls.earning_model.objects.filter(
            **{cls.payee_field: payee}
        ).aggregate(
            pending_count=Count("id", filter=Q(status=EarningStatus.PENDING)),
            paid_count=Count("id", filter=Q(status=EarningStatus.PAID)),
            cancelled_count=Count("id", filter=Q(status=EarningStatus.CANCELLED)),
        )
        return {
            "payee_id": str(payee.pk),
            "commission_rate": str(payee.commission_rate),
            "total_earnings_paisa": payee.total_earnings_paisa,
            "pending_earnings_paisa": payee.pending_earnings_paisa,
            "paid_earnings_paisa": payee.paid_earnings_paisa,
            **counts,
        }

    @classmethod
    def update_commission_rate(cls, payee: Payee, rate: Decimal | str | int) -> Payee:
        """
        Change the rate used for future accruals. Existing earnings keep
        their snapshotted rate.

        Raises:
            InvalidCommissionRateError: Rate is not a number in [0, 100]
        """
        try:
            new_rate = Decimal(str(rate))
        except (InvalidOperation, ValueError):
            raise InvalidCommissionRateError(
                f"Invalid commission rate: {rate}", details={"rate": str(rate)}
            )
        if new_rate < 0 or new_rate > 100:
            raise InvalidCommissionRateError(
                "Commission rate must be between 0 and 100",
                details={"rate": str(new_rate)},
            )

        with transaction.atomic():
            locked = cls._lock_payee(payee.pk)
            old_rate = locked.commission_rate
            locked.commission_rate = new_rate.quantize(Decimal("0.01"))
            locked.save(update_fields=["commission_rate", "updated_at"])

        cls.get_logger().info(
            f"{cls.label.title()} {locked.pk} commission rate {old_rate} -> {new_rate}"
        )
        return locked

    @classmethod
    def recompute_aggregates(cls, payee: Payee) -> Payee:
        """
        Rebuild pending/paid/total from the payee's earning rows.
        """
        with transaction.atomic():
            locked = cls._lock_payee(payee.pk)
            sums = cls.earning_model.objects.filter(
                **{cls.payee_field: locked}
            ).aggregate(
                pending=Coalesce(
                    Sum("amount_paisa", filter=Q(status=EarningStatus.PENDING)), 0
                ),
                paid=Coalesce(Sum("amount_paisa", filter=Q(status=EarningStatus.PAID)), 0),
            )

            drifted = (
                locked.pending_earnings_paisa != sums["pending"]
                or locked.paid_earnings_paisa != sums["paid"]
            )
            if drifted:
                cls.get_logger().warning(
                    f"{cls.label.title()} {locked.pk} aggregates drifted; rebuilding",
                    extra={
                        "stored_pending": locked.pending_earnings_paisa,
                        "stored_paid": locked.paid_earnings_paisa,
                        "computed_pending": sums["pending"],
                        "computed_paid": sums["paid"],
                    },
                )

            cls.payee_model.objects.filter(pk=locked.pk).update(
                pending_earnings_paisa=sums["pending"],
                paid_earnings_paisa=sums["paid"],
                total_earnings_paisa=sums["pending"] + sums["paid"],
            )

        return cls.get_payee(locked.pk)

    @classmethod
    def get_payee(cls, payee_id: Any) -> Payee:
        try:
            return cls.payee_model.objects.get(pk=payee_id)
        except cls.payee_model.DoesNotExist:
            raise PayeeNotFoundError(
                f"{cls.label.title()} {payee_id} not found",
                details={"payee_id": str(payee_id)},
            )

    @classmethod
    def _lock_payee(cls, payee_id: Any) -> Payee:
        try:
            return cls.payee_model.objects.select_for_update().get(pk=payee_id)
        except cls.payee_model.DoesNotExist:
            raise PayeeNotFoundError(
                f"{cls.label.title()} {payee_id} not found",
                details={"payee_id": str(payee_id)},
            )


class InstructorCommissionService(CommissionService):
    """Commission engine for course instructors."""

    payee_model = Instructor
    earning_model = InstructorEarning
    payee_field = "instructor"
    accrual_category = TransactionCategory.INSTRUCTOR_COMMISSION
    label = "instructor"


class AffiliateCommissionService(CommissionService):
    """Commission engine for affiliates; only approved affiliates accrue."""

    payee_model = Affiliate
    earning_model = AffiliateEarning
    payee_field = "affiliate"
    accrual_category = TransactionCategory.AFFILIATE_COMMISSION
    label = "affiliate"

    @classmethod
    def can_accrue(cls, payee: Payee) -> bool:
        return payee.status == AffiliateStatus.APPROVED


class AffiliateService(BaseService):
    """
    Affiliate registration and referral code lookup.

    Usage:
        affiliate = AffiliateService.register(user)
        AffiliateService.approve(affiliate)
        AffiliateService.resolve_code("ab12cd34")  # case-insensitive
    """

    @classmethod
    def register(cls, user: User, commission_rate: Decimal | None = None) -> Affiliate:
        """Create a pending affiliate with a fresh unique code, or return the existing one."""
        existing = Affiliate.objects.filter(user=user).first()
        if existing is not None:
            return existing

        extra = {}
        if commission_rate is not None:
            extra["commission_rate"] = commission_rate

        for _ in range(MAX_CODE_ATTEMPTS):
            code = secrets.token_hex(AFFILIATE_CODE_LENGTH // 2).upper()
            try:
                with transaction.atomic():
                    affiliate = Affiliate.objects.create(
                        user=user, affiliate_code=code, **extra
                    )
            except IntegrityError:
                existing = Affiliate.objects.filter(user=user).first()
                if existing is not None:
                    return existing
                continue

            cls.get_logger().info(f"Registered affiliate {affiliate.affiliate_code}")
            return affiliate

        raise IntegrityError("Could not generate a unique affiliate code")

    @classmethod
    def approve(cls, affiliate: Affiliate) -> Affiliate:
        affiliate.status = AffiliateStatus.APPROVED
        affiliate.approved_at = timezone.now()
        affiliate.save(update_fields=["status", "approved_at", "updated_at"])
        cls.get_logger().info(f"Approved affiliate {affiliate.affiliate_code}")
        return affiliate

    @classmethod
    def suspend(cls, affiliate: Affiliate) -> Affiliate:
        affiliate.status = AffiliateStatus.SUSPENDED
        affiliate.save(update_fields=["status", "updated_at"])
        cls.get_logger().warning(f"Suspended affiliate {affiliate.affiliate_code}")
        return affiliate

    @staticmethod
    def resolve_code(code: str | None) -> Affiliate | None:
        """Return the approved affiliate owning ``code``, or None."""
        if not code:
            return None
        return Affiliate.objects.filter(
            affiliate_code=code.strip().upper(),
            status=AffiliateStatus.APPROVED,
        ).first()
