"""
Tests for the commission engine and affiliate registration.

Tests cover:
- Half-up commission rounding
- Accrual idempotency per (payment, payee)
- Payout and cancellation keeping total == pending + paid
- Ledger rows written for accrual, payout and reversal
"""

import random
from decimal import Decimal

import pytest

from earnings.exceptions import (
    EarningNotFoundError,
    EarningStateError,
    InvalidCommissionRateError,
)
from earnings.models import (
    Affiliate,
    AffiliateEarning,
    AffiliateStatus,
    EarningStatus,
    Instructor,
    InstructorEarning,
)
from earnings.services import (
    AffiliateCommissionService,
    AffiliateService,
    InstructorCommissionService,
    calculate_commission,
)
from earnings.tests.factories import AffiliateFactory, InstructorFactory
from payments.ledger.models import Transaction, TransactionCategory, TransactionType


def reload_instructor(instructor) -> Instructor:
    return Instructor.objects.get(pk=instructor.pk)


class TestCalculateCommission:
    @pytest.mark.parametrize(
        "amount,rate,expected",
        [
            (100050, Decimal("30"), 30015),
            (100000, Decimal("10"), 10000),
            (5, Decimal("10"), 1),  # 0.5 rounds up
            (4, Decimal("10"), 0),
            (99999, Decimal("33.33"), 33330),
            (100000, Decimal("0"), 0),
            (100000, Decimal("100"), 100000),
        ],
    )
    def test_rounds_half_up(self, amount, rate, expected):
        assert calculate_commission(amount, rate) == expected


@pytest.mark.django_db
class TestAccrue:
    def test_accrues_pending_earning_and_ledger_row(self, instructor, course, sale):
        earning = InstructorCommissionService.accrue(instructor, course, sale, 100000)

        assert earning.status == EarningStatus.PENDING
        assert earning.amount_paisa == 30000
        assert earning.commission_rate == Decimal("30.00")

        instructor = reload_instructor(instructor)
        assert instructor.pending_earnings_paisa == 30000
        assert instructor.total_earnings_paisa == 30000
        assert instructor.paid_earnings_paisa == 0

        row = Transaction.objects.get(idempotency_key=f"instructor_earning:{earning.id}:accrual")
        assert row.type == TransactionType.COMMISSION
        assert row.category == TransactionCategory.INSTRUCTOR_COMMISSION
        assert row.amount_paisa == 30000

    def test_second_accrual_for_same_payment_is_a_no_op(self, instructor, course, sale):
        first = InstructorCommissionService.accrue(instructor, course, sale, 100000)
        second = InstructorCommissionService.accrue(instructor, course, sale, 100000)

        assert first.pk == second.pk
        assert InstructorEarning.objects.filter(payment=sale).count() == 1
        assert reload_instructor(instructor).total_earnings_paisa == 30000

    def test_rate_is_snapshotted(self, instructor, course, make_sale):
        first = InstructorCommissionService.accrue(instructor, course, make_sale(), 100000)
        InstructorCommissionService.update_commission_rate(instructor, "50")
        second = InstructorCommissionService.accrue(instructor, course, make_sale(), 100000)

        assert InstructorEarning.objects.get(pk=first.pk).commission_rate == Decimal("30.00")
        assert second.commission_rate == Decimal("50.00")
        assert second.amount_paisa == 50000

    def test_unapproved_affiliate_is_skipped(self, course, sale):
        affiliate = AffiliateFactory(pending=True)

        earning = AffiliateCommissionService.accrue(affiliate, course, sale, 100000)

        assert earning is None
        assert not AffiliateEarning.objects.exists()

    def test_approved_affiliate_accrues(self, affiliate, course, sale):
        earning = AffiliateCommissionService.accrue(affiliate, course, sale, 100000)

        assert earning.amount_paisa == 10000
        assert Affiliate.objects.get(pk=affiliate.pk).pending_earnings_paisa == 10000
        assert Transaction.objects.filter(
            category=TransactionCategory.AFFILIATE_COMMISSION
        ).count() == 1


@pytest.mark.django_db
class TestMarkPaid:
    def test_moves_pending_to_paid(self, instructor, course, make_sale, administrator):
        earnings = [
            InstructorCommissionService.accrue(instructor, course, make_sale(), 100000)
            for _ in range(3)
        ]

        summary = InstructorCommissionService.mark_paid(
            [e.id for e in earnings],
            paid_by=administrator,
            payout_method="bank",
            reference="PAYOUT-1",
        )

        assert summary.count == 3
        assert summary.total_paisa == 90000
        assert summary.payee_count == 1

        instructor = reload_instructor(instructor)
        assert instructor.pending_earnings_paisa == 0
        assert instructor.paid_earnings_paisa == 90000
        assert instructor.total_earnings_paisa == 90000

        paid = InstructorEarning.objects.get(pk=earnings[0].pk)
        assert paid.status == EarningStatus.PAID
        assert paid.payout_reference == "PAYOUT-1"
        assert Transaction.objects.filter(type=TransactionType.SALARY).count() == 3

    def test_repeating_payout_is_harmless(self, instructor, course, sale):
        earning = InstructorCommissionService.accrue(instructor, course, sale, 100000)

        InstructorCommissionService.mark_paid([earning.id])
        summary = InstructorCommissionService.mark_paid([earning.id])

        assert summary.count == 0
        assert reload_instructor(instructor).paid_earnings_paisa == 30000
        assert Transaction.objects.filter(type=TransactionType.SALARY).count() == 1

    def test_empty_list(self):
        summary = InstructorCommissionService.mark_paid([])

        assert summary.count == 0
        assert summary.total_paisa == 0


@pytest.mark.django_db
class TestCancel:
    def test_cancel_pending_earning(self, instructor, course, sale):
        earning = InstructorCommissionService.accrue(instructor, course, sale, 100000)

        cancelled = InstructorCommissionService.cancel(earning.id, reason="refunded")

        assert cancelled.status == EarningStatus.CANCELLED
        assert cancelled.cancellation_reason == "refunded"
        instructor = reload_instructor(instructor)
        assert instructor.pending_earnings_paisa == 0
        assert instructor.total_earnings_paisa == 0

        reversal = Transaction.objects.get(idempotency_key=f"instructor_earning:{earning.id}:cancel")
        assert reversal.type == TransactionType.REFUND
        assert reversal.category == TransactionCategory.COMMISSION_REVERSAL

    def test_cancel_paid_earning_reduces_paid(self, instructor, course, sale):
        earning = InstructorCommissionService.accrue(instructor, course, sale, 100000)
        InstructorCommissionService.mark_paid([earning.id])

        InstructorCommissionService.cancel(earning.id)

        instructor = reload_instructor(instructor)
        assert instructor.paid_earnings_paisa == 0
        assert instructor.total_earnings_paisa == 0

    def test_cancel_twice_raises(self, instructor, course, sale):
        earning = InstructorCommissionService.accrue(instructor, course, sale, 100000)
        InstructorCommissionService.cancel(earning.id)

        with pytest.raises(EarningStateError):
            InstructorCommissionService.cancel(earning.id)

    def test_unknown_earning(self):
        import uuid

        with pytest.raises(EarningNotFoundError):
            InstructorCommissionService.cancel(uuid.uuid4())


@pytest.mark.django_db
class TestAggregates:
    def test_random_sequence_keeps_total_balanced(self, instructor, course, make_sale):
        rng = random.Random(20240601)
        earnings = [
            InstructorCommissionService.accrue(
                instructor, course, make_sale(), rng.randint(1000, 500000)
            )
            for _ in range(12)
        ]

        for earning in earnings:
            action = rng.choice(["pay", "cancel", "pay_then_cancel", "keep"])
            if action in ("pay", "pay_then_cancel"):
                InstructorCommissionService.mark_paid([earning.id])
            if action in ("cancel", "pay_then_cancel"):
                InstructorCommissionService.cancel(earning.id)

        stored = reload_instructor(instructor)
        assert stored.aggregates_consistent

        rebuilt = InstructorCommissionService.recompute_aggregates(stored)
        assert rebuilt.pending_earnings_paisa == stored.pending_earnings_paisa
        assert rebuilt.paid_earnings_paisa == stored.paid_earnings_paisa
        assert rebuilt.total_earnings_paisa == stored.total_earnings_paisa

    def test_recompute_repairs_drift(self, instructor, course, sale):
        InstructorCommissionService.accrue(instructor, course, sale, 100000)
        Instructor.objects.filter(pk=instructor.pk).update(
            pending_earnings_paisa=1, total_earnings_paisa=1
        )

        rebuilt = InstructorCommissionService.recompute_aggregates(instructor)

        assert rebuilt.pending_earnings_paisa == 30000
        assert rebuilt.total_earnings_paisa == 30000

    def test_summary_counts(self, instructor, course, make_sale):
        first = InstructorCommissionService.accrue(instructor, course, make_sale(), 100000)
        InstructorCommissionService.accrue(instructor, course, make_sale(), 100000)
        InstructorCommissionService.mark_paid([first.id])

        summary = InstructorCommissionService.summary(instructor)

        assert summary["pending_count"] == 1
        assert summary["paid_count"] == 1
        assert summary["cancelled_count"] == 0
        assert summary["total_earnings_paisa"] == 60000


@pytest.mark.django_db
class TestUpdateCommissionRate:
    @pytest.mark.parametrize("rate", ["-1", "100.01", "abc"])
    def test_rejects_invalid_rates(self, rate):
        instructor = InstructorFactory()

        with pytest.raises(InvalidCommissionRateError):
            InstructorCommissionService.update_commission_rate(instructor, rate)

    def test_accepts_bounds(self):
        instructor = InstructorFactory()

        assert InstructorCommissionService.update_commission_rate(instructor, 0).commission_rate == Decimal("0.00")
        assert InstructorCommissionService.update_commission_rate(instructor, 100).commission_rate == Decimal("100.00")


@pytest.mark.django_db
class TestAffiliateService:
    def test_register_creates_pending_affiliate(self, user):
        affiliate = AffiliateService.register(user)

        assert affiliate.status == AffiliateStatus.PENDING
        assert len(affiliate.affiliate_code) == 8
        assert affiliate.affiliate_code == affiliate.affiliate_code.upper()

    def test_register_is_idempotent(self, user):
        first = AffiliateService.register(user)
        second = AffiliateService.register(user)

        assert first.pk == second.pk

    def test_resolve_code_is_case_insensitive_and_approved_only(self, user):
        affiliate = AffiliateService.register(user)

        assert AffiliateService.resolve_code(affiliate.affiliate_code.lower()) is None

        AffiliateService.approve(affiliate)
        resolved = AffiliateService.resolve_code(f" {affiliate.affiliate_code.lower()} ")
        assert resolved.pk == affiliate.pk

        AffiliateService.suspend(affiliate)
        assert AffiliateService.resolve_code(affiliate.affiliate_code) is None

    def test_resolve_empty_code(self):
        assert AffiliateService.resolve_code("") is None
        assert AffiliateService.resolve_code(None) is None
