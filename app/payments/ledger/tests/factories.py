"""
Factory Boy factories for ledger models and the earning rows statements read.

Expense.status and Earning.status are protected FSM fields: pass the
status at creation (or use a trait) instead of assigning it later.

Usage:
    from payments.ledger.tests.factories import ExpenseFactory, TransactionFactory

    TransactionFactory(type=TransactionType.INCOME, amount_paisa=150000)
    ExpenseFactory(paid=True, category=ExpenseCategory.MARKETING)
"""

from decimal import Decimal

import factory
from django.utils import timezone

from earnings.models import AffiliateEarning, EarningStatus, InstructorEarning
from earnings.tests.factories import AffiliateFactory, InstructorFactory
from payments.ledger.models import (
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from payments.tests.factories import PaymentFactory


class TransactionFactory(factory.django.DjangoModelFactory):
    """Course sale income row without a payment."""

    class Meta:
        model = Transaction

    type = TransactionType.INCOME
    category = TransactionCategory.COURSE_SALE
    amount_paisa = 150000
    currency = "NPR"
    idempotency_key = factory.Sequence(lambda n: f"test:{n}")
    transaction_date = factory.LazyFunction(timezone.now)


class ExpenseFactory(factory.django.DjangoModelFactory):
    """
    Pending operating expense.

    Traits:
        approved: APPROVED with approved_at set
        paid: PAID with paid_date set
        rejected: REJECTED with a reason
    """

    class Meta:
        model = Expense

    title = factory.Sequence(lambda n: f"Expense {n}")
    category = ExpenseCategory.INFRASTRUCTURE
    amount_paisa = 20000
    status = ExpenseStatus.PENDING

    class Params:
        approved = factory.Trait(
            status=ExpenseStatus.APPROVED,
            approved_at=factory.LazyFunction(timezone.now),
        )
        paid = factory.Trait(
            status=ExpenseStatus.PAID,
            approved_at=factory.LazyFunction(timezone.now),
            paid_date=factory.LazyFunction(timezone.now),
        )
        rejected = factory.Trait(
            status=ExpenseStatus.REJECTED,
            rejection_reason="Not budgeted",
        )


class InstructorEarningFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InstructorEarning

    payment = factory.SubFactory(PaymentFactory, completed=True)
    course = factory.SelfAttribute("payment.course")
    instructor = factory.SubFactory(InstructorFactory)
    amount_paisa = 45000
    commission_rate = Decimal("30.00")
    status = EarningStatus.PENDING


class AffiliateEarningFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = AffiliateEarning

    payment = factory.SubFactory(PaymentFactory, completed=True)
    course = factory.SelfAttribute("payment.course")
    affiliate = factory.SubFactory(AffiliateFactory)
    amount_paisa = 15000
    commission_rate = Decimal("10.00")
    status = EarningStatus.PENDING
