"""
Ledger service layer.

All ledger writes go through LedgerService so every row is idempotent by
key and immutable once written. ExpenseService drives the expense
approval flow and records the ledger row when an expense is paid.

Usage:
    from payments.ledger.services import LedgerService
    from payments.ledger.types import RecordTransactionParams

    txn = LedgerService.record(RecordTransactionParams(
        type=TransactionType.INCOME,
        category=TransactionCategory.COURSE_SALE,
        amount_paisa=150000,
        idempotency_key=f"payment:{payment.id}:income",
        payment=payment,
    ))
    balance = LedgerService.get_balance()
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, models, transaction
from django.db.models import Case, Count, Sum, Value, When
from django.db.models.functions import Coalesce
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from core.services import BaseService
from payments.ledger.exceptions import (
    ExpenseNotFoundError,
    ExpenseStateError,
    ExpenseValidationError,
)
from payments.ledger.models import (
    Expense,
    ExpenseCategory,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from payments.ledger.types import AccountBalance, RecordTransactionParams

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)

# Expense categories reported under their own ledger category; the rest
# are operating expenses.
EXPENSE_TRANSACTION_CATEGORIES = {
    ExpenseCategory.MARKETING: TransactionCategory.MARKETING,
    ExpenseCategory.INFRASTRUCTURE: TransactionCategory.INFRASTRUCTURE,
}


def _sum_of_type(txn_type: str):
    return Coalesce(
        Sum(
            Case(
                When(type=txn_type, then="amount_paisa"),
                default=Value(0),
                output_field=models.BigIntegerField(),
            )
        ),
        Value(0),
        output_field=models.BigIntegerField(),
    )


def filter_by_date(
    queryset: QuerySet,
    start: datetime | None,
    end: datetime | None,
    field: str = "transaction_date",
) -> QuerySet:
    """Restrict ``queryset`` to ``start <= field < end`` where given."""
    if start is not None:
        queryset = queryset.filter(**{f"{field}__gte": start})
    if end is not None:
        queryset = queryset.filter(**{f"{field}__lt": end})
    return queryset


class LedgerService:
    """
    Service class for ledger operations.

    Key features:
    - Idempotency via unique keys (safe to retry and to call from
      at-least-once webhook processing)
    - Rows are immutable; the balance is always derived

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def record(params: RecordTransactionParams) -> Transaction:
        """
        Append a ledger transaction.

        Idempotent - if a row with the same idempotency_key already exists,
        that row is returned unchanged.
        """
        with transaction.atomic():
            existing = Transaction.objects.filter(
                idempotency_key=params.idempotency_key
            ).first()
            if existing is not None:
                return existing

            try:
                with transaction.atomic():
                    txn = Transaction.objects.create(
                        type=params.type,
                        category=params.category,
                        amount_paisa=params.amount_paisa,
                        currency=settings.PAYMENT_CURRENCY,
                        description=params.description,
                        payment=params.payment,
                        expense=params.expense,
                        instructor_earning=params.instructor_earning,
                        affiliate_earning=params.affiliate_earning,
                        transaction_date=params.transaction_date or timezone.now(),
                        reference_number=params.reference_number,
                        idempotency_key=params.idempotency_key,
                        metadata=params.metadata or {},
                        recorded_by=params.recorded_by,
                    )
            except IntegrityError:
                # Another process recorded the same key between check and create
                return Transaction.objects.get(idempotency_key=params.idempotency_key)

        logger.info(
            f"Recorded ledger transaction {txn.type}/{txn.category}",
            extra={
                "transaction_id": str(txn.id),
                "amount_paisa": txn.amount_paisa,
                "idempotency_key": txn.idempotency_key,
            },
        )
        return txn

    @staticmethod
    def get_balance(
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AccountBalance:
        """
        Compute the balance from ledger rows in ``[start, end)``.

        Income and refund rows add; expense, commission and salary rows
        subtract.
        """
        queryset = filter_by_date(Transaction.objects.all(), start, end)
        totals = queryset.aggregate(
            income=_sum_of_type(TransactionType.INCOME),
            refund=_sum_of_type(TransactionType.REFUND),
            expense=_sum_of_type(TransactionType.EXPENSE),
            commission=_sum_of_type(TransactionType.COMMISSION),
            salary=_sum_of_type(TransactionType.SALARY),
            count=Count("id"),
        )
        return AccountBalance(
            income_paisa=totals["income"],
            refund_paisa=totals["refund"],
            expense_paisa=totals["expense"],
            commission_paisa=totals["commission"],
            salary_paisa=totals["salary"],
            transaction_count=totals["count"],
        )

    @staticmethod
    def list_transactions(
        txn_type: str | None = None,
        category: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> QuerySet[Transaction]:
        queryset = Transaction.objects.select_related("payment")
        if txn_type:
            queryset = queryset.filter(type=txn_type)
        if category:
            queryset = queryset.filter(category=category)
        return filter_by_date(queryset, start, end)

    @staticmethod
    def get_transactions_for_payment(payment_id: uuid.UUID) -> list[Transaction]:
        return list(
            Transaction.objects.filter(payment_id=payment_id).order_by("created_at")
        )


class ExpenseService(BaseService):
    """
    Expense approval flow.

    Methods:
        create: Submit a pending expense
        approve / reject: Decide a pending expense
        mark_paid: Pay an approved expense and record the ledger row
    """

    @classmethod
    def create(
        cls,
        title: str,
        amount_paisa: int,
        category: str = ExpenseCategory.OTHER,
        submitted_by: User | None = None,
        description: str = "",
        vendor: str = "",
        invoice_number: str = "",
    ) -> Expense:
        if amount_paisa <= 0:
            raise ExpenseValidationError(
                "Expense amount must be positive",
                details={"amount_paisa": amount_paisa},
            )

        expense = Expense.objects.create(
            title=title,
            amount_paisa=amount_paisa,
            category=category,
            submitted_by=submitted_by,
            description=description,
            vendor=vendor,
            invoice_number=invoice_number,
        )
        cls.get_logger().info(f"Expense {expense.id} submitted for {amount_paisa} paisa")
        return expense

    @classmethod
    def approve(cls, expense_id: uuid.UUID, approved_by: User | None = None) -> Expense:
        with transaction.atomic():
            expense = cls._get_locked(expense_id)
            cls._transition(expense, "approve", approved_by=approved_by)
            expense.save()
        return expense

    @classmethod
    def reject(
        cls,
        expense_id: uuid.UUID,
        rejected_by: User | None = None,
        reason: str = "",
    ) -> Expense:
        with transaction.atomic():
            expense = cls._get_locked(expense_id)
            cls._transition(expense, "reject", rejected_by=rejected_by, reason=reason)
            expense.save()
        return expense

    @classmethod
    def mark_paid(
        cls,
        expense_id: uuid.UUID,
        paid_date: datetime | None = None,
        recorded_by: User | None = None,
    ) -> Expense:
        """
        Pay an approved expense and append the matching EXPENSE row.

        Raises:
            ExpenseNotFoundError: Unknown expense
            ExpenseStateError: Expense is not APPROVED
        """
        with transaction.atomic():
            expense = cls._get_locked(expense_id)
            cls._transition(expense, "mark_paid", paid_date=paid_date)
            expense.save()

            LedgerService.record(
                RecordTransactionParams(
                    type=TransactionType.EXPENSE,
                    category=EXPENSE_TRANSACTION_CATEGORIES.get(
                        expense.category, TransactionCategory.OPERATING_EXPENSE
                    ),
                    amount_paisa=expense.amount_paisa,
                    idempotency_key=f"expense:{expense.id}:paid",
                    expense=expense,
                    description=expense.title,
                    reference_number=expense.invoice_number,
                    transaction_date=expense.paid_date,
                    metadata={"expense_category": expense.category},
                    recorded_by=recorded_by,
                )
            )

        cls.get_logger().info(f"Expense {expense.id} paid")
        return expense

    @staticmethod
    def _get_locked(expense_id: uuid.UUID) -> Expense:
        try:
            return Expense.objects.select_for_update().get(id=expense_id)
        except Expense.DoesNotExist:
            raise ExpenseNotFoundError(
                f"Expense {expense_id} not found",
                details={"expense_id": str(expense_id)},
            )

    @staticmethod
    def _transition(expense: Expense, name: str, **kwargs) -> None:
        try:
            getattr(expense, name)(**kwargs)
        except TransitionNotAllowed:
            raise ExpenseStateError(
                f"Cannot {name.replace('_', ' ')} expense in status {expense.status}",
                details={"expense_id": str(expense.id), "status": expense.status},
            )
