"""
Ledger models.

- Transaction: Immutable, single-sided financial row (income, expense,
  refund, commission, salary). The running balance is derived from these
  rows and never stored.
- Expense: Operating cost that goes through an approval flow and hits
  the ledger when it is paid.

Usage:
    from payments.ledger.models import Transaction, TransactionType

    Transaction.objects.filter(type=TransactionType.INCOME).count()
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import ImmutableModelMixin, UUIDPrimaryKeyMixin


class TransactionType(models.TextChoices):
    """
    Types of ledger transactions.

    INCOME and REFUND add to the balance; every other type subtracts.
    REFUND means money coming back to the platform (e.g. a reversed
    commission). Money returned to a customer is an EXPENSE with category
    CUSTOMER_REFUND.
    """

    INCOME = "income", "Income"
    EXPENSE = "expense", "Expense"
    REFUND = "refund", "Refund"
    COMMISSION = "commission", "Commission"
    SALARY = "salary", "Salary"


CREDIT_TYPES = (TransactionType.INCOME, TransactionType.REFUND)


class TransactionCategory(models.TextChoices):
    COURSE_SALE = "course_sale", "Course Sale"
    PRODUCT_SALE = "product_sale", "Product Sale"
    CUSTOMER_REFUND = "customer_refund", "Customer Refund"
    INSTRUCTOR_COMMISSION = "instructor_commission", "Instructor Commission"
    AFFILIATE_COMMISSION = "affiliate_commission", "Affiliate Commission"
    COMMISSION_REVERSAL = "commission_reversal", "Commission Reversal"
    COMMISSION_PAYOUT = "commission_payout", "Commission Payout"
    MARKETING = "marketing", "Marketing"
    INFRASTRUCTURE = "infrastructure", "Infrastructure"
    OPERATING_EXPENSE = "operating_expense", "Operating Expense"
    OTHER = "other", "Other"


class ExpenseCategory(models.TextChoices):
    MARKETING = "marketing", "Marketing"
    INFRASTRUCTURE = "infrastructure", "Infrastructure"
    SOFTWARE = "software", "Software"
    OFFICE = "office", "Office"
    SALARY = "salary", "Salary"
    OTHER = "other", "Other"


class ExpenseStatus(models.TextChoices):
    """
    Expense approval lifecycle.

    State Flow:
        PENDING -> APPROVED -> PAID
        PENDING -> REJECTED
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    PAID = "paid", "Paid"


class Expense(UUIDPrimaryKeyMixin, BaseModel):
    """
    Operating expense awaiting approval or payment.

    Fields:
        title: Short description
        category: ExpenseCategory
        amount_paisa: Amount in paisa
        status: FSM-managed approval status
        submitted_by / approved_by: Users involved in approval
        paid_date: When the expense was paid
        invoice_number: Supplier invoice reference
    """

    title = models.CharField(
        max_length=200,
        help_text="Short description of the expense",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Longer description or justification",
    )

    category = models.CharField(
        max_length=30,
        choices=ExpenseCategory.choices,
        default=ExpenseCategory.OTHER,
        db_index=True,
        help_text="Expense category",
    )

    amount_paisa = models.PositiveBigIntegerField(
        help_text="Expense amount in paisa",
    )

    vendor = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Supplier or payee",
    )

    invoice_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Supplier invoice number",
    )

    status = FSMField(
        default=ExpenseStatus.PENDING,
        choices=ExpenseStatus.choices,
        db_index=True,
        protected=True,
        help_text="Approval status (managed by FSM)",
    )

    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="submitted_expenses",
        help_text="User who submitted the expense",
    )

    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_expenses",
        help_text="Administrator who approved or rejected the expense",
    )

    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the expense was approved or rejected",
    )

    rejection_reason = models.TextField(
        blank=True,
        default="",
        help_text="Why the expense was rejected",
    )

    paid_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the expense was paid",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Expense"
        verbose_name_plural = "Expenses"
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_paisa__gt=0),
                name="expense_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Expense({self.title}, {self.amount_paisa}, {self.status})"

    @transition(field=status, source=ExpenseStatus.PENDING, target=ExpenseStatus.APPROVED)
    def approve(self, approved_by=None):
        self.approved_by = approved_by
        self.approved_at = timezone.now()

    @transition(field=status, source=ExpenseStatus.PENDING, target=ExpenseStatus.REJECTED)
    def reject(self, rejected_by=None, reason: str = ""):
        self.approved_by = rejected_by
        self.approved_at = timezone.now()
        self.rejection_reason = reason or ""

    @transition(field=status, source=ExpenseStatus.APPROVED, target=ExpenseStatus.PAID)
    def mark_paid(self, paid_date=None):
        self.paid_date = paid_date or timezone.now()


class Transaction(UUIDPrimaryKeyMixin, ImmutableModelMixin, models.Model):
    """
    An immutable ledger row.

    Amounts are always positive; ``type`` decides whether the row adds to
    or subtracts from the balance. Corrections are appended as new rows.

    Constraints:
        - amount_paisa must be positive
        - idempotency_key must be unique
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this row was recorded",
    )

    type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
        help_text="Transaction type (decides balance sign)",
    )

    category = models.CharField(
        max_length=40,
        choices=TransactionCategory.choices,
        db_index=True,
        help_text="Reporting category",
    )

    amount_paisa = models.PositiveBigIntegerField(
        help_text="Amount in paisa (always positive)",
    )

    currency = models.CharField(
        max_length=3,
        default="NPR",
        help_text="ISO 4217 currency code",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Human-readable description of this row",
    )

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_transactions",
        help_text="Originating payment",
    )

    expense = models.ForeignKey(
        Expense,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_transactions",
        help_text="Originating expense",
    )

    instructor_earning = models.ForeignKey(
        "earnings.InstructorEarning",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_transactions",
        help_text="Originating instructor earning",
    )

    affiliate_earning = models.ForeignKey(
        "earnings.AffiliateEarning",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="ledger_transactions",
        help_text="Originating affiliate earning",
    )

    transaction_date = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="Effective date used for balances and statements",
    )

    reference_number = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Internal or external reference number",
    )

    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique key to prevent duplicate rows",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON data for extensibility",
    )

    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User whose action produced this row",
    )

    class Meta:
        ordering = ["-transaction_date", "-created_at"]
        verbose_name = "Transaction"
        verbose_name_plural = "Transactions"
        indexes = [
            models.Index(fields=["type", "transaction_date"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_paisa__gt=0),
                name="ledger_transaction_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()}: {self.amount_paisa} paisa"

    @property
    def signed_amount_paisa(self) -> int:
        """Effect of this row on the balance."""
        return self.amount_paisa if self.type in CREDIT_TYPES else -self.amount_paisa
