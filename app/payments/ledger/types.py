"""
Data types for ledger operations.

Types:
    RecordTransactionParams: Parameters for appending a ledger row
    AccountBalance: Derived balance over a date range

Usage:
    from payments.ledger.types import RecordTransactionParams

    params = RecordTransactionParams(
        type=TransactionType.INCOME,
        category=TransactionCategory.COURSE_SALE,
        amount_paisa=150000,
        idempotency_key=f"payment:{payment.id}:income",
        payment=payment,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from authentication.models import User
    from earnings.models import AffiliateEarning, InstructorEarning
    from payments.ledger.models import Expense
    from payments.models import Payment


@dataclass
class RecordTransactionParams:
    """
    Parameters for recording a ledger transaction.

    Required Attributes:
        type: TransactionType value (income, expense, refund, commission, salary)
        category: TransactionCategory value
        amount_paisa: Positive amount in paisa; the type decides the sign
        idempotency_key: Unique key; a second record() with the same key
            returns the first row

    Optional Attributes:
        payment / expense / instructor_earning / affiliate_earning: Source row
        description: Human-readable description
        reference_number: External or internal reference
        transaction_date: Effective date (defaults to now)
        metadata: Arbitrary JSON-serializable data
        recorded_by: User who caused the entry, if any
    """

    type: str
    category: str
    amount_paisa: int
    idempotency_key: str

    payment: Payment | None = None
    expense: Expense | None = None
    instructor_earning: InstructorEarning | None = None
    affiliate_earning: AffiliateEarning | None = None
    description: str = ""
    reference_number: str = ""
    transaction_date: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    recorded_by: User | None = None

    def __post_init__(self) -> None:
        """Validate params after initialization."""
        if self.amount_paisa <= 0:
            raise ValueError("amount_paisa must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class AccountBalance:
    """
    Running balance derived from ledger rows.

    ``balance_paisa`` = income + refund - expense - commission - salary.
    """

    income_paisa: int = 0
    refund_paisa: int = 0
    expense_paisa: int = 0
    commission_paisa: int = 0
    salary_paisa: int = 0
    transaction_count: int = 0

    @property
    def credits_paisa(self) -> int:
        return self.income_paisa + self.refund_paisa

    @property
    def debits_paisa(self) -> int:
        return self.expense_paisa + self.commission_paisa + self.salary_paisa

    @property
    def balance_paisa(self) -> int:
        return self.credits_paisa - self.debits_paisa

    def to_dict(self) -> dict[str, int]:
        return {
            "income_paisa": self.income_paisa,
            "refund_paisa": self.refund_paisa,
            "expense_paisa": self.expense_paisa,
            "commission_paisa": self.commission_paisa,
            "salary_paisa": self.salary_paisa,
            "balance_paisa": self.balance_paisa,
            "transaction_count": self.transaction_count,
        }
