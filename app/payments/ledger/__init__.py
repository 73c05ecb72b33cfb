"""
Ledger - single-sided financial transactions and expenses.

Every monetary movement the platform cares about (sales, customer
refunds, commissions, payouts, operating expenses) is an immutable
Transaction row. The balance is derived from the rows, never stored.

Public API:
    Models:
        Transaction - Immutable ledger row
        TransactionType - Decides whether a row adds or subtracts
        TransactionCategory - Reporting category
        Expense / ExpenseStatus / ExpenseCategory - Expense approval flow

    Services:
        LedgerService - record, get_balance, list_transactions
        ExpenseService - create, approve, reject, mark_paid

    Types:
        RecordTransactionParams - Parameters for recording a row
        AccountBalance - Derived balance

Statements and analytics live in ``payments.ledger.statements`` and
``payments.ledger.analytics``.

Usage:
    from payments.ledger import LedgerService, RecordTransactionParams, TransactionType

    LedgerService.record(RecordTransactionParams(
        type=TransactionType.INCOME,
        category=TransactionCategory.COURSE_SALE,
        amount_paisa=150000,
        idempotency_key=f"payment:{payment.id}:income",
        payment=payment,
    ))
    print(LedgerService.get_balance().balance_paisa)
"""

from .exceptions import ExpenseNotFoundError, ExpenseStateError, LedgerError
from .models import (
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from .services import ExpenseService, LedgerService
from .types import AccountBalance, RecordTransactionParams

__all__ = [
    # Models
    "Expense",
    "ExpenseCategory",
    "ExpenseStatus",
    "Transaction",
    "TransactionCategory",
    "TransactionType",
    # Services
    "ExpenseService",
    "LedgerService",
    # Types
    "AccountBalance",
    "RecordTransactionParams",
    # Exceptions
    "ExpenseNotFoundError",
    "ExpenseStateError",
    "LedgerError",
]
