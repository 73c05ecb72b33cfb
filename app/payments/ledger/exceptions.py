"""
Ledger-specific exceptions.

Exception Hierarchy:
    LedgerError (base)
    ├── ExpenseNotFoundError - Expense lookup failures
    ├── ExpenseValidationError - Rejected expense input
    └── ExpenseStateError - Illegal expense status change

Usage:
    from payments.ledger.exceptions import ExpenseStateError

    raise ExpenseStateError(
        "Only approved expenses can be paid",
        details={"expense_id": str(expense.id), "status": expense.status},
    )
"""

from __future__ import annotations

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError, ValidationError


class LedgerError(BaseApplicationError):
    """Base exception for ledger and expense operations."""

    default_error_code: str = "LEDGER_ERROR"


class ExpenseNotFoundError(LedgerError, NotFoundError):
    """Raised when an expense cannot be found."""

    default_error_code: str = "EXPENSE_NOT_FOUND"


class ExpenseValidationError(LedgerError, ValidationError):
    """Raised when expense input breaks a business rule."""

    default_error_code: str = "EXPENSE_VALIDATION_ERROR"


class ExpenseStateError(LedgerError, ConflictError):
    """Raised when an expense transition is not allowed from its current status."""

    default_error_code: str = "EXPENSE_STATE_ERROR"


__all__ = [
    "ExpenseNotFoundError",
    "ExpenseStateError",
    "ExpenseValidationError",
    "LedgerError",
]
