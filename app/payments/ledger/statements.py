"""
Financial statements built from the ledger, earnings and expenses.

Revenue and customer refunds come from ledger rows; commissions come
from earning rows (paid earnings are cost of sales, pending ones are
liabilities); operating expenses come from paid Expense rows. All
amounts are integer paisa; margins are percentages rounded to two
decimal places.

Usage:
    from payments.ledger.statements import FinancialStatementService

    statement = FinancialStatementService.profit_and_loss(start, end)
    csv_text = FinancialStatementService.export_profit_and_loss_csv(start, end)
"""

from __future__ import annotations

import csv
import io
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db.models import Count, Sum
from django.db.models.functions import Coalesce

from earnings.models import AffiliateEarning, EarningStatus, InstructorEarning
from payments.adapters.base import paisa_to_rupees
from payments.ledger.models import (
    Expense,
    ExpenseCategory,
    ExpenseStatus,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from payments.ledger.services import filter_by_date


def percentage(part: int, whole: int) -> Decimal:
    if whole <= 0:
        return Decimal("0.00")
    return (Decimal(part) * 100 / Decimal(whole)).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def format_rupees(amount_paisa: int) -> str:
    """Signed rupee string: -150 -> '-1.50'."""
    sign = "-" if amount_paisa < 0 else ""
    return f"{sign}{paisa_to_rupees(abs(amount_paisa))}"


def _total(queryset, field_name: str = "amount_paisa") -> int:
    return queryset.aggregate(total=Coalesce(Sum(field_name), 0))["total"]


# =============================================================================
# Statement Types
# =============================================================================


@dataclass
class IncomeStatement:
    course_sales_paisa: int = 0
    product_sales_paisa: int = 0
    customer_refunds_paisa: int = 0
    payment_count: int = 0
    by_method: dict[str, int] = field(default_factory=dict)
    by_course: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total_paisa(self) -> int:
        return self.course_sales_paisa + self.product_sales_paisa

    @property
    def net_paisa(self) -> int:
        return self.total_paisa - self.customer_refunds_paisa

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "total_paisa": self.total_paisa, "net_paisa": self.net_paisa}


@dataclass
class CommissionBreakdown:
    total_paisa: int = 0
    paid_paisa: int = 0
    pending_paisa: int = 0
    count: int = 0


@dataclass
class CommissionStatement:
    instructor: CommissionBreakdown = field(default_factory=CommissionBreakdown)
    affiliate: CommissionBreakdown = field(default_factory=CommissionBreakdown)

    @property
    def paid_paisa(self) -> int:
        return self.instructor.paid_paisa + self.affiliate.paid_paisa

    @property
    def pending_paisa(self) -> int:
        return self.instructor.pending_paisa + self.affiliate.pending_paisa

    def to_dict(self) -> dict[str, Any]:
        return {
            "instructor": asdict(self.instructor),
            "affiliate": asdict(self.affiliate),
            "paid_paisa": self.paid_paisa,
            "pending_paisa": self.pending_paisa,
        }


@dataclass
class ExpenseStatement:
    by_category: dict[str, int] = field(default_factory=dict)
    pending_paisa: int = 0
    count: int = 0

    @property
    def total_paisa(self) -> int:
        return sum(self.by_category.values())

    @property
    def operating_paisa(self) -> int:
        """Paid expenses other than salaries (commissions are cost of sales)."""
        return sum(
            amount
            for category, amount in self.by_category.items()
            if category != ExpenseCategory.SALARY
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **asdict(self),
            "total_paisa": self.total_paisa,
            "operating_paisa": self.operating_paisa,
        }


@dataclass
class ProfitAndLoss:
    """
    Profit and loss for a period.

    net_revenue = sales - customer refunds
    gross_profit = net_revenue - paid commissions
    net_profit = gross_profit - operating expenses
    """

    start: datetime | None
    end: datetime | None
    income: IncomeStatement
    commissions: CommissionStatement
    expenses: ExpenseStatement

    @property
    def net_revenue_paisa(self) -> int:
        return self.income.net_paisa

    @property
    def cost_of_sales_paisa(self) -> int:
        return self.commissions.paid_paisa

    @property
    def gross_profit_paisa(self) -> int:
        return self.net_revenue_paisa - self.cost_of_sales_paisa

    @property
    def net_profit_paisa(self) -> int:
        return self.gross_profit_paisa - self.expenses.operating_paisa

    @property
    def gross_margin(self) -> Decimal:
        return percentage(self.gross_profit_paisa, self.net_revenue_paisa)

    @property
    def net_margin(self) -> Decimal:
        return percentage(self.net_profit_paisa, self.net_revenue_paisa)

    @property
    def pending_liabilities_paisa(self) -> int:
        return self.commissions.pending_paisa + self.expenses.pending_paisa

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": {
                "start": self.start.isoformat() if self.start else None,
                "end": self.end.isoformat() if self.end else None,
            },
            "income": self.income.to_dict(),
            "commissions": self.commissions.to_dict(),
            "expenses": self.expenses.to_dict(),
            "net_revenue_paisa": self.net_revenue_paisa,
            "cost_of_sales_paisa": self.cost_of_sales_paisa,
            "gross_profit_paisa": self.gross_profit_paisa,
            "gross_margin": str(self.gross_margin),
            "net_profit_paisa": self.net_profit_paisa,
            "net_margin": str(self.net_margin),
            "pending_liabilities_paisa": self.pending_liabilities_paisa,
        }


# =============================================================================
# Statement Service
# =============================================================================


class FinancialStatementService:
    """Read-only statements over ``[start, end)``; None means unbounded."""

    @staticmethod
    def income(start: datetime | None = None, end: datetime | None = None) -> IncomeStatement:
        rows = filter_by_date(Transaction.objects.all(), start, end)
        sales = rows.filter(type=TransactionType.INCOME)

        by_method = {
            row["payment__method"]: row["total"]
            for row in sales.filter(payment__isnull=False)
            .values("payment__method")
            .annotate(total=Sum("amount_paisa"))
            .order_by("payment__method")
        }
        by_course = [
            {
                "course_id": str(row["payment__course_id"]),
                "course_title": row["payment__course__title"],
                "total_paisa": row["total"],
                "count": row["count"],
            }
            for row in sales.filter(category=TransactionCategory.COURSE_SALE)
            .values("payment__course_id", "payment__course__title")
            .annotate(total=Sum("amount_paisa"), count=Count("id"))
            .order_by("-total")
        ]

        paid_payments = sales.filter(payment__isnull=False).values("payment_id").distinct()

        return IncomeStatement(
            course_sales_paisa=_total(sales.filter(category=TransactionCategory.COURSE_SALE)),
            product_sales_paisa=_total(sales.filter(category=TransactionCategory.PRODUCT_SALE)),
            customer_refunds_paisa=_total(
                rows.filter(
                    type=TransactionType.EXPENSE,
                    category=TransactionCategory.CUSTOMER_REFUND,
                )
            ),
            payment_count=paid_payments.count(),
            by_method=by_method,
            by_course=by_course,
        )

    @staticmethod
    def commissions(
        start: datetime | None = None, end: datetime | None = None
    ) -> CommissionStatement:
        def breakdown(model) -> CommissionBreakdown:
            earnings = filter_by_date(
                model.objects.exclude(status=EarningStatus.CANCELLED),
                start,
                end,
                field="created_at",
            )
            return CommissionBreakdown(
                total_paisa=_total(earnings),
                paid_paisa=_total(earnings.filter(status=EarningStatus.PAID)),
                pending_paisa=_total(earnings.filter(status=EarningStatus.PENDING)),
                count=earnings.count(),
            )

        return CommissionStatement(
            instructor=breakdown(InstructorEarning),
            affiliate=breakdown(AffiliateEarning),
        )

    @staticmethod
    def expenses(start: datetime | None = None, end: datetime | None = None) -> ExpenseStatement:
        paid = filter_by_date(
            Expense.objects.filter(status=ExpenseStatus.PAID), start, end, field="paid_date"
        )
        by_category = {
            row["category"]: row["total"]
            for row in paid.values("category")
            .annotate(total=Sum("amount_paisa"))
            .order_by("category")
        }
        pending = filter_by_date(
            Expense.objects.filter(status__in=[ExpenseStatus.PENDING, ExpenseStatus.APPROVED]),
            start,
            end,
            field="created_at",
        )
        return ExpenseStatement(
            by_category=by_category,
            pending_paisa=_total(pending),
            count=paid.count(),
        )

    @classmethod
    def profit_and_loss(
        cls, start: datetime | None = None, end: datetime | None = None
    ) -> ProfitAndLoss:
        return ProfitAndLoss(
            start=start,
            end=end,
            income=cls.income(start, end),
            commissions=cls.commissions(start, end),
            expenses=cls.expenses(start, end),
        )

    @classmethod
    def export_profit_and_loss_csv(
        cls, start: datetime | None = None, end: datetime | None = None
    ) -> str:
        """Render the profit and loss statement as CSV with rupee amounts."""
        statement = cls.profit_and_loss(start, end)
        period = (
            f"{start.date().isoformat() if start else 'All time'} to "
            f"{end.date().isoformat() if end else 'Now'}"
        )

        rows: list[list[str]] = [
            ["Profit & Loss Statement", ""],
            ["Period", period],
            [],
            ["REVENUE", ""],
            ["Course Sales", format_rupees(statement.income.course_sales_paisa)],
            ["Product Sales", format_rupees(statement.income.product_sales_paisa)],
            ["Customer Refunds", format_rupees(-statement.income.customer_refunds_paisa)],
            ["Net Revenue", format_rupees(statement.net_revenue_paisa)],
            [],
            ["COST OF SALES", ""],
            [
                "Instructor Commissions",
                format_rupees(statement.commissions.instructor.paid_paisa),
            ],
            [
                "Affiliate Commissions",
                format_rupees(statement.commissions.affiliate.paid_paisa),
            ],
            ["Total Cost of Sales", format_rupees(statement.cost_of_sales_paisa)],
            [],
            ["Gross Profit", format_rupees(statement.gross_profit_paisa)],
            ["Gross Margin", f"{statement.gross_margin}%"],
            [],
            ["OPERATING EXPENSES", ""],
        ]
        for category, label in ExpenseCategory.choices:
            if category == ExpenseCategory.SALARY:
                continue
            rows.append([label, format_rupees(statement.expenses.by_category.get(category, 0))])
        rows += [
            ["Total Operating Expenses", format_rupees(statement.expenses.operating_paisa)],
            [],
            ["NET PROFIT/LOSS", format_rupees(statement.net_profit_paisa)],
            ["Net Margin", f"{statement.net_margin}%"],
            [],
            ["Pending Liabilities", format_rupees(statement.pending_liabilities_paisa)],
        ]

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerows(rows)
        return buffer.getvalue()
