"""
Payment analytics for the finance dashboard.

"Collected" payments are those that reached COMPLETED, including ones
later partially or fully refunded. Revenue is the sum of their final
amounts; refunded is the sum of ``refunded_paisa``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from django.db.models import Count, Q, Sum
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone

from payments.ledger.statements import percentage
from payments.models import Payment
from payments.state_machines import PaymentStatus

COLLECTED_STATUSES = (
    PaymentStatus.COMPLETED,
    PaymentStatus.PARTIALLY_REFUNDED,
    PaymentStatus.REFUNDED,
)

DEFAULT_PERIOD_DAYS = 30


@dataclass
class PaymentOverview:
    start: datetime
    end: datetime
    total_count: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    revenue_paisa: int = 0
    refunded_paisa: int = 0
    collected_count: int = 0
    by_method: list[dict[str, Any]] = field(default_factory=list)
    daily: list[dict[str, Any]] = field(default_factory=list)

    @property
    def net_revenue_paisa(self) -> int:
        return self.revenue_paisa - self.refunded_paisa

    @property
    def success_rate(self) -> Decimal:
        return percentage(self.collected_count, self.total_count)

    @property
    def average_value_paisa(self) -> int:
        if not self.collected_count:
            return 0
        return int(
            (Decimal(self.revenue_paisa) / self.collected_count).quantize(
                Decimal("1"), rounding=ROUND_HALF_UP
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": {"start": self.start.isoformat(), "end": self.end.isoformat()},
            "total_count": self.total_count,
            "by_status": self.by_status,
            "collected_count": self.collected_count,
            "revenue_paisa": self.revenue_paisa,
            "refunded_paisa": self.refunded_paisa,
            "net_revenue_paisa": self.net_revenue_paisa,
            "success_rate": str(self.success_rate),
            "average_value_paisa": self.average_value_paisa,
            "by_method": self.by_method,
            "daily": self.daily,
        }


class PaymentAnalyticsService:
    @staticmethod
    def _period(start: datetime | None, end: datetime | None) -> tuple[datetime, datetime]:
        end = end or timezone.now()
        start = start or end - timedelta(days=DEFAULT_PERIOD_DAYS)
        return start, end

    @classmethod
    def overview(
        cls,
        start: datetime | None = None,
        end: datetime | None = None,
        method: str | None = None,
    ) -> PaymentOverview:
        """Counts, revenue and method breakdown for payments created in [start, end]."""
        start, end = cls._period(start, end)
        payments = Payment.objects.filter(created_at__gte=start, created_at__lte=end)
        if method:
            payments = payments.filter(method=method)

        collected = payments.filter(status__in=COLLECTED_STATUSES)
        totals = collected.aggregate(
            revenue=Coalesce(Sum("final_amount_paisa"), 0),
            refunded=Coalesce(Sum("refunded_paisa"), 0),
            count=Count("id"),
        )

        by_status = {status: 0 for status in PaymentStatus.values}
        for row in payments.values("status").annotate(count=Count("id")).order_by("status"):
            by_status[row["status"]] = row["count"]

        by_method = [
            {
                "method": row["method"],
                "count": row["count"],
                "revenue_paisa": row["revenue"],
            }
            for row in payments.values("method")
            .annotate(
                count=Count("id"),
                revenue=Coalesce(
                    Sum("final_amount_paisa", filter=Q(status__in=COLLECTED_STATUSES)), 0
                ),
            )
            .order_by("-count", "method")
        ]

        daily = [
            {"date": row["day"].isoformat(), "count": row["count"], "revenue_paisa": row["revenue"]}
            for row in collected.annotate(day=TruncDate("created_at"))
            .values("day")
            .annotate(count=Count("id"), revenue=Sum("final_amount_paisa"))
            .order_by("-day")
        ]

        return PaymentOverview(
            start=start,
            end=end,
            total_count=sum(by_status.values()),
            by_status=by_status,
            revenue_paisa=totals["revenue"],
            refunded_paisa=totals["refunded"],
            collected_count=totals["count"],
            by_method=by_method,
            daily=daily,
        )

    @staticmethod
    def trends(days: int = DEFAULT_PERIOD_DAYS) -> list[dict[str, Any]]:
        """Per-day, per-method counts, revenue and failures for the last ``days`` days."""
        since = timezone.now() - timedelta(days=days)
        rows = (
            Payment.objects.filter(created_at__gte=since)
            .annotate(day=TruncDate("created_at"))
            .values("day", "method")
            .annotate(
                count=Count("id"),
                revenue=Coalesce(
                    Sum("final_amount_paisa", filter=Q(status__in=COLLECTED_STATUSES)), 0
                ),
                failed=Count("id", filter=Q(status=PaymentStatus.FAILED)),
            )
            .order_by("-day", "method")
        )
        return [
            {
                "date": row["day"].isoformat(),
                "method": row["method"],
                "count": row["count"],
                "revenue_paisa": row["revenue"],
                "failed": row["failed"],
            }
            for row in rows
        ]

    @staticmethod
    def top_methods(limit: int = 5) -> list[dict[str, Any]]:
        rows = (
            Payment.objects.values("method")
            .annotate(
                count=Count("id"),
                revenue=Coalesce(
                    Sum("final_amount_paisa", filter=Q(status__in=COLLECTED_STATUSES)), 0
                ),
            )
            .order_by("-count", "method")[:limit]
        )
        return [
            {"method": row["method"], "count": row["count"], "revenue_paisa": row["revenue"]}
            for row in rows
        ]
