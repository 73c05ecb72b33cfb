"""
Finance API views (administrators only).

Provides:
- AccountBalanceView: Balance derived from ledger rows
- ProfitAndLossView / ProfitAndLossExportView: P&L as JSON or CSV
- CommissionStatementView: Paid vs pending commissions
- PaymentAnalyticsView / PaymentTrendsView: Dashboard figures
- TransactionListView: Ledger rows
- ExpenseListCreateView / ExpenseActionView: Expense approval flow
"""

from __future__ import annotations

from django.http import HttpResponse
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.generics import ListAPIView
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsAdministrator
from payments.ledger.analytics import PaymentAnalyticsService
from payments.ledger.models import Expense
from payments.ledger.serializers import (
    AnalyticsQuerySerializer,
    ExpenseCreateSerializer,
    ExpensePaySerializer,
    ExpenseRejectSerializer,
    ExpenseSerializer,
    PeriodQuerySerializer,
    TransactionQuerySerializer,
    TransactionSerializer,
    TrendsQuerySerializer,
)
from payments.ledger.services import ExpenseService, LedgerService
from payments.ledger.statements import FinancialStatementService


def _period(request) -> tuple:
    query = PeriodQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)
    return query.validated_data.get("start"), query.validated_data.get("end")


class AccountBalanceView(APIView):
    """GET /api/v1/payments/finance/balance/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="get_account_balance",
        summary="Account balance",
        description="Income and refund rows add; expense, commission and salary rows subtract.",
        parameters=[PeriodQuerySerializer],
        responses={200: OpenApiResponse(description="Balance breakdown in paisa")},
        tags=["Finance - Reports"],
    )
    def get(self, request):
        start, end = _period(request)
        return Response(LedgerService.get_balance(start, end).to_dict())


class ProfitAndLossView(APIView):
    """GET /api/v1/payments/finance/profit-and-loss/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="get_profit_and_loss",
        summary="Profit and loss",
        parameters=[PeriodQuerySerializer],
        responses={200: OpenApiResponse(description="Profit and loss statement")},
        tags=["Finance - Reports"],
    )
    def get(self, request):
        start, end = _period(request)
        return Response(FinancialStatementService.profit_and_loss(start, end).to_dict())


class ProfitAndLossExportView(APIView):
    """GET /api/v1/payments/finance/profit-and-loss/export/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="export_profit_and_loss",
        summary="Export profit and loss (CSV)",
        parameters=[PeriodQuerySerializer],
        responses={200: OpenApiResponse(description="text/csv attachment")},
        tags=["Finance - Reports"],
    )
    def get(self, request):
        start, end = _period(request)
        content = FinancialStatementService.export_profit_and_loss_csv(start, end)
        suffix = start.date().isoformat() if start else "all-time"
        response = HttpResponse(content, content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="profit-and-loss-{suffix}.csv"'
        return response


class CommissionStatementView(APIView):
    """GET /api/v1/payments/finance/commissions/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="get_commission_statement",
        summary="Commission statement",
        parameters=[PeriodQuerySerializer],
        responses={200: OpenApiResponse(description="Instructor and affiliate commissions")},
        tags=["Finance - Reports"],
    )
    def get(self, request):
        start, end = _period(request)
        return Response(FinancialStatementService.commissions(start, end).to_dict())


class PaymentAnalyticsView(APIView):
    """GET /api/v1/payments/finance/analytics/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="get_payment_analytics",
        summary="Payment analytics",
        description="Defaults to the last 30 days.",
        parameters=[AnalyticsQuerySerializer],
        responses={200: OpenApiResponse(description="Counts, revenue and method breakdown")},
        tags=["Finance - Analytics"],
    )
    def get(self, request):
        query = AnalyticsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        overview = PaymentAnalyticsService.overview(**query.validated_data)
        return Response(
            {
                **overview.to_dict(),
                "top_methods": PaymentAnalyticsService.top_methods(),
            }
        )


class PaymentTrendsView(APIView):
    """GET /api/v1/payments/finance/analytics/trends/"""

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="get_payment_trends",
        summary="Daily payment trends",
        parameters=[TrendsQuerySerializer],
        responses={200: OpenApiResponse(description="Per-day, per-method figures")},
        tags=["Finance - Analytics"],
    )
    def get(self, request):
        query = TrendsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(PaymentAnalyticsService.trends(days=query.validated_data["days"]))


class TransactionListView(ListAPIView):
    """GET /api/v1/payments/finance/transactions/"""

    permission_classes = [IsAdministrator]
    serializer_class = TransactionSerializer

    def get_queryset(self):
        query = TransactionQuerySerializer(data=self.request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data
        return LedgerService.list_transactions(
            txn_type=data.get("type"),
            category=data.get("category"),
            start=data.get("start"),
            end=data.get("end"),
        ).order_by("-transaction_date")

    @extend_schema(
        operation_id="list_ledger_transactions",
        summary="List ledger transactions",
        parameters=[TransactionQuerySerializer],
        tags=["Finance - Ledger"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class ExpenseListCreateView(ListAPIView):
    """
    GET  /api/v1/payments/finance/expenses/
    POST /api/v1/payments/finance/expenses/
    """

    permission_classes = [IsAdministrator]
    serializer_class = ExpenseSerializer

    def get_queryset(self):
        expenses = Expense.objects.select_related("submitted_by", "approved_by")
        status_filter = self.request.query_params.get("status")
        if status_filter:
            expenses = expenses.filter(status=status_filter)
        return expenses

    @extend_schema(
        operation_id="list_expenses",
        summary="List expenses",
        tags=["Finance - Expenses"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @extend_schema(
        operation_id="create_expense",
        summary="Submit expense",
        request=ExpenseCreateSerializer,
        responses={201: ExpenseSerializer},
        tags=["Finance - Expenses"],
    )
    def post(self, request):
        serializer = ExpenseCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        expense = ExpenseService.create(submitted_by=request.user, **serializer.validated_data)
        return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)


class ExpenseActionView(APIView):
    """
    POST /api/v1/payments/finance/expenses/{expense_id}/{action}/

    ``action`` is approve, reject or pay. Illegal transitions answer 409
    through the application exception handler.
    """

    permission_classes = [IsAdministrator]

    @extend_schema(
        operation_id="expense_action",
        summary="Approve, reject or pay an expense",
        request=ExpenseRejectSerializer,
        responses={
            200: ExpenseSerializer,
            404: OpenApiResponse(description="Expense not found"),
            409: OpenApiResponse(description="Expense is not in a state allowing this action"),
        },
        tags=["Finance - Expenses"],
    )
    def post(self, request, expense_id, action):
        if action == "approve":
            expense = ExpenseService.approve(expense_id, approved_by=request.user)
        elif action == "reject":
            serializer = ExpenseRejectSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            expense = ExpenseService.reject(
                expense_id, rejected_by=request.user, reason=serializer.validated_data["reason"]
            )
        elif action == "pay":
            serializer = ExpensePaySerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            expense = ExpenseService.mark_paid(
                expense_id,
                paid_date=serializer.validated_data.get("paid_date"),
                recorded_by=request.user,
            )
        else:
            return Response({"error": f"Unknown action: {action}"}, status=status.HTTP_404_NOT_FOUND)
        return Response(ExpenseSerializer(expense).data)
