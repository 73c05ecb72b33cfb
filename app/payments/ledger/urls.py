"""Finance routes, included under /api/v1/payments/finance/."""

from django.urls import path

from payments.ledger import views

urlpatterns = [
    path("balance/", views.AccountBalanceView.as_view(), name="finance_balance"),
    path("profit-and-loss/", views.ProfitAndLossView.as_view(), name="finance_profit_and_loss"),
    path(
        "profit-and-loss/export/",
        views.ProfitAndLossExportView.as_view(),
        name="finance_profit_and_loss_export",
    ),
    path("commissions/", views.CommissionStatementView.as_view(), name="finance_commissions"),
    path("analytics/", views.PaymentAnalyticsView.as_view(), name="finance_analytics"),
    path("analytics/trends/", views.PaymentTrendsView.as_view(), name="finance_trends"),
    path("transactions/", views.TransactionListView.as_view(), name="finance_transactions"),
    path("expenses/", views.ExpenseListCreateView.as_view(), name="finance_expenses"),
    path(
        "expenses/<uuid:expense_id>/<str:action>/",
        views.ExpenseActionView.as_view(),
        name="finance_expense_action",
    ),
]
