"""Commission routes, included under /api/v1/earnings/."""

from django.urls import path

from earnings import views

app_name = "earnings"

urlpatterns = [
    path("me/", views.MyEarningsSummaryView.as_view(), name="my_summary"),
    path("me/earnings/", views.MyEarningListView.as_view(), name="my_earnings"),
    path("affiliates/", views.AffiliateRegisterView.as_view(), name="affiliate_register"),
    path(
        "affiliates/<uuid:affiliate_id>/<str:action>/",
        views.AffiliateStatusView.as_view(),
        name="affiliate_status",
    ),
    path("payouts/", views.PayoutView.as_view(), name="payouts"),
    path("<str:role>/<uuid:payee_id>/rate/", views.CommissionRateView.as_view(), name="commission_rate"),
    path(
        "<str:role>/earnings/<uuid:earning_id>/cancel/",
        views.EarningCancelView.as_view(),
        name="earning_cancel",
    ),
]
