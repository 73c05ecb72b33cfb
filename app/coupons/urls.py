"""Coupon routes, included under /api/v1/coupons/."""

from django.urls import path

from coupons.views import CouponValidateView

app_name = "coupons"

urlpatterns = [
    path("validate/", CouponValidateView.as_view(), name="validate"),
]
