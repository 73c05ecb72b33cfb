"""
Root URL configuration.

Domain APIs live under /api/v1/; gateway callbacks and the finance
reports are routed by the payments app (see payments/urls.py).
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

api_v1 = [
    path("auth/", include("authentication.urls")),
    path("payments/", include("payments.urls")),
    path("commerce/", include("commerce.urls")),
    path("coupons/", include("coupons.urls")),
    path("earnings/", include("earnings.urls")),
    path("audit/", include("audit.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1)),
]

admin.site.site_header = "Course Payments Admin"
admin.site.site_title = "Course Payments"
admin.site.index_title = "Payments, orders and finance"
