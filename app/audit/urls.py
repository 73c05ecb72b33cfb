"""Audit routes, included under /api/v1/audit/."""

from django.urls import path

from audit.views import AuditLogListView

app_name = "audit"

urlpatterns = [
    path("logs/", AuditLogListView.as_view(), name="log_list"),
]
