"""
Payments app: gateway adapters, payment lifecycle, fraud scoring,
callback intake, the ledger and finance reports.
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
