"""
Django app configuration for earnings.
"""

from django.apps import AppConfig


class EarningsConfig(AppConfig):
    """Configuration for the earnings application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "earnings"
    verbose_name = "Earnings"
