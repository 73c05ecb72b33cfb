"""
Django app configuration for coupons.
"""

from django.apps import AppConfig


class CouponsConfig(AppConfig):
    """Configuration for the coupons application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "coupons"
    verbose_name = "Coupons"
