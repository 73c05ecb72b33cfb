"""
Django app configuration for learning.
"""

from django.apps import AppConfig


class LearningConfig(AppConfig):
    """Configuration for the learning application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "learning"
    verbose_name = "Learning"
