from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    """Email-login users and JWT endpoints."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "authentication"
