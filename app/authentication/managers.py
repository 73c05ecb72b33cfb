"""
Manager for the email-keyed User model.

Customers sign up with an email; finance administrators are staff users
created through ``create_superuser`` or the admin site.
"""

from __future__ import annotations

from django.contrib.auth.models import BaseUserManager


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _build(self, email, password, **fields):
        if not email:
            raise ValueError("An email address is required")

        user = self.model(email=self.normalize_email(email).lower(), **fields)
        # Accounts created without a password can only log in after a reset
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        """Create a customer account."""
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._build(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        """Create an administrator with full finance and admin-site access."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        for flag in ("is_staff", "is_superuser"):
            if extra_fields.get(flag) is not True:
                raise ValueError(f"An administrator account needs {flag}=True")

        return self._build(email, password, **extra_fields)
