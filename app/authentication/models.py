"""
Authentication models.

A single User model covers every party the payment engine deals with:
payers, instructor and affiliate payees, and administrators (staff) who
confirm bank transfers and read the finance reports.
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """Email-login account. ``is_staff`` marks an administrator."""

    email = models.EmailField(unique=True, db_index=True)
    full_name = models.CharField(max_length=150, blank=True, default="")
    # Forwarded to Khalti as customer_info when present
    phone = models.CharField(max_length=20, blank=True, default="")

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(
        default=False,
        help_text="Administrators can read every payment and manage finance records.",
    )

    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    objects = UserManager()

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        if self.full_name:
            return self.full_name.split(" ")[0]
        return self.email.split("@")[0]

    @property
    def is_administrator(self) -> bool:
        return bool(self.is_staff or self.is_superuser)
