"""
Shared DRF permission classes.

- IsAdministrator: staff/superuser only (finance and back-office endpoints)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsAdministrator(permissions.BasePermission):
    """Allows access only to authenticated administrators."""

    message = "Administrator access required."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(user and user.is_authenticated and user.is_administrator)
