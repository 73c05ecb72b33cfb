"""
Request audit trail middleware.

Writes one API_REQUEST audit entry per state-changing API call once the
response is ready. The entry is scored by AuditService like any other, so
admin calls against payment endpoints surface in the flagged view.

Settings:
    AUDIT_REQUESTS_ENABLED: Master switch (off by default in DEBUG)
    AUDIT_REQUEST_PATH_PREFIX: Only paths under this prefix are audited
    AUDIT_SKIP_PATHS: Path prefixes that are never audited
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from django.conf import settings

from audit.models import AuditAction
from audit.services import AuditService

if TYPE_CHECKING:
    from collections.abc import Callable

    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

AUDITED_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class AuditRequestMiddleware:
    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if not self._should_audit(request):
            return self.get_response(request)

        started = time.monotonic()
        response = self.get_response(request)
        duration_ms = int((time.monotonic() - started) * 1000)

        # DRF copies the authenticated user back onto the Django request
        user = getattr(request, "user", None)
        if user is not None and not user.is_authenticated:
            user = None

        AuditService.record(
            AuditAction.API_REQUEST,
            user=user,
            description=f"{request.method} {request.path} - {response.status_code}",
            request=request,
            metadata={"status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response

    @staticmethod
    def _should_audit(request: HttpRequest) -> bool:
        if not settings.AUDIT_REQUESTS_ENABLED:
            return False
        if request.method not in AUDITED_METHODS:
            return False
        if not request.path.startswith(settings.AUDIT_REQUEST_PATH_PREFIX):
            return False
        return not any(request.path.startswith(path) for path in settings.AUDIT_SKIP_PATHS)
