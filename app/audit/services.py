"""
Audit service.

Usage:
    from audit.models import AuditAction
    from audit.services import AuditService

    AuditService.record(
        AuditAction.INSTRUCTOR_COMMISSION_ERROR,
        user=payment.payer,
        entity=payment,
        description="Instructor commission accrual failed",
        metadata={"error": str(exc)},
    )
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone

from audit.models import AuditAction, AuditLog
from core.helpers import get_client_ip, get_user_agent

if TYPE_CHECKING:
    from django.db.models import QuerySet
    from django.http import HttpRequest

    from authentication.models import User

logger = logging.getLogger(__name__)


# Actions that move money
HIGH_RISK_ACTIONS = frozenset(
    {
        AuditAction.PAYMENT_INITIATED,
        AuditAction.PAYMENT_COMPLETED,
        AuditAction.PAYMENT_REFUNDED,
    }
)
SENSITIVE_PATH_MARKERS = ("/admin", "/payment")

LARGE_AMOUNT_PAISA = 1_000_000  # NPR 10,000
VERY_LARGE_AMOUNT_PAISA = 5_000_000  # NPR 50,000
MIN_USER_AGENT_LENGTH = 10
QUIET_HOURS_END = 6


def _clamp_risk(score: int) -> int:
    return max(0, min(100, int(score)))


def calculate_risk_score(
    action: str,
    user: User | None = None,
    amount_paisa: int = 0,
    request_method: str = "",
    request_path: str = "",
    user_agent: str | None = None,
) -> int:
    """
    Score an audited event from 0 to 100.

    Weights:
        +20  money-moving action, or a DELETE request
        +15  amount above NPR 10,000, +15 more above NPR 50,000
        +10  acting user is an administrator
        +10  admin or payment endpoint
        +5   missing or very short user agent
        +5   recorded between midnight and 6am local time
    """
    score = 0

    if action in HIGH_RISK_ACTIONS or request_method.upper() == "DELETE":
        score += 20

    if amount_paisa > LARGE_AMOUNT_PAISA:
        score += 15
    if amount_paisa > VERY_LARGE_AMOUNT_PAISA:
        score += 15

    if user is not None and getattr(user, "is_administrator", False):
        score += 10

    if any(marker in request_path for marker in SENSITIVE_PATH_MARKERS):
        score += 10

    if not user_agent or len(user_agent) < MIN_USER_AGENT_LENGTH:
        score += 5

    if timezone.localtime().hour < QUIET_HOURS_END:
        score += 5

    return _clamp_risk(score)


def _amount_from_metadata(metadata: dict[str, Any]) -> int:
    for key in ("amount_paisa", "final_amount_paisa"):
        value = metadata.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return 0


class AuditService:
    """
    Writes and queries audit entries.

    All methods are static - no instance state is maintained.
    """

    @staticmethod
    def record(
        action: str,
        user: User | None = None,
        entity: models.Model | None = None,
        description: str = "",
        request: HttpRequest | None = None,
        metadata: dict[str, Any] | None = None,
        risk_score: int | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog | None:
        """
        Append an audit entry; return None instead of raising on failure.

        Without an explicit risk_score the entry is scored by
        calculate_risk_score from the action, user, amount and request.
        The write runs in its own savepoint so a failure does not poison
        the caller's transaction.
        """
        try:
            fields: dict[str, Any] = {
                "action": action,
                "user": user if user is not None and user.pk else None,
                "description": description or "",
                "metadata": metadata or {},
                "ip_address": ip_address or None,
                "user_agent": user_agent or "",
            }

            if entity is not None:
                fields["entity_type"] = entity._meta.label_lower
                fields["entity_id"] = str(entity.pk)

            if request is not None:
                fields["ip_address"] = fields["ip_address"] or get_client_ip(request) or None
                fields["user_agent"] = fields["user_agent"] or get_user_agent(request)
                fields["request_method"] = request.method or ""
                fields["request_path"] = request.path[:500]

            if risk_score is None:
                risk_score = calculate_risk_score(
                    action,
                    user=user,
                    amount_paisa=_amount_from_metadata(fields["metadata"]),
                    request_method=fields.get("request_method", ""),
                    request_path=fields.get("request_path", ""),
                    user_agent=fields["user_agent"],
                )
            fields["risk_score"] = _clamp_risk(risk_score)
            fields["flagged"] = fields["risk_score"] >= settings.AUDIT_FLAG_THRESHOLD

            with transaction.atomic():
                return AuditLog.objects.create(**fields)
        except Exception:
            logger.exception(
                f"Failed to write audit entry {action}",
                extra={"action": action},
            )
            return None

    @staticmethod
    def query(filters: dict[str, Any] | None = None) -> QuerySet[AuditLog]:
        """
        Filter audit entries for admin listing.

        Supported keys: user, action, entity_type, entity_id, flagged,
        min_risk, start, end.
        """
        filters = filters or {}
        queryset = AuditLog.objects.select_related("user")

        for key in ("user", "action", "entity_type", "entity_id", "flagged"):
            value = filters.get(key)
            if value is not None and value != "":
                queryset = queryset.filter(**{key: value})

        if filters.get("min_risk") is not None:
            queryset = queryset.filter(risk_score__gte=int(filters["min_risk"]))

        start: datetime | None = filters.get("start")
        end: datetime | None = filters.get("end")
        if start is not None:
            queryset = queryset.filter(created_at__gte=start)
        if end is not None:
            queryset = queryset.filter(created_at__lt=end)

        return queryset

    @staticmethod
    def for_entity(entity: models.Model) -> QuerySet[AuditLog]:
        return AuditLog.objects.filter(
            entity_type=entity._meta.label_lower,
            entity_id=str(entity.pk),
        )
