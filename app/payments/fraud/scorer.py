"""
Pre-transaction fraud scoring.

FraudScorer.assess is read-only: it looks at the payer's recent payments
and the request context and returns an additive risk score. The
orchestrator decides what to do with a HIGH result.

Rules (each contributes its weight at most once):
    VELOCITY               +30  more than FRAUD_VELOCITY_LIMIT payments in the
                                window, counting the attempt being scored
    LARGE_AMOUNT           +20  amount above FRAUD_LARGE_AMOUNT_THRESHOLD_PAISA
    IP_REUSE               +40  IP used by FRAUD_IP_REUSE_PAYERS or more other
                                payers in the window
    RAPID_SUCCESSION       +15  previous payment less than FRAUD_RAPID_SECONDS ago
    SUSPICIOUS_USER_AGENT  +10  missing or shorter than FRAUD_MIN_USER_AGENT_LENGTH

Levels: LOW < 40 <= MEDIUM < 70 <= HIGH
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db.models import Sum
from django.utils import timezone

from audit.models import AuditAction
from audit.services import AuditService
from payments.models import Payment
from payments.state_machines import PaymentStatus

if TYPE_CHECKING:
    from uuid import UUID

    from authentication.models import User

logger = logging.getLogger(__name__)


class RiskLevel:
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


MEDIUM_RISK_THRESHOLD = 40
HIGH_RISK_THRESHOLD = 70

VELOCITY_WEIGHT = 30
LARGE_AMOUNT_WEIGHT = 20
IP_REUSE_WEIGHT = 40
RAPID_SUCCESSION_WEIGHT = 15
SUSPICIOUS_USER_AGENT_WEIGHT = 10


@dataclass
class RiskSignal:
    code: str
    message: str
    weight: int


@dataclass
class RiskAssessment:
    """
    Outcome of a fraud check.

    Attributes:
        score: Sum of triggered weights, clamped to [0, 100]
        level: LOW / MEDIUM / HIGH
        signals: Triggered rules
    """

    score: int
    level: str
    signals: list[RiskSignal] = field(default_factory=list)

    @property
    def is_high_risk(self) -> bool:
        return self.level == RiskLevel.HIGH

    @property
    def signal_codes(self) -> list[str]:
        return [signal.code for signal in self.signals]

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level,
            "signals": [asdict(signal) for signal in self.signals],
        }


@dataclass
class VelocitySummary:
    count: int
    completed_amount_paisa: int
    window_minutes: int


def risk_level(score: int) -> str:
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


class FraudScorer:
    """
    Scores payment attempts.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def assess(
        cls,
        payer: User,
        amount_paisa: int,
        method: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
        exclude_payment_id: UUID | None = None,
    ) -> RiskAssessment:
        """
        Score an attempt that is about to be made.

        Args:
            payer: Paying user
            amount_paisa: Amount to be charged
            method: Payment method (logged only)
            ip_address: Client IP, if known
            user_agent: Client User-Agent, if known
            exclude_payment_id: Payment being retried; it is the attempt
                being scored, not history

        Returns:
            RiskAssessment
        """
        now = timezone.now()
        window_start = now - timedelta(minutes=settings.FRAUD_WINDOW_MINUTES)

        history = Payment.objects.filter(payer=payer)
        if exclude_payment_id is not None:
            history = history.exclude(pk=exclude_payment_id)

        signals: list[RiskSignal] = []

        recent_count = history.filter(created_at__gte=window_start).count() + 1
        if recent_count > settings.FRAUD_VELOCITY_LIMIT:
            signals.append(
                RiskSignal(
                    code="VELOCITY",
                    message=(
                        f"{recent_count} payments in the last "
                        f"{settings.FRAUD_WINDOW_MINUTES} minutes"
                    ),
                    weight=VELOCITY_WEIGHT,
                )
            )

        if amount_paisa > settings.FRAUD_LARGE_AMOUNT_THRESHOLD_PAISA:
            signals.append(
                RiskSignal(
                    code="LARGE_AMOUNT",
                    message=f"Amount {amount_paisa} exceeds normal threshold",
                    weight=LARGE_AMOUNT_WEIGHT,
                )
            )

        if ip_address:
            other_payers = (
                Payment.objects.filter(ip_address=ip_address, created_at__gte=window_start)
                .exclude(payer=payer)
                .values("payer")
                .distinct()
                .count()
            )
            if other_payers >= settings.FRAUD_IP_REUSE_PAYERS:
                signals.append(
                    RiskSignal(
                        code="IP_REUSE",
                        message=f"IP address used by {other_payers} other payers",
                        weight=IP_REUSE_WEIGHT,
                    )
                )

        last_payment_at = (
            history.order_by("-created_at").values_list("created_at", flat=True).first()
        )
        if last_payment_at and now - last_payment_at < timedelta(seconds=settings.FRAUD_RAPID_SECONDS):
            signals.append(
                RiskSignal(
                    code="RAPID_SUCCESSION",
                    message="Payment made shortly after the previous payment",
                    weight=RAPID_SUCCESSION_WEIGHT,
                )
            )

        if not user_agent or len(user_agent) < settings.FRAUD_MIN_USER_AGENT_LENGTH:
            signals.append(
                RiskSignal(
                    code="SUSPICIOUS_USER_AGENT",
                    message="Missing or suspicious user agent",
                    weight=SUSPICIOUS_USER_AGENT_WEIGHT,
                )
            )

        score = max(0, min(100, sum(signal.weight for signal in signals)))
        assessment = RiskAssessment(score=score, level=risk_level(score), signals=signals)

        if signals:
            logger.info(
                "Fraud signals triggered",
                extra={
                    "user_id": str(payer.pk),
                    "method": method,
                    "score": assessment.score,
                    "level": assessment.level,
                    "signals": assessment.signal_codes,
                },
            )
        return assessment

    @classmethod
    def velocity(cls, payer: User, minutes: int | None = None) -> VelocitySummary:
        """Payment count and completed amount for a payer in a trailing window."""
        minutes = minutes or settings.FRAUD_WINDOW_MINUTES
        recent = Payment.objects.filter(
            payer=payer,
            created_at__gte=timezone.now() - timedelta(minutes=minutes),
        )
        completed = recent.filter(status=PaymentStatus.COMPLETED).aggregate(
            total=Sum("final_amount_paisa")
        )
        return VelocitySummary(
            count=recent.count(),
            completed_amount_paisa=completed["total"] or 0,
            window_minutes=minutes,
        )

    @classmethod
    def flag_user(cls, user: User, reason: str, request=None) -> None:
        """Record a flagged audit entry against ``user`` for review."""
        logger.warning(
            "User flagged as suspicious",
            extra={"user_id": str(user.pk), "reason": reason},
        )
        AuditService.record(
            AuditAction.USER_FLAGGED,
            user=user,
            entity=user,
            description=f"User flagged as suspicious: {reason}",
            request=request,
            risk_score=100,
        )
