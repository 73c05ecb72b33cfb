"""Pre-transaction fraud scoring."""

from payments.fraud.scorer import (
    FraudScorer,
    RiskAssessment,
    RiskLevel,
    RiskSignal,
    VelocitySummary,
)

__all__ = [
    "FraudScorer",
    "RiskAssessment",
    "RiskLevel",
    "RiskSignal",
    "VelocitySummary",
]
