# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Deterministic risk scoring of security anomalies.

All functions here are pure: the same anomaly always yields the same
assessment.  The overall risk comes from an explicit impact x likelihood
table so every cell can be checked directly.
"""

from __future__ import annotations

from breachwatch.core.constants import (
    IMPACT_THRESHOLD_CRITICAL,
    IMPACT_THRESHOLD_HIGH,
    IMPACT_THRESHOLD_MEDIUM,
    AnomalyKind,
    RiskLevel,
)
from breachwatch.models.anomaly import SecurityAnomaly
from breachwatch.models.risk import RiskAssessment

SENSITIVE_DATA_CATEGORIES: frozenset[str] = frozenset({
    "identification",
    "personal_identification",
    "financial",
    "health",
    "biometric",
})

HIGH_LIKELIHOOD_KINDS: frozenset[str] = frozenset({
    AnomalyKind.DATA_LEAK.value,
    AnomalyKind.SYSTEM_BREACH.value,
})

# (potential_impact, likelihood) -> overall_risk.  Biased upward: when a
# cell sits between two levels it takes the higher one.
RISK_MATRIX: dict[tuple[RiskLevel, RiskLevel], RiskLevel] = {
    (RiskLevel.LOW, RiskLevel.LOW): RiskLevel.LOW,
    (RiskLevel.LOW, RiskLevel.MEDIUM): RiskLevel.LOW,
    (RiskLevel.LOW, RiskLevel.HIGH): RiskLevel.MEDIUM,
    (RiskLevel.MEDIUM, RiskLevel.LOW): RiskLevel.LOW,
    (RiskLevel.MEDIUM, RiskLevel.MEDIUM): RiskLevel.MEDIUM,
    (RiskLevel.MEDIUM, RiskLevel.HIGH): RiskLevel.HIGH,
    (RiskLevel.HIGH, RiskLevel.LOW): RiskLevel.MEDIUM,
    (RiskLevel.HIGH, RiskLevel.MEDIUM): RiskLevel.HIGH,
    (RiskLevel.HIGH, RiskLevel.HIGH): RiskLevel.CRITICAL,
    (RiskLevel.CRITICAL, RiskLevel.LOW): RiskLevel.HIGH,
    (RiskLevel.CRITICAL, RiskLevel.MEDIUM): RiskLevel.CRITICAL,
    (RiskLevel.CRITICAL, RiskLevel.HIGH): RiskLevel.CRITICAL,
}


def data_sensitivity(categories: set[str] | frozenset[str]) -> RiskLevel:
    if categories & SENSITIVE_DATA_CATEGORIES:
        return RiskLevel.HIGH
    return RiskLevel.LOW


def potential_impact(affected_subjects: int) -> RiskLevel:
    if affected_subjects > IMPACT_THRESHOLD_CRITICAL:
        return RiskLevel.CRITICAL
    if affected_subjects > IMPACT_THRESHOLD_HIGH:
        return RiskLevel.HIGH
    if affected_subjects > IMPACT_THRESHOLD_MEDIUM:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def likelihood(kind: str) -> RiskLevel:
    # Unknown kinds fall through to medium.
    if kind in HIGH_LIKELIHOOD_KINDS:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def overall_risk(impact: RiskLevel, chance: RiskLevel) -> RiskLevel:
    """Look up the matrix cell for *impact* and *chance*.

    ``critical`` likelihood is not produced by :func:`likelihood`; if a caller
    supplies it, it is read as ``high``.
    """
    if chance == RiskLevel.CRITICAL:
        chance = RiskLevel.HIGH
    return RISK_MATRIX[(impact, chance)]


def assess(anomaly: SecurityAnomaly) -> RiskAssessment:
    """Compute the risk assessment for *anomaly*. Pure and side-effect free."""
    impact = potential_impact(anomaly.estimated_affected_subjects)
    chance = likelihood(anomaly.kind)
    return RiskAssessment(
        data_sensitivity=data_sensitivity(anomaly.affected_data_categories),
        potential_impact=impact,
        likelihood=chance,
        overall_risk=overall_risk(impact, chance),
    )


def should_create_incident(
    anomaly: SecurityAnomaly,
    assessment: RiskAssessment,
    *,
    high_risk_subject_threshold: int = IMPACT_THRESHOLD_HIGH,
) -> bool:
    """Return True when the anomaly must become a tracked incident.

    Any one of these suffices: a critical severity hint, a high or critical
    overall risk, more affected subjects than the threshold, or a leak or
    breach kind.
    """
    if anomaly.severity_hint == RiskLevel.CRITICAL:
        return True
    if assessment.is_high_risk:
        return True
    if anomaly.estimated_affected_subjects > high_risk_subject_threshold:
        return True
    return anomaly.kind in HIGH_LIKELIHOOD_KINDS


def requires_regulator_notification(assessment: RiskAssessment) -> bool:
    return assessment.is_high_risk


def requires_subject_notification(assessment: RiskAssessment) -> bool:
    return assessment.overall_risk == RiskLevel.CRITICAL
