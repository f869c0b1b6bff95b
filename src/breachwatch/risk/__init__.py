# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Risk scoring of security anomalies."""

from breachwatch.risk.scorer import (
    RISK_MATRIX,
    SENSITIVE_DATA_CATEGORIES,
    assess,
    requires_regulator_notification,
    requires_subject_notification,
    should_create_incident,
)

__all__ = [
    "RISK_MATRIX",
    "SENSITIVE_DATA_CATEGORIES",
    "assess",
    "requires_regulator_notification",
    "requires_subject_notification",
    "should_create_incident",
]
