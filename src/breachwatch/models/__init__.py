# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Data models for anomalies, risk assessments and incidents."""

from breachwatch.models.anomaly import AnomalyDetails, SecurityAnomaly
from breachwatch.models.incident import (
    DeadlineAlertMark,
    NotificationState,
    RegulatorNotification,
    RegulatorNoticeStatus,
    SecurityIncident,
)
from breachwatch.models.risk import RiskAssessment

__all__ = [
    "AnomalyDetails",
    "DeadlineAlertMark",
    "NotificationState",
    "RegulatorNotification",
    "RegulatorNoticeStatus",
    "RiskAssessment",
    "SecurityAnomaly",
    "SecurityIncident",
]
