# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Enumerations and threshold constants."""

from enum import StrEnum


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AnomalyKind(StrEnum):
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    DATA_LEAK = "data_leak"
    UNUSUAL_ACTIVITY = "unusual_activity"
    SYSTEM_BREACH = "system_breach"


class IncidentKind(StrEnum):
    DATA_BREACH = "data_breach"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    SYSTEM_COMPROMISE = "system_compromise"
    VENDOR_INCIDENT = "vendor_incident"


class IncidentStatus(StrEnum):
    DETECTED = "detected"
    CONTAINED = "contained"
    RESOLVED = "resolved"


class ContainmentAction(StrEnum):
    SUSPEND_SESSIONS = "suspend_sessions"
    INCREASE_MONITORING = "increase_monitoring"
    ISOLATE_DB_CONNECTIONS = "isolate_db_connections"
    ENABLE_VERBOSE_LOGGING = "enable_verbose_logging"
    RESTRICT_EXPORTS = "restrict_exports"
    EMERGENCY_ACCESS_LOCKDOWN = "emergency_access_lockdown"
    NETWORK_ISOLATION = "network_isolation"
    FULL_AUDIT_LOGGING = "full_audit_logging"
    RESTRICT_INTEGRATIONS = "restrict_integrations"
    ENHANCE_VENDOR_MONITORING = "enhance_vendor_monitoring"


class ResponseStep(StrEnum):
    """Post-creation side effects, executed in declaration order."""

    ALERT_SECURITY = "alert_security"
    CONTAIN = "contain"
    PREPARE_REGULATOR_NOTICE = "prepare_regulator_notice"
    BEGIN_INVESTIGATION = "begin_investigation"
    SCHEDULE_SUBJECT_NOTICES = "schedule_subject_notices"


class Audience(StrEnum):
    SECURITY_OPERATIONS = "security_operations"
    COMPLIANCE_OWNER = "compliance_owner"


RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}

# Affected-subject thresholds (strictly greater than) for potential impact
IMPACT_THRESHOLD_CRITICAL = 1000
IMPACT_THRESHOLD_HIGH = 100
IMPACT_THRESHOLD_MEDIUM = 10

DEFAULT_NOTIFICATION_DEADLINE_HOURS = 72
DEFAULT_WARNING_WINDOW_HOURS = 24
DEFAULT_SCAN_INTERVAL_SECONDS = 30 * 60
