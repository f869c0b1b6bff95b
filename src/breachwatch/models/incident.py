# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Security incident aggregate and regulator notification records."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from breachwatch.core.constants import IncidentKind, IncidentStatus, ResponseStep, RiskLevel
from breachwatch.crypto.vault import EncryptedBlob
from breachwatch.models.risk import RiskAssessment


class NotificationState(BaseModel):
    """Regulatory notification obligations of an incident.

    ``deadline`` is fixed when the incident is created and cannot be
    reassigned afterwards.
    """

    regulator_notification_required: bool
    regulator_notification_sent_at: datetime | None = None
    subject_notification_required: bool
    subject_notifications_scheduled: bool = False
    subject_notifications_sent_count: int = Field(default=0, ge=0)
    deadline: datetime = Field(frozen=True)

    @property
    def regulator_notification_pending(self) -> bool:
        return (
            self.regulator_notification_required
            and self.regulator_notification_sent_at is None
        )


class SecurityIncident(BaseModel):
    """A classified, tracked security event."""

    id: str
    kind: IncidentKind
    severity: RiskLevel
    status: IncidentStatus = IncidentStatus.DETECTED
    detected_at: datetime
    contained_at: datetime | None = None
    resolved_at: datetime | None = None
    source_anomaly_id: str = ""
    description: str = ""
    affected_data_types: set[str] = Field(default_factory=set)
    affected_subjects_count: int = Field(default=0, ge=0)
    containment_actions: list[str] = Field(default_factory=list)
    containment_failures: dict[str, str] = Field(default_factory=dict)
    investigation_started_at: datetime | None = None
    investigation_notes: list[str] = Field(default_factory=list)
    resolution_notes: str | None = None
    risk_assessment: RiskAssessment
    notification: NotificationState
    evidence: EncryptedBlob | None = None
    failed_response_steps: list[ResponseStep] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    # Bumped by every successful save; 0 means never stored.
    version: int = Field(default=0, ge=0)

    @property
    def is_open(self) -> bool:
        """Unresolved, or still owing the regulator a notification."""
        return (
            self.status != IncidentStatus.RESOLVED
            or self.notification.regulator_notification_pending
        )


class RegulatorNoticeStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    UNDER_REVIEW = "under_review"


class RegulatorNotification(BaseModel):
    """Draft of the statutory disclosure sent to the data-protection authority."""

    incident_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    description: str
    data_types_affected: list[str] = Field(default_factory=list)
    subjects_affected: int = 0
    cause_analysis: str = "Investigation in progress - preliminary assessment"
    containment_measures: list[str] = Field(default_factory=list)
    preventive_measures: list[str] = Field(default_factory=lambda: [
        "Enhanced monitoring implemented",
        "Additional security controls activated",
        "Staff security awareness reinforcement planned",
    ])
    contact_dpo: str = ""
    deadline: datetime
    status: RegulatorNoticeStatus = RegulatorNoticeStatus.DRAFT
    sent_at: datetime | None = None


class DeadlineAlertMark(BaseModel):
    """Deadline alerts already raised for one incident.

    Kept by the deadline monitor so that separate scan processes share
    what has been announced.  Keyed by incident id and deadline.
    """

    incident_id: str
    deadline: datetime
    approaching_alerted_at: datetime | None = None
    violation_count: int = Field(default=0, ge=0)
    last_alerted_at: datetime | None = None
