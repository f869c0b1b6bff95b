# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Incident lifecycle: triage, containment and regulatory bookkeeping."""

from breachwatch.incidents.containment import (
    CONTAINMENT_PLAYBOOK,
    ContainmentExecutor,
    ContainmentReport,
)
from breachwatch.incidents.manager import IncidentManager, map_incident_kind
from breachwatch.incidents.notices import (
    MemorySubjectNotificationQueue,
    SubjectNoticeRequest,
    SubjectNotificationQueue,
)
from breachwatch.incidents.state import TRANSITIONS, can_transition, ensure_transition

__all__ = [
    "CONTAINMENT_PLAYBOOK",
    "TRANSITIONS",
    "ContainmentExecutor",
    "ContainmentReport",
    "IncidentManager",
    "MemorySubjectNotificationQueue",
    "SubjectNoticeRequest",
    "SubjectNotificationQueue",
    "can_transition",
    "ensure_transition",
    "map_incident_kind",
]
