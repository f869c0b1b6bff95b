# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Regulator notice drafting and the subject-notification queue."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from breachwatch.models.incident import RegulatorNotification, SecurityIncident

_KIND_LABELS = {
    "data_breach": "Personal data breach",
    "unauthorized_access": "Unauthorized access to personal data",
    "system_compromise": "Compromise of systems processing personal data",
    "vendor_incident": "Security incident at a data processor",
}


def describe_incident(incident: SecurityIncident) -> str:
    label = _KIND_LABELS.get(str(incident.kind), "Security incident")
    categories = ", ".join(sorted(incident.affected_data_types)) or "unspecified data"
    return (
        f"{label} detected at {incident.detected_at.isoformat()} "
        f"affecting approximately {incident.affected_subjects_count} data subjects "
        f"({categories}). Severity: {incident.severity}."
    )


def draft_regulator_notification(
    incident: SecurityIncident, *, contact_dpo: str, created_at: datetime
) -> RegulatorNotification:
    """Build the draft disclosure for the data-protection authority."""
    return RegulatorNotification(
        incident_id=incident.id,
        created_at=created_at,
        description=describe_incident(incident),
        data_types_affected=sorted(incident.affected_data_types),
        subjects_affected=incident.affected_subjects_count,
        containment_measures=list(incident.containment_actions),
        contact_dpo=contact_dpo,
        deadline=incident.notification.deadline,
    )


@dataclass(frozen=True)
class SubjectNoticeRequest:
    incident_id: str
    subjects: int
    data_types: tuple[str, ...]
    message: str


class SubjectNotificationQueue(Protocol):
    """Outbound queue for notices to affected data subjects."""

    async def enqueue(self, request: SubjectNoticeRequest) -> None: ...


class MemorySubjectNotificationQueue:
    """Holds requests in an :class:`asyncio.Queue` until a worker drains them."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[SubjectNoticeRequest] = asyncio.Queue()

    async def enqueue(self, request: SubjectNoticeRequest) -> None:
        await self._queue.put(request)

    def qsize(self) -> int:
        return self._queue.qsize()

    def drain(self) -> list[SubjectNoticeRequest]:
        items: list[SubjectNoticeRequest] = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items


def subject_notice_for(incident: SecurityIncident) -> SubjectNoticeRequest:
    categories = tuple(sorted(incident.affected_data_types))
    return SubjectNoticeRequest(
        incident_id=incident.id,
        subjects=incident.affected_subjects_count,
        data_types=categories,
        message=(
            "We detected a security incident that may have affected your personal "
            f"data ({', '.join(categories) or 'unspecified data'}). Containment "
            "measures are in place and an investigation is under way."
        ),
    )
