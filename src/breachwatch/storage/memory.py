# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""In-memory incident repository.

The default backend for tests and single-process use.  Incidents are
stored as deep copies and handed out as deep copies.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime

from breachwatch.core.exceptions import ConcurrentModification
from breachwatch.models.incident import (
    DeadlineAlertMark,
    RegulatorNotification,
    SecurityIncident,
)
from breachwatch.storage.base import IncidentRepository


class MemoryIncidentRepository(IncidentRepository):
    def __init__(self) -> None:
        self._incidents: dict[str, SecurityIncident] = {}
        self._notices: dict[str, RegulatorNotification] = {}
        self._marks: dict[tuple[str, datetime], DeadlineAlertMark] = {}
        self._lock = asyncio.Lock()

    async def save_incident(self, incident: SecurityIncident) -> None:
        async with self._lock:
            stored = self._incidents.get(incident.id)
            current = stored.version if stored else 0
            if incident.version != current:
                raise ConcurrentModification(incident.id, incident.version)
            incident.version = current + 1
            self._incidents[incident.id] = incident.model_copy(deep=True)

    async def get_incident(self, incident_id: str) -> SecurityIncident | None:
        async with self._lock:
            stored = self._incidents.get(incident_id)
            return stored.model_copy(deep=True) if stored else None

    async def load_open_incidents(self) -> list[SecurityIncident]:
        async with self._lock:
            return [
                inc.model_copy(deep=True)
                for inc in self._incidents.values()
                if inc.is_open
            ]

    async def list_incidents(self, *, limit: int = 100) -> list[SecurityIncident]:
        async with self._lock:
            ordered = sorted(
                self._incidents.values(), key=lambda i: i.detected_at, reverse=True
            )
            return [inc.model_copy(deep=True) for inc in ordered[:limit]]

    async def save_regulator_notification(self, notice: RegulatorNotification) -> None:
        async with self._lock:
            self._notices[notice.incident_id] = notice.model_copy(deep=True)

    async def get_regulator_notification(
        self, incident_id: str
    ) -> RegulatorNotification | None:
        async with self._lock:
            stored = self._notices.get(incident_id)
            return stored.model_copy(deep=True) if stored else None

    async def load_deadline_marks(
        self, incident_ids: Iterable[str]
    ) -> list[DeadlineAlertMark]:
        wanted = set(incident_ids)
        async with self._lock:
            return [
                mark.model_copy()
                for (incident_id, _), mark in self._marks.items()
                if incident_id in wanted
            ]

    async def save_deadline_mark(self, mark: DeadlineAlertMark) -> None:
        async with self._lock:
            self._marks[(mark.incident_id, mark.deadline)] = mark.model_copy()
