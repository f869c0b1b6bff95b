# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Abstract incident repository interface."""

from __future__ import annotations

import abc
from collections.abc import Iterable

from breachwatch.models.incident import (
    DeadlineAlertMark,
    RegulatorNotification,
    SecurityIncident,
)


class IncidentRepository(abc.ABC):
    """Persistence contract for incidents and regulator notification drafts.

    Every read returns an independent copy, so callers (in particular the
    deadline monitor) work on a consistent snapshot that later mutations
    cannot alter.
    """

    @abc.abstractmethod
    async def save_incident(self, incident: SecurityIncident) -> None:
        """Store *incident* if nobody has saved it since it was read.

        ``incident.version`` must equal the stored version (0 for a new
        incident).  On success it is advanced to the new stored version;
        otherwise :class:`~breachwatch.core.exceptions.ConcurrentModification`
        is raised and nothing is written.
        """

    @abc.abstractmethod
    async def get_incident(self, incident_id: str) -> SecurityIncident | None:
        """Return a copy of the incident, or ``None`` if unknown."""

    @abc.abstractmethod
    async def load_open_incidents(self) -> list[SecurityIncident]:
        """Return unresolved incidents plus any still owing a regulator notification."""

    @abc.abstractmethod
    async def list_incidents(self, *, limit: int = 100) -> list[SecurityIncident]:
        """Return the most recently detected incidents first."""

    @abc.abstractmethod
    async def save_regulator_notification(self, notice: RegulatorNotification) -> None:
        """Insert or replace the notification record of ``notice.incident_id``."""

    @abc.abstractmethod
    async def get_regulator_notification(
        self, incident_id: str
    ) -> RegulatorNotification | None:
        """Return the notification record for *incident_id*, if any."""

    @abc.abstractmethod
    async def load_deadline_marks(
        self, incident_ids: Iterable[str]
    ) -> list[DeadlineAlertMark]:
        """Return the deadline alert bookkeeping stored for *incident_ids*."""

    @abc.abstractmethod
    async def save_deadline_mark(self, mark: DeadlineAlertMark) -> None:
        """Insert or replace the bookkeeping for ``(mark.incident_id, mark.deadline)``."""
