# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Incident status state machine."""

from __future__ import annotations

from breachwatch.core.constants import IncidentStatus
from breachwatch.core.exceptions import InvalidTransition
from breachwatch.models.incident import SecurityIncident

# Allowed primary-track moves.  RESOLVED is terminal.  Regulator
# notification is a separate flag and never goes through this table.
TRANSITIONS: dict[IncidentStatus, frozenset[IncidentStatus]] = {
    IncidentStatus.DETECTED: frozenset({IncidentStatus.CONTAINED}),
    IncidentStatus.CONTAINED: frozenset({IncidentStatus.RESOLVED}),
    IncidentStatus.RESOLVED: frozenset(),
}


def can_transition(current: IncidentStatus, target: IncidentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(incident: SecurityIncident, target: IncidentStatus) -> None:
    """Raise :class:`InvalidTransition` unless *incident* may move to *target*."""
    if not can_transition(incident.status, target):
        raise InvalidTransition(incident.id, str(incident.status), str(target))
