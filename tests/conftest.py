# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import aiosqlite
import pytest

from breachwatch.audit.recorder import MemoryAuditRecorder
from breachwatch.core.constants import Audience, IncidentKind, IncidentStatus, RiskLevel
from breachwatch.crypto.vault import KeyVault
from breachwatch.incidents.manager import IncidentManager
from breachwatch.incidents.notices import MemorySubjectNotificationQueue
from breachwatch.models.anomaly import SecurityAnomaly
from breachwatch.models.incident import NotificationState, SecurityIncident
from breachwatch.models.risk import RiskAssessment
from breachwatch.notifications.events import AlertEvent
from breachwatch.storage.database import close_db, init_db
from breachwatch.storage.memory import MemoryIncidentRepository

# Low iteration count keeps key derivation fast in tests.
TEST_KDF_ITERATIONS = 1_000
TEST_MASTER_SECRET = "unit-test-master-secret"
T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    """Notifier double that keeps every alert instead of delivering it."""

    def __init__(self) -> None:
        self.alerts: list[AlertEvent] = []

    def alert(
        self,
        audience: Audience,
        severity: RiskLevel,
        title: str,
        message: str,
        *,
        incident_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.alerts.append(
            AlertEvent(
                audience=audience,
                severity=severity,
                title=title,
                message=message,
                incident_id=incident_id,
                details=details or {},
            )
        )

    def for_audience(self, audience: Audience) -> list[AlertEvent]:
        return [a for a in self.alerts if a.audience == audience]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def vault() -> KeyVault:
    return KeyVault(TEST_MASTER_SECRET, kdf_iterations=TEST_KDF_ITERATIONS, retain=2)


@pytest.fixture
def repository() -> MemoryIncidentRepository:
    return MemoryIncidentRepository()


@pytest.fixture
def recorder() -> MemoryAuditRecorder:
    return MemoryAuditRecorder()


@pytest.fixture
def subject_queue() -> MemorySubjectNotificationQueue:
    return MemorySubjectNotificationQueue()


@pytest.fixture
def manager(
    repository, recorder, vault, notifier, subject_queue, clock
) -> IncidentManager:
    return IncidentManager(
        repository=repository,
        recorder=recorder,
        vault=vault,
        notifier=notifier,
        subject_queue=subject_queue,
        dpo_contact="dpo@example.com",
        clock=clock,
    )


@pytest.fixture
def make_anomaly(clock) -> Callable[..., SecurityAnomaly]:
    """Factory for anomalies detected at the frozen clock's current time."""

    def _make(**overrides: Any) -> SecurityAnomaly:
        fields: dict[str, Any] = {
            "kind": "unusual_activity",
            "severity_hint": "low",
            "affected_data_categories": set(),
            "estimated_affected_subjects": 0,
            "detected_at": clock.now,
        }
        fields.update(overrides)
        return SecurityAnomaly(**fields)

    return _make


@pytest.fixture
async def db():
    """In-memory database with all migrations applied."""
    import breachwatch.storage.database as db_mod

    db_mod._db = None
    conn: aiosqlite.Connection = await init_db(":memory:")
    yield conn
    await close_db()


@pytest.fixture
def make_incident(clock) -> Callable[..., SecurityIncident]:
    """Factory for a critical data-breach incident with a pending regulator notice."""

    def _make(
        incident_id: str = "INC-1",
        *,
        status: IncidentStatus = IncidentStatus.DETECTED,
        regulator_required: bool = True,
        detected_at: datetime | None = None,
    ) -> SecurityIncident:
        detected = detected_at or clock.now
        return SecurityIncident(
            id=incident_id,
            kind=IncidentKind.DATA_BREACH,
            severity=RiskLevel.CRITICAL,
            status=status,
            detected_at=detected,
            affected_data_types={"financial"},
            affected_subjects_count=5000,
            risk_assessment=RiskAssessment(
                data_sensitivity=RiskLevel.HIGH,
                potential_impact=RiskLevel.CRITICAL,
                likelihood=RiskLevel.HIGH,
                overall_risk=RiskLevel.CRITICAL,
            ),
            notification=NotificationState(
                regulator_notification_required=regulator_required,
                subject_notification_required=True,
                deadline=detected + timedelta(hours=72),
            ),
        )

    return _make
