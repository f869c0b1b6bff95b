# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the incident lifecycle manager."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from breachwatch.audit.events import AuditAction, verify_chain
from breachwatch.audit.recorder import MemoryAuditRecorder
from breachwatch.core.constants import (
    Audience,
    ContainmentAction,
    IncidentKind,
    IncidentStatus,
    ResponseStep,
    RiskLevel,
)
from breachwatch.core.exceptions import (
    ConcurrentModification,
    DecryptionError,
    IncidentNotFound,
    InvalidTransition,
)
from breachwatch.incidents.containment import ContainmentExecutor
from breachwatch.incidents.manager import IncidentManager, map_incident_kind
from breachwatch.models.incident import RegulatorNoticeStatus


def _actions(entries) -> list[AuditAction]:
    return [e.action for e in entries]


class FailingQueue:
    def __init__(self, failures: int = 1) -> None:
        self.failures = failures
        self.enqueued = []

    async def enqueue(self, request) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("queue unavailable")
        self.enqueued.append(request)


@pytest.fixture
def data_leak(make_anomaly):
    return make_anomaly(
        kind="data_leak",
        severity_hint="high",
        estimated_affected_subjects=5000,
        affected_data_categories={"financial"},
        raw_details={"source_ip": "203.0.113.7", "endpoint": "/export", "batch": 12},
    )


async def _contained_incident(manager: IncidentManager, data_leak):
    incident = await manager.handle_anomaly(data_leak)
    assert incident.status == IncidentStatus.CONTAINED
    return incident


class TestKindMapping:
    @pytest.mark.parametrize(
        ("anomaly_kind", "expected"),
        [
            ("unauthorized_access", IncidentKind.UNAUTHORIZED_ACCESS),
            ("data_leak", IncidentKind.DATA_BREACH),
            ("unusual_activity", IncidentKind.UNAUTHORIZED_ACCESS),
            ("system_breach", IncidentKind.SYSTEM_COMPROMISE),
            ("vendor_incident", IncidentKind.VENDOR_INCIDENT),
            ("never_seen_before", IncidentKind.UNAUTHORIZED_ACCESS),
        ],
    )
    def test_mapping(self, anomaly_kind, expected) -> None:
        assert map_incident_kind(anomaly_kind) == expected


class TestHandleAnomaly:
    async def test_data_leak_scenario(self, manager, data_leak, clock) -> None:
        incident = await manager.handle_anomaly(data_leak)

        assert incident is not None
        assert incident.kind == IncidentKind.DATA_BREACH
        assert incident.severity == RiskLevel.CRITICAL
        assert incident.risk_assessment.data_sensitivity == RiskLevel.HIGH
        assert incident.risk_assessment.potential_impact == RiskLevel.CRITICAL
        assert incident.risk_assessment.likelihood == RiskLevel.HIGH
        assert incident.risk_assessment.overall_risk == RiskLevel.CRITICAL
        assert incident.notification.regulator_notification_required
        assert incident.notification.subject_notification_required
        assert incident.notification.deadline == data_leak.detected_at + timedelta(hours=72)
        assert incident.affected_subjects_count == 5000
        assert incident.id.startswith("INC-")

    async def test_low_signal_is_dismissed_but_audited(
        self, manager, make_anomaly, recorder, repository
    ) -> None:
        anomaly = make_anomaly(
            kind="unusual_activity", estimated_affected_subjects=3, severity_hint="low"
        )
        assert await manager.handle_anomaly(anomaly) is None

        (entry,) = await recorder.all_entries()
        assert entry.action == AuditAction.ANOMALY_DISMISSED
        assert entry.entity_id == anomaly.id
        assert entry.details["risk_assessment"]["overall_risk"] == "low"
        assert await repository.load_open_incidents() == []

    @pytest.mark.parametrize("kind", ["unusual_activity", "unauthorized_access", "odd_kind"])
    @pytest.mark.parametrize("subjects", [0, 5, 50])
    async def test_critical_hint_always_creates(
        self, manager, make_anomaly, kind, subjects
    ) -> None:
        anomaly = make_anomaly(
            kind=kind, severity_hint="critical", estimated_affected_subjects=subjects
        )
        incident = await manager.handle_anomaly(anomaly)
        assert incident is not None
        assert incident.severity == RiskLevel.CRITICAL

    async def test_critical_hint_creates_even_when_every_step_fails(
        self, repository, recorder, vault, clock, make_anomaly
    ) -> None:
        class BrokenNotifier:
            def alert(self, *args, **kwargs) -> None:
                raise RuntimeError("no route to pager")

        class BrokenContainment(ContainmentExecutor):
            async def execute(self, incident):
                raise RuntimeError("orchestrator down")

        manager = IncidentManager(
            repository=repository,
            recorder=recorder,
            vault=vault,
            notifier=BrokenNotifier(),
            containment=BrokenContainment(),
            subject_queue=FailingQueue(failures=99),
            clock=clock,
        )
        anomaly = make_anomaly(
            kind="system_breach", severity_hint="critical", estimated_affected_subjects=5000
        )
        incident = await manager.handle_anomaly(anomaly)

        assert incident is not None
        assert incident.status == IncidentStatus.DETECTED
        assert incident.failed_response_steps == [
            ResponseStep.ALERT_SECURITY,
            ResponseStep.CONTAIN,
            ResponseStep.PREPARE_REGULATOR_NOTICE,
            ResponseStep.SCHEDULE_SUBJECT_NOTICES,
        ]
        assert incident.investigation_started_at is not None

    async def test_response_steps_in_order(self, manager, data_leak, recorder, notifier) -> None:
        incident = await manager.handle_anomaly(data_leak)

        assert _actions(await recorder.entries_for(incident.id)) == [
            AuditAction.INCIDENT_CREATED,
            AuditAction.INCIDENT_CONTAINED,
            AuditAction.REGULATOR_NOTICE_DRAFTED,
            AuditAction.INVESTIGATION_STARTED,
            AuditAction.SUBJECT_NOTICES_SCHEDULED,
        ]
        assert [a.audience for a in notifier.alerts] == [
            Audience.SECURITY_OPERATIONS,
            Audience.COMPLIANCE_OWNER,
        ]
        assert verify_chain(await recorder.all_entries())

    async def test_containment_applied(self, manager, data_leak, clock) -> None:
        incident = await manager.handle_anomaly(data_leak)
        assert incident.status == IncidentStatus.CONTAINED
        assert incident.contained_at == clock.now
        assert incident.containment_actions == [
            "isolate_db_connections",
            "enable_verbose_logging",
            "restrict_exports",
        ]
        assert incident.containment_failures == {}

    async def test_regulator_draft_created(self, manager, data_leak, repository) -> None:
        incident = await manager.handle_anomaly(data_leak)
        notice = await repository.get_regulator_notification(incident.id)

        assert notice.status == RegulatorNoticeStatus.DRAFT
        assert notice.deadline == incident.notification.deadline
        assert notice.subjects_affected == 5000
        assert notice.data_types_affected == ["financial"]
        assert notice.contact_dpo == "dpo@example.com"
        assert "restrict_exports" in notice.containment_measures

    async def test_no_regulator_work_below_high_risk(
        self, manager, make_anomaly, repository, notifier
    ) -> None:
        # Leak kinds always qualify, but 5 subjects keeps the overall risk at medium.
        anomaly = make_anomaly(kind="data_leak", estimated_affected_subjects=5)
        incident = await manager.handle_anomaly(anomaly)

        assert incident.risk_assessment.overall_risk == RiskLevel.MEDIUM
        assert not incident.notification.regulator_notification_required
        assert not incident.notification.subject_notification_required
        assert await repository.get_regulator_notification(incident.id) is None
        assert [a.audience for a in notifier.alerts] == [Audience.SECURITY_OPERATIONS]

    async def test_subject_notices_enqueued(self, manager, data_leak, subject_queue) -> None:
        incident = await manager.handle_anomaly(data_leak)
        (request,) = subject_queue.drain()
        assert request.incident_id == incident.id
        assert request.subjects == 5000
        assert incident.notification.subject_notifications_scheduled

    async def test_evidence_is_encrypted_and_readable(self, manager, data_leak, vault) -> None:
        incident = await manager.handle_anomaly(data_leak)

        assert incident.evidence is not None
        assert "203.0.113.7" not in incident.evidence.model_dump_json()
        evidence = await manager.read_evidence(incident.id)
        assert evidence["raw_details"]["source_ip"] == "203.0.113.7"
        assert evidence["raw_details"]["batch"] == 12
        assert evidence["anomaly_id"] == data_leak.id

    async def test_evidence_unreadable_after_purge(self, manager, data_leak, vault) -> None:
        incident = await manager.handle_anomaly(data_leak)
        vault.rotate_key()
        vault.rotate_key()
        vault.purge_key_versions(retain=2)
        with pytest.raises(DecryptionError):
            await manager.read_evidence(incident.id)

    async def test_partial_containment_failure_still_contains(
        self, repository, recorder, vault, notifier, clock, data_leak
    ) -> None:
        async def fail(incident, action) -> None:
            raise RuntimeError("export service refused")

        containment = ContainmentExecutor()
        containment.register(ContainmentAction.RESTRICT_EXPORTS, fail)
        manager = IncidentManager(
            repository=repository,
            recorder=recorder,
            vault=vault,
            notifier=notifier,
            containment=containment,
            clock=clock,
        )

        incident = await manager.handle_anomaly(data_leak)

        assert incident.status == IncidentStatus.CONTAINED
        assert incident.containment_failures == {"restrict_exports": "export service refused"}
        assert ResponseStep.CONTAIN not in incident.failed_response_steps
        assert any("Containment incomplete" in a.title for a in notifier.alerts)


class TestRetry:
    async def test_retry_failed_subject_step(
        self, repository, recorder, vault, notifier, clock, data_leak
    ) -> None:
        queue = FailingQueue(failures=1)
        manager = IncidentManager(
            repository=repository,
            recorder=recorder,
            vault=vault,
            notifier=notifier,
            subject_queue=queue,
            clock=clock,
        )
        incident = await manager.handle_anomaly(data_leak)
        assert incident.failed_response_steps == [ResponseStep.SCHEDULE_SUBJECT_NOTICES]
        assert AuditAction.RESPONSE_STEP_FAILED in _actions(await recorder.entries_for(incident.id))

        retried = await manager.retry_response_step(
            incident.id, ResponseStep.SCHEDULE_SUBJECT_NOTICES
        )

        assert retried.failed_response_steps == []
        assert retried.notification.subject_notifications_scheduled
        assert len(queue.enqueued) == 1

    async def test_retry_contain_after_audit_failure(
        self, repository, vault, notifier, clock, data_leak
    ) -> None:
        class FlakyTransitionRecorder(MemoryAuditRecorder):
            def __init__(self) -> None:
                super().__init__()
                self.failures = 1

            async def record_transition(self, incident, action, **kwargs):
                if action == AuditAction.INCIDENT_CONTAINED and self.failures:
                    self.failures -= 1
                    raise ConnectionError("audit store unavailable")
                return await super().record_transition(incident, action, **kwargs)

        recorder = FlakyTransitionRecorder()
        manager = IncidentManager(
            repository=repository,
            recorder=recorder,
            vault=vault,
            notifier=notifier,
            clock=clock,
        )
        incident = await manager.handle_anomaly(data_leak)
        assert incident.status == IncidentStatus.CONTAINED
        assert incident.failed_response_steps == [ResponseStep.CONTAIN]
        assert AuditAction.INCIDENT_CONTAINED not in _actions(
            await recorder.entries_for(incident.id)
        )

        clock.advance(minutes=10)
        retried = await manager.retry_response_step(incident.id, ResponseStep.CONTAIN)

        assert retried.failed_response_steps == []
        assert retried.contained_at == incident.contained_at
        assert retried.containment_actions == incident.containment_actions
        entries = await recorder.entries_for(incident.id)
        contained = [e for e in entries if e.action == AuditAction.INCIDENT_CONTAINED]
        assert len(contained) == 1
        assert contained[0].details["from"] == "detected"
        assert contained[0].details["to"] == "contained"
        assert verify_chain(await recorder.all_entries())

        await manager.retry_response_step(incident.id, ResponseStep.CONTAIN)
        assert _actions(await recorder.entries_for(incident.id)).count(
            AuditAction.INCIDENT_CONTAINED
        ) == 1

    async def test_retry_of_succeeded_step_is_a_no_op(self, manager, data_leak, recorder) -> None:
        incident = await manager.handle_anomaly(data_leak)
        before = len(await recorder.all_entries())

        again = await manager.retry_response_step(incident.id, ResponseStep.CONTAIN)

        assert again.status == IncidentStatus.CONTAINED
        assert len(await recorder.all_entries()) == before

    async def test_retry_unknown_incident(self, manager) -> None:
        with pytest.raises(IncidentNotFound):
            await manager.retry_response_step("INC-nope", ResponseStep.CONTAIN)


class TestResolve:
    async def test_resolve_from_contained(self, manager, data_leak, recorder, clock) -> None:
        incident = await _contained_incident(manager, data_leak)
        clock.advance(hours=5)

        resolved = await manager.mark_resolved(incident.id, "credentials rotated", actor="alice")

        assert resolved.status == IncidentStatus.RESOLVED
        assert resolved.resolved_at == clock.now
        assert resolved.resolution_notes == "credentials rotated"
        last = (await recorder.entries_for(incident.id))[-1]
        assert last.action == AuditAction.INCIDENT_RESOLVED
        assert last.actor == "alice"
        assert last.details["from"] == "contained"
        assert last.details["to"] == "resolved"

    async def test_resolve_from_detected_fails(
        self, manager, repository, make_incident, recorder
    ) -> None:
        await repository.save_incident(make_incident())
        with pytest.raises(InvalidTransition):
            await manager.mark_resolved("INC-1", "too early")
        assert (await repository.get_incident("INC-1")).status == IncidentStatus.DETECTED
        assert await recorder.all_entries() == []

    async def test_resolved_is_terminal(self, manager, data_leak, repository, recorder) -> None:
        incident = await _contained_incident(manager, data_leak)
        await manager.mark_resolved(incident.id, "done")
        before = await repository.get_incident(incident.id)
        entries_before = len(await recorder.all_entries())

        with pytest.raises(InvalidTransition):
            await manager.mark_resolved(incident.id, "again")
        with pytest.raises(InvalidTransition):
            await manager.containment_dispatch(before)

        after = await repository.get_incident(incident.id)
        assert after == before
        assert len(await recorder.all_entries()) == entries_before

    async def test_resolve_unknown_incident(self, manager) -> None:
        with pytest.raises(IncidentNotFound):
            await manager.mark_resolved("INC-missing", "n/a")


class TestRegulatorNotification:
    async def test_record_sent(self, manager, data_leak, repository, clock) -> None:
        incident = await manager.handle_anomaly(data_leak)
        clock.advance(hours=10)

        updated = await manager.record_regulator_notification_sent(incident.id)

        assert updated.notification.regulator_notification_sent_at == clock.now
        notice = await repository.get_regulator_notification(incident.id)
        assert notice.status == RegulatorNoticeStatus.SENT
        assert notice.sent_at == clock.now

    async def test_idempotent(self, manager, data_leak, recorder, clock) -> None:
        incident = await manager.handle_anomaly(data_leak)
        first = await manager.record_regulator_notification_sent(incident.id)
        entries_after_first = await recorder.entries_for(incident.id)
        clock.advance(minutes=30)

        second = await manager.record_regulator_notification_sent(incident.id)

        assert second == first
        assert await recorder.entries_for(incident.id) == entries_after_first
        assert _actions(entries_after_first).count(AuditAction.REGULATOR_NOTIFIED) == 1

    async def test_allowed_after_resolution(self, manager, data_leak) -> None:
        incident = await _contained_incident(manager, data_leak)
        await manager.mark_resolved(incident.id, "done")
        updated = await manager.record_regulator_notification_sent(incident.id)
        assert updated.status == IncidentStatus.RESOLVED
        assert updated.notification.regulator_notification_sent_at is not None

    async def test_not_required_is_rejected(self, manager, make_anomaly) -> None:
        incident = await manager.handle_anomaly(
            make_anomaly(kind="data_leak", estimated_affected_subjects=5)
        )
        with pytest.raises(InvalidTransition):
            await manager.record_regulator_notification_sent(incident.id)

    async def test_concurrent_calls_record_once(self, manager, data_leak, recorder) -> None:
        incident = await manager.handle_anomaly(data_leak)
        results = await asyncio.gather(
            *(manager.record_regulator_notification_sent(incident.id) for _ in range(5))
        )
        assert len({r.notification.regulator_notification_sent_at for r in results}) == 1
        actions = _actions(await recorder.entries_for(incident.id))
        assert actions.count(AuditAction.REGULATOR_NOTIFIED) == 1


class TestOperatorBookkeeping:
    async def test_subject_notifications_sent(self, manager, data_leak) -> None:
        incident = await manager.handle_anomaly(data_leak)
        await manager.record_subject_notifications_sent(incident.id, 3000)
        updated = await manager.record_subject_notifications_sent(incident.id, 2000)
        assert updated.notification.subject_notifications_sent_count == 5000

    async def test_subject_notifications_require_flag(self, manager, make_anomaly) -> None:
        incident = await manager.handle_anomaly(
            make_anomaly(kind="data_leak", estimated_affected_subjects=5)
        )
        with pytest.raises(InvalidTransition):
            await manager.record_subject_notifications_sent(incident.id, 1)

    async def test_subject_count_must_be_positive(self, manager, data_leak) -> None:
        incident = await manager.handle_anomaly(data_leak)
        with pytest.raises(ValueError):
            await manager.record_subject_notifications_sent(incident.id, 0)

    async def test_investigation_note(self, manager, data_leak, recorder) -> None:
        incident = await manager.handle_anomaly(data_leak)
        updated = await manager.add_investigation_note(incident.id, "attacker used stolen token")

        assert updated.investigation_notes == ["attacker used stolen token"]
        last = (await recorder.entries_for(incident.id))[-1]
        assert last.action == AuditAction.INVESTIGATION_NOTE_ADDED
        assert last.contains_sensitive_data

    async def test_get_incident_unknown(self, manager) -> None:
        with pytest.raises(IncidentNotFound):
            await manager.get_incident("INC-404")

    async def test_every_change_audited_exactly_once(self, manager, data_leak, recorder) -> None:
        incident = await manager.handle_anomaly(data_leak)
        await manager.add_investigation_note(incident.id, "note")
        await manager.record_regulator_notification_sent(incident.id)
        await manager.record_subject_notifications_sent(incident.id, 10)
        await manager.mark_resolved(incident.id, "closed")

        assert _actions(await recorder.entries_for(incident.id)) == [
            AuditAction.INCIDENT_CREATED,
            AuditAction.INCIDENT_CONTAINED,
            AuditAction.REGULATOR_NOTICE_DRAFTED,
            AuditAction.INVESTIGATION_STARTED,
            AuditAction.SUBJECT_NOTICES_SCHEDULED,
            AuditAction.INVESTIGATION_NOTE_ADDED,
            AuditAction.REGULATOR_NOTIFIED,
            AuditAction.SUBJECT_NOTICES_SENT,
            AuditAction.INCIDENT_RESOLVED,
        ]


class TestConcurrentWriters:
    async def test_stale_write_is_reapplied(
        self, manager, data_leak, repository, recorder, monkeypatch
    ) -> None:
        incident = await manager.handle_anomaly(data_leak)
        read = repository.get_incident
        interfered = False

        async def read_then_interfere(incident_id):
            nonlocal interfered
            copy = await read(incident_id)
            if not interfered:
                interfered = True
                other = await read(incident_id)
                other.investigation_notes.append("from another process")
                await repository.save_incident(other)
            return copy

        monkeypatch.setattr(repository, "get_incident", read_then_interfere)
        updated = await manager.add_investigation_note(incident.id, "ours")

        assert updated.investigation_notes == ["from another process", "ours"]
        stored = await read(incident.id)
        assert stored.investigation_notes == ["from another process", "ours"]
        assert _actions(await recorder.entries_for(incident.id)).count(
            AuditAction.INVESTIGATION_NOTE_ADDED
        ) == 1

    async def test_regulator_notice_survives_interleaved_note(
        self, manager, data_leak, repository, monkeypatch, clock
    ) -> None:
        incident = await manager.handle_anomaly(data_leak)
        read = repository.get_incident
        interfered = False

        async def read_then_notify(incident_id):
            nonlocal interfered
            copy = await read(incident_id)
            if not interfered:
                interfered = True
                other = await read(incident_id)
                other.notification.regulator_notification_sent_at = clock.now
                await repository.save_incident(other)
            return copy

        monkeypatch.setattr(repository, "get_incident", read_then_notify)
        await manager.add_investigation_note(incident.id, "lateral movement ruled out")

        stored = await read(incident.id)
        assert stored.notification.regulator_notification_sent_at == clock.now
        assert stored.investigation_notes == ["lateral movement ruled out"]

    async def test_gives_up_after_repeated_conflicts(
        self, manager, data_leak, repository, recorder, monkeypatch
    ) -> None:
        incident = await manager.handle_anomaly(data_leak)
        entries_before = len(await recorder.all_entries())

        async def always_stale(stale):
            raise ConcurrentModification(stale.id, stale.version)

        monkeypatch.setattr(repository, "save_incident", always_stale)
        with pytest.raises(ConcurrentModification):
            await manager.mark_resolved(incident.id, "done")

        assert len(await recorder.all_entries()) == entries_before
