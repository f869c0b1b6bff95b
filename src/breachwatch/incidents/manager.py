# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Incident lifecycle manager.

Turns qualifying anomalies into incidents, runs the automatic response
(alerting, containment, regulator notice drafting, investigation
bookkeeping, subject notices) and guards every later mutation of an
incident behind a per-incident lock.  Across processes the repository's
version check rejects stale writes; operator actions then re-read and
re-apply.

Ordering rule for every mutation: persist, then audit, then alert.
Alerts are fire-and-forget, so a delivery failure can never undo a
recorded state change.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from breachwatch.audit.events import AuditAction
from breachwatch.audit.recorder import AuditRecorder
from breachwatch.core.constants import (
    RISK_ORDER,
    AnomalyKind,
    Audience,
    IncidentKind,
    IncidentStatus,
    ResponseStep,
    RiskLevel,
)
from breachwatch.core.exceptions import (
    ConcurrentModification,
    IncidentNotFound,
    InvalidTransition,
)
from breachwatch.crypto.vault import KeyVault
from breachwatch.incidents.containment import ContainmentExecutor, ContainmentReport
from breachwatch.incidents.notices import (
    MemorySubjectNotificationQueue,
    SubjectNotificationQueue,
    draft_regulator_notification,
    subject_notice_for,
)
from breachwatch.incidents.state import ensure_transition
from breachwatch.models.anomaly import SecurityAnomaly
from breachwatch.models.incident import (
    NotificationState,
    RegulatorNoticeStatus,
    SecurityIncident,
)
from breachwatch.models.risk import RiskAssessment
from breachwatch.notifications.dispatcher import Notifier
from breachwatch.risk.scorer import (
    assess,
    requires_regulator_notification,
    requires_subject_notification,
    should_create_incident,
)
from breachwatch.storage.base import IncidentRepository

logger = logging.getLogger("breachwatch.incidents.manager")

_T = TypeVar("_T")

# Read-modify-write attempts before a concurrent modification is surfaced.
_WRITE_ATTEMPTS = 3

_KIND_MAP: dict[str, IncidentKind] = {
    AnomalyKind.UNAUTHORIZED_ACCESS.value: IncidentKind.UNAUTHORIZED_ACCESS,
    AnomalyKind.DATA_LEAK.value: IncidentKind.DATA_BREACH,
    AnomalyKind.UNUSUAL_ACTIVITY.value: IncidentKind.UNAUTHORIZED_ACCESS,
    AnomalyKind.SYSTEM_BREACH.value: IncidentKind.SYSTEM_COMPROMISE,
    IncidentKind.VENDOR_INCIDENT.value: IncidentKind.VENDOR_INCIDENT,
}


def map_incident_kind(anomaly_kind: str) -> IncidentKind:
    """Incident kind for an anomaly kind; unknown kinds become unauthorized access."""
    return _KIND_MAP.get(anomaly_kind, IncidentKind.UNAUTHORIZED_ACCESS)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_incident_id(now: datetime) -> str:
    return f"INC-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:9]}"


class IncidentManager:
    """Owns incident creation and every later state change."""

    def __init__(
        self,
        *,
        repository: IncidentRepository,
        recorder: AuditRecorder,
        vault: KeyVault,
        notifier: Notifier,
        containment: ContainmentExecutor | None = None,
        subject_queue: SubjectNotificationQueue | None = None,
        deadline_window: timedelta = timedelta(hours=72),
        high_risk_subject_threshold: int = 100,
        dpo_contact: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._recorder = recorder
        self._vault = vault
        self._notifier = notifier
        self._containment = containment or ContainmentExecutor()
        self._subject_queue = subject_queue or MemorySubjectNotificationQueue()
        self._deadline_window = deadline_window
        self._high_risk_subject_threshold = high_risk_subject_threshold
        self._dpo_contact = dpo_contact
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

        self._steps: dict[ResponseStep, Callable[[SecurityIncident, str], Awaitable[None]]] = {
            ResponseStep.ALERT_SECURITY: self._step_alert_security,
            ResponseStep.CONTAIN: self._step_contain,
            ResponseStep.PREPARE_REGULATOR_NOTICE: self._step_prepare_regulator_notice,
            ResponseStep.BEGIN_INVESTIGATION: self._step_begin_investigation,
            ResponseStep.SCHEDULE_SUBJECT_NOTICES: self._step_schedule_subject_notices,
        }

    @property
    def subject_queue(self) -> SubjectNotificationQueue:
        return self._subject_queue

    def _lock_for(self, incident_id: str) -> asyncio.Lock:
        lock = self._locks.get(incident_id)
        if lock is None:
            lock = self._locks[incident_id] = asyncio.Lock()
        return lock

    async def _require(self, incident_id: str) -> SecurityIncident:
        incident = await self._repository.get_incident(incident_id)
        if incident is None:
            raise IncidentNotFound(incident_id)
        return incident

    async def _persist(self, incident: SecurityIncident) -> None:
        incident.updated_at = self._clock()
        await self._repository.save_incident(incident)

    async def _read_modify_write(
        self,
        incident_id: str,
        apply: Callable[[SecurityIncident], Awaitable[_T]],
    ) -> _T:
        """Apply *apply* to a fresh copy, re-reading if another writer got there first.

        *apply* must persist before it audits or alerts, so a rejected write
        leaves nothing behind.  The caller holds the incident lock.
        """
        attempt = 1
        while True:
            incident = await self._require(incident_id)
            try:
                return await apply(incident)
            except ConcurrentModification:
                if attempt >= _WRITE_ATTEMPTS:
                    raise
                logger.warning(
                    "Incident %s changed concurrently; retrying (attempt %d)",
                    incident_id,
                    attempt,
                    extra={"incident_id": incident_id},
                )
                attempt += 1

    async def _update(
        self,
        incident_id: str,
        apply: Callable[[SecurityIncident], Awaitable[_T]],
    ) -> _T:
        async with self._lock_for(incident_id):
            return await self._read_modify_write(incident_id, apply)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def handle_anomaly(
        self, anomaly: SecurityAnomaly, *, actor: str = "system"
    ) -> SecurityIncident | None:
        """Triage *anomaly*; create and respond to an incident if it qualifies.

        Non-qualifying anomalies are audit-logged with their assessment and
        ``None`` is returned.
        """
        assessment = assess(anomaly)

        if not should_create_incident(
            anomaly,
            assessment,
            high_risk_subject_threshold=self._high_risk_subject_threshold,
        ):
            await self._recorder.record_anomaly_dismissed(anomaly, assessment, actor=actor)
            logger.info(
                "Anomaly %s dismissed (kind=%s, risk=%s)",
                anomaly.id,
                anomaly.kind,
                assessment.overall_risk,
            )
            return None

        incident = await self._create_incident(anomaly, assessment, actor=actor)
        for step in ResponseStep:
            await self._run_step(incident.id, step, actor=actor)
        return await self._require(incident.id)

    async def _create_incident(
        self,
        anomaly: SecurityAnomaly,
        assessment: RiskAssessment,
        *,
        actor: str,
    ) -> SecurityIncident:
        now = self._clock()
        severity = max(
            anomaly.severity_hint, assessment.overall_risk, key=RISK_ORDER.__getitem__
        )
        kind = map_incident_kind(anomaly.kind)

        evidence = self._vault.encrypt_json({
            "anomaly_id": anomaly.id,
            "anomaly_kind": anomaly.kind,
            "detected_at": anomaly.detected_at.isoformat(),
            "affected_data_categories": sorted(anomaly.affected_data_categories),
            "raw_details": anomaly.raw_details.model_dump(mode="json", exclude_none=True),
        })

        incident = SecurityIncident(
            id=_new_incident_id(now),
            kind=kind,
            severity=severity,
            detected_at=anomaly.detected_at,
            source_anomaly_id=anomaly.id,
            description=anomaly.raw_details.description or (
                f"{anomaly.kind} anomaly: {anomaly.estimated_affected_subjects} "
                "data subjects potentially affected"
            ),
            affected_data_types=set(anomaly.affected_data_categories),
            affected_subjects_count=anomaly.estimated_affected_subjects,
            risk_assessment=assessment,
            notification=NotificationState(
                regulator_notification_required=requires_regulator_notification(assessment),
                subject_notification_required=requires_subject_notification(assessment),
                deadline=anomaly.detected_at + self._deadline_window,
            ),
            evidence=evidence,
            updated_at=now,
        )

        await self._repository.save_incident(incident)
        await self._recorder.record_incident_created(incident, actor=actor)
        logger.warning(
            "Security incident created: %s (kind=%s, severity=%s, regulator=%s)",
            incident.id,
            incident.kind,
            incident.severity,
            incident.notification.regulator_notification_required,
            extra={"incident_id": incident.id, "actor": actor},
        )
        return incident

    # ------------------------------------------------------------------
    # Response steps
    # ------------------------------------------------------------------

    async def retry_response_step(
        self, incident_id: str, step: ResponseStep, *, actor: str = "system"
    ) -> SecurityIncident:
        """Re-run a response step that previously failed.

        Steps that did not fail are left alone and the incident is returned
        unchanged.
        """
        incident = await self._require(incident_id)
        if step not in incident.failed_response_steps:
            logger.info("Step %s of incident %s has not failed; nothing to retry", step, incident_id)
            return incident
        await self._run_step(incident_id, step, actor=actor)
        return await self._require(incident_id)

    async def _run_step(self, incident_id: str, step: ResponseStep, *, actor: str) -> bool:
        async with self._lock_for(incident_id):
            incident = await self._require(incident_id)
            try:
                await self._steps[step](incident, actor)
            except Exception as exc:
                logger.exception(
                    "Response step %s failed for incident %s",
                    step,
                    incident_id,
                    extra={"incident_id": incident_id, "actor": actor},
                )
                await self._record_step_failure(incident_id, step, exc, actor=actor)
                return False

            if step in incident.failed_response_steps:

                async def clear(current: SecurityIncident) -> None:
                    current.failed_response_steps = [
                        s for s in current.failed_response_steps if s != step
                    ]
                    await self._persist(current)

                await self._read_modify_write(incident_id, clear)
            return True

    async def _record_step_failure(
        self, incident_id: str, step: ResponseStep, exc: Exception, *, actor: str
    ) -> None:
        async def record(incident: SecurityIncident) -> None:
            if step not in incident.failed_response_steps:
                incident.failed_response_steps.append(step)
            await self._persist(incident)
            await self._recorder.record_incident_event(
                incident,
                AuditAction.RESPONSE_STEP_FAILED,
                actor=actor,
                details={"step": str(step), "error": str(exc) or type(exc).__name__},
            )

        await self._read_modify_write(incident_id, record)

    async def _step_alert_security(self, incident: SecurityIncident, actor: str) -> None:
        self._notifier.alert(
            Audience.SECURITY_OPERATIONS,
            incident.severity,
            f"Security incident {incident.id}: {incident.kind}",
            (
                f"{incident.description}\n"
                f"Severity: {incident.severity}. "
                f"Affected subjects: {incident.affected_subjects_count}. "
                f"Regulator notification required: "
                f"{incident.notification.regulator_notification_required}."
            ),
            incident_id=incident.id,
            details={"kind": str(incident.kind), "status": str(incident.status)},
        )

    async def _step_contain(self, incident: SecurityIncident, actor: str) -> None:
        if incident.contained_at is None:
            await self._contain(incident, actor)
            return

        # Containment was stored but its audit entry may not have been.
        entries = await self._recorder.entries_for(incident.id)
        if any(e.action == AuditAction.INCIDENT_CONTAINED for e in entries):
            return
        await self._recorder.record_incident_event(
            incident,
            AuditAction.INCIDENT_CONTAINED,
            actor=actor,
            details={
                "from": str(IncidentStatus.DETECTED),
                "to": str(IncidentStatus.CONTAINED),
                "actions": incident.containment_actions,
                "failures": incident.containment_failures,
                "contained_at": incident.contained_at.isoformat(),
            },
        )
        logger.info(
            "Recorded missing containment audit entry for incident %s",
            incident.id,
            extra={"incident_id": incident.id, "actor": actor},
        )

    async def _step_prepare_regulator_notice(self, incident: SecurityIncident, actor: str) -> None:
        if not incident.notification.regulator_notification_required:
            return

        existing = await self._repository.get_regulator_notification(incident.id)
        if existing is None:
            notice = draft_regulator_notification(
                incident, contact_dpo=self._dpo_contact, created_at=self._clock()
            )
            await self._repository.save_regulator_notification(notice)
            await self._recorder.record_incident_event(
                incident,
                AuditAction.REGULATOR_NOTICE_DRAFTED,
                actor=actor,
                details={"deadline": notice.deadline.isoformat(), "status": str(notice.status)},
            )

        self._notifier.alert(
            Audience.COMPLIANCE_OWNER,
            RiskLevel.CRITICAL,
            f"Regulator notification required for {incident.id}",
            (
                f"Incident {incident.id} ({incident.kind}, severity {incident.severity}) "
                f"requires notification of the data-protection authority by "
                f"{incident.notification.deadline.isoformat()}. A draft has been prepared."
            ),
            incident_id=incident.id,
            details={"deadline": incident.notification.deadline.isoformat()},
        )

    async def _step_begin_investigation(self, incident: SecurityIncident, actor: str) -> None:
        if incident.investigation_started_at is not None:
            return
        incident.investigation_started_at = self._clock()
        await self._persist(incident)
        await self._recorder.record_incident_event(
            incident,
            AuditAction.INVESTIGATION_STARTED,
            actor=actor,
            details={"started_at": incident.investigation_started_at.isoformat()},
        )
        logger.info("Investigation started for incident %s", incident.id)

    async def _step_schedule_subject_notices(self, incident: SecurityIncident, actor: str) -> None:
        notification = incident.notification
        if not notification.subject_notification_required or notification.subject_notifications_scheduled:
            return
        await self._subject_queue.enqueue(subject_notice_for(incident))
        notification.subject_notifications_scheduled = True
        await self._persist(incident)
        await self._recorder.record_incident_event(
            incident,
            AuditAction.SUBJECT_NOTICES_SCHEDULED,
            actor=actor,
            details={"subjects": incident.affected_subjects_count},
        )
        logger.info("Subject notifications scheduled for incident %s", incident.id)

    # ------------------------------------------------------------------
    # Containment
    # ------------------------------------------------------------------

    async def containment_dispatch(
        self,
        incident: SecurityIncident,
        *,
        actor: str = "system",
    ) -> ContainmentReport:
        """Run the containment playbook for *incident* and move it to contained.

        Failed actions are collected on the report and on the incident; they
        never prevent the transition.  Raises :class:`InvalidTransition` if
        the incident is no longer in ``detected``.  The playbook is not re-run
        when another process changed the incident meanwhile;
        :class:`ConcurrentModification` is raised instead.
        """
        async with self._lock_for(incident.id):
            current = await self._require(incident.id)
            return await self._contain(current, actor)

    async def _contain(self, incident: SecurityIncident, actor: str) -> ContainmentReport:
        ensure_transition(incident, IncidentStatus.CONTAINED)
        report = await self._containment.execute(incident)

        previous = incident.status
        incident.status = IncidentStatus.CONTAINED
        incident.contained_at = self._clock()
        incident.containment_actions = [str(a) for a in report.attempted]
        incident.containment_failures = {f.action: f.reason for f in report.failures}
        await self._persist(incident)
        await self._recorder.record_transition(
            incident,
            AuditAction.INCIDENT_CONTAINED,
            from_status=str(previous),
            actor=actor,
            details={
                "actions": incident.containment_actions,
                "failures": incident.containment_failures,
            },
        )

        if report.failures:
            self._notifier.alert(
                Audience.SECURITY_OPERATIONS,
                RiskLevel.HIGH,
                f"Containment incomplete for {incident.id}",
                "Failed actions: " + ", ".join(
                    f"{f.action} ({f.reason})" for f in report.failures
                ),
                incident_id=incident.id,
            )
        return report

    # ------------------------------------------------------------------
    # Operator actions
    # ------------------------------------------------------------------

    async def mark_resolved(
        self, incident_id: str, notes: str, *, actor: str = "system"
    ) -> SecurityIncident:
        """Resolve a contained incident.

        Raises :class:`InvalidTransition` from ``detected`` or ``resolved``;
        the stored incident is left unchanged in that case.
        """

        async def resolve(incident: SecurityIncident) -> SecurityIncident:
            ensure_transition(incident, IncidentStatus.RESOLVED)

            previous = incident.status
            incident.status = IncidentStatus.RESOLVED
            incident.resolved_at = self._clock()
            incident.resolution_notes = notes
            await self._persist(incident)
            await self._recorder.record_transition(
                incident,
                AuditAction.INCIDENT_RESOLVED,
                from_status=str(previous),
                actor=actor,
                details={"resolution_notes": notes},
            )
            return incident

        incident = await self._update(incident_id, resolve)
        logger.info(
            "Incident %s resolved by %s",
            incident_id,
            actor,
            extra={"incident_id": incident_id, "actor": actor},
        )
        return incident

    async def record_regulator_notification_sent(
        self,
        incident_id: str,
        *,
        actor: str = "system",
        sent_at: datetime | None = None,
    ) -> SecurityIncident:
        """Flag the regulator notification as delivered.

        Idempotent: a second call leaves the first timestamp in place and
        writes no further audit entry.
        """

        async def record(incident: SecurityIncident) -> SecurityIncident:
            notification = incident.notification
            if not notification.regulator_notification_required:
                raise InvalidTransition(incident_id, str(incident.status), "regulator_notified")
            if notification.regulator_notification_sent_at is not None:
                return incident

            notification.regulator_notification_sent_at = sent_at or self._clock()
            await self._persist(incident)

            notice = await self._repository.get_regulator_notification(incident_id)
            if notice is not None and notice.status == RegulatorNoticeStatus.DRAFT:
                notice.status = RegulatorNoticeStatus.SENT
                notice.sent_at = notification.regulator_notification_sent_at
                await self._repository.save_regulator_notification(notice)

            await self._recorder.record_incident_event(
                incident,
                AuditAction.REGULATOR_NOTIFIED,
                actor=actor,
                details={
                    "sent_at": notification.regulator_notification_sent_at.isoformat(),
                    "deadline": notification.deadline.isoformat(),
                    "on_time": notification.regulator_notification_sent_at <= notification.deadline,
                },
            )
            logger.info(
                "Regulator notification recorded for incident %s",
                incident_id,
                extra={"incident_id": incident_id, "actor": actor},
            )
            return incident

        return await self._update(incident_id, record)

    async def record_subject_notifications_sent(
        self, incident_id: str, count: int, *, actor: str = "system"
    ) -> SecurityIncident:
        if count < 1:
            raise ValueError("count must be positive")

        async def record(incident: SecurityIncident) -> SecurityIncident:
            if not incident.notification.subject_notification_required:
                raise InvalidTransition(incident_id, str(incident.status), "subjects_notified")

            incident.notification.subject_notifications_sent_count += count
            await self._persist(incident)
            await self._recorder.record_incident_event(
                incident,
                AuditAction.SUBJECT_NOTICES_SENT,
                actor=actor,
                details={
                    "count": count,
                    "total": incident.notification.subject_notifications_sent_count,
                },
            )
            return incident

        return await self._update(incident_id, record)

    async def add_investigation_note(
        self, incident_id: str, note: str, *, actor: str = "system"
    ) -> SecurityIncident:
        async def append(incident: SecurityIncident) -> SecurityIncident:
            incident.investigation_notes.append(note)
            await self._persist(incident)
            await self._recorder.record_incident_event(
                incident,
                AuditAction.INVESTIGATION_NOTE_ADDED,
                actor=actor,
                details={"note": note},
                contains_sensitive_data=True,
            )
            return incident

        return await self._update(incident_id, append)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_incident(self, incident_id: str) -> SecurityIncident:
        return await self._require(incident_id)

    async def list_incidents(self, *, limit: int = 100) -> list[SecurityIncident]:
        return await self._repository.list_incidents(limit=limit)

    async def read_evidence(self, incident_id: str) -> dict[str, Any]:
        """Decrypt the evidence captured when the incident was created."""
        incident = await self._require(incident_id)
        if incident.evidence is None:
            return {}
        return self._vault.decrypt_json(incident.evidence)
