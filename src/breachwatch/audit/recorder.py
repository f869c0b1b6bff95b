# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Append-only audit recorder interface and in-memory implementation."""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from breachwatch.audit.events import AuditAction, AuditEntry, compute_entry_hash

if TYPE_CHECKING:
    from breachwatch.models.anomaly import SecurityAnomaly
    from breachwatch.models.incident import SecurityIncident
    from breachwatch.models.risk import RiskAssessment

_logger = logging.getLogger("breachwatch.audit")


class AuditRecorder(abc.ABC):
    """Write-once evidence log.

    Implementations must assign strictly increasing sequence numbers, link
    each entry to its predecessor by hash, and never overwrite or delete a
    stored entry.  Unlike alert delivery, a failed append propagates to the
    caller: an unrecorded transition is not a completed one.
    """

    def __init__(self, *, log_dir: Path | None = None) -> None:
        self._log_dir = log_dir
        if self._log_dir is not None:
            self._log_dir.mkdir(parents=True, exist_ok=True)

    @abc.abstractmethod
    async def append(self, entry: AuditEntry) -> AuditEntry:
        """Persist *entry* and return it with sequence and hashes assigned."""

    @abc.abstractmethod
    async def entries_for(self, entity_id: str) -> list[AuditEntry]:
        """Return every entry for *entity_id* in insertion order."""

    @abc.abstractmethod
    async def all_entries(self) -> list[AuditEntry]:
        """Return the full log in insertion order."""

    @staticmethod
    def _seal(entry: AuditEntry, sequence: int, previous_hash: str) -> AuditEntry:
        return entry.model_copy(update={
            "sequence": sequence,
            "previous_hash": previous_hash,
            "entry_hash": compute_entry_hash(entry, sequence, previous_hash),
        })

    def _write_json_log(self, entry: AuditEntry) -> None:
        """Append a single JSON line to the daily audit mirror file."""
        if self._log_dir is None:
            return
        try:
            today = datetime.now(UTC).strftime("%Y-%m-%d")
            log_file = self._log_dir / f"audit-{today}.jsonl"
            line = json.dumps(entry.model_dump(mode="json"), default=str)
            with log_file.open("a") as fh:
                fh.write(line + "\n")
        except Exception:
            _logger.exception("Failed to write JSON audit mirror")

    def _log_appended(self, entry: AuditEntry) -> None:
        self._write_json_log(entry)
        _logger.info(
            "audit seq=%d action=%s actor=%s entity=%s/%s",
            entry.sequence,
            entry.action,
            entry.actor,
            entry.entity_type,
            entry.entity_id,
        )

    # -----------------------------------------------------------------
    # Convenience methods for common entries
    # -----------------------------------------------------------------

    async def record_anomaly_dismissed(
        self,
        anomaly: SecurityAnomaly,
        assessment: RiskAssessment,
        *,
        actor: str = "system",
    ) -> AuditEntry:
        """Record an anomaly that did not qualify as an incident."""
        return await self.append(
            AuditEntry(
                action=AuditAction.ANOMALY_DISMISSED,
                actor=actor,
                entity_type="security_anomaly",
                entity_id=anomaly.id,
                details={
                    "anomaly": anomaly.model_dump(mode="json"),
                    "risk_assessment": assessment.model_dump(mode="json"),
                },
                contains_sensitive_data=bool(anomaly.affected_data_categories),
            )
        )

    async def record_incident_created(
        self,
        incident: SecurityIncident,
        *,
        actor: str = "system",
    ) -> AuditEntry:
        return await self.append(
            AuditEntry(
                action=AuditAction.INCIDENT_CREATED,
                actor=actor,
                entity_id=incident.id,
                details={
                    "kind": str(incident.kind),
                    "severity": str(incident.severity),
                    "source_anomaly_id": incident.source_anomaly_id,
                    "affected_subjects_count": incident.affected_subjects_count,
                    "risk_assessment": incident.risk_assessment.model_dump(mode="json"),
                    "regulator_notification_required": (
                        incident.notification.regulator_notification_required
                    ),
                    "subject_notification_required": (
                        incident.notification.subject_notification_required
                    ),
                    "deadline": incident.notification.deadline.isoformat(),
                    "evidence_key_version": (
                        incident.evidence.key_version if incident.evidence else None
                    ),
                },
                contains_sensitive_data=bool(incident.affected_data_types),
            )
        )

    async def record_transition(
        self,
        incident: SecurityIncident,
        action: AuditAction,
        *,
        from_status: str,
        actor: str = "system",
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """Record a status change of *incident* (already applied)."""
        payload: dict[str, Any] = {"from": from_status, "to": str(incident.status)}
        payload.update(details or {})
        return await self.append(
            AuditEntry(
                action=action,
                actor=actor,
                entity_id=incident.id,
                details=payload,
            )
        )

    async def record_incident_event(
        self,
        incident: SecurityIncident,
        action: AuditAction,
        *,
        actor: str = "system",
        details: dict[str, Any] | None = None,
        contains_sensitive_data: bool = False,
    ) -> AuditEntry:
        """Record a non-status event (flags, notes, notices) on *incident*."""
        return await self.append(
            AuditEntry(
                action=action,
                actor=actor,
                entity_id=incident.id,
                details=details or {},
                contains_sensitive_data=contains_sensitive_data,
            )
        )


class MemoryAuditRecorder(AuditRecorder):
    """Process-local audit log, used by tests and the in-memory engine."""

    def __init__(self, *, log_dir: Path | None = None) -> None:
        super().__init__(log_dir=log_dir)
        self._entries: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> AuditEntry:
        async with self._lock:
            previous = self._entries[-1].entry_hash if self._entries else ""
            sealed = self._seal(entry, len(self._entries) + 1, previous)
            self._entries.append(sealed)
        self._log_appended(sealed)
        return sealed

    async def entries_for(self, entity_id: str) -> list[AuditEntry]:
        return [e for e in self._entries if e.entity_id == entity_id]

    async def all_entries(self) -> list[AuditEntry]:
        return list(self._entries)
