# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Audit entry data model and action enumeration."""

from __future__ import annotations

import hashlib
import json
import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuditAction(StrEnum):
    """Categories of auditable incident-response events."""

    ANOMALY_DISMISSED = "anomaly_dismissed"
    INCIDENT_CREATED = "incident_created"
    INCIDENT_CONTAINED = "incident_contained"
    INCIDENT_RESOLVED = "incident_resolved"
    REGULATOR_NOTICE_DRAFTED = "regulator_notice_drafted"
    REGULATOR_NOTIFIED = "regulator_notified"
    INVESTIGATION_STARTED = "investigation_started"
    INVESTIGATION_NOTE_ADDED = "investigation_note_added"
    SUBJECT_NOTICES_SCHEDULED = "subject_notices_scheduled"
    SUBJECT_NOTICES_SENT = "subject_notices_sent"
    RESPONSE_STEP_FAILED = "response_step_failed"


class AuditEntry(BaseModel):
    """A single write-once audit record.

    ``sequence``, ``previous_hash`` and ``entry_hash`` are assigned by the
    recorder on append; consumers order history by ``sequence``.
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    sequence: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    actor: str = Field(
        default="system",
        description="Operator identity or 'system' for automatic actions",
    )
    action: AuditAction
    entity_type: str = Field(
        default="security_incident",
        description="Type of entity affected (security_incident, anomaly, ...)",
    )
    entity_id: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    contains_sensitive_data: bool = False
    previous_hash: str = ""
    entry_hash: str = ""


def compute_entry_hash(entry: AuditEntry, sequence: int, previous_hash: str) -> str:
    """SHA-256 over the previous hash and the entry's content."""
    material = "|".join([
        previous_hash,
        str(sequence),
        entry.entry_id,
        entry.timestamp.isoformat(),
        entry.actor,
        str(entry.action),
        entry.entity_type,
        entry.entity_id,
        json.dumps(entry.details, sort_keys=True, default=str),
        "1" if entry.contains_sensitive_data else "0",
    ])
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def verify_chain(entries: list[AuditEntry]) -> bool:
    """Return True if *entries* (ordered by sequence) form an unbroken hash chain."""
    previous = ""
    expected_seq = entries[0].sequence if entries else 0
    for entry in entries:
        if entry.sequence != expected_seq or entry.previous_hash != previous:
            return False
        if compute_entry_hash(entry, entry.sequence, previous) != entry.entry_hash:
            return False
        previous = entry.entry_hash
        expected_seq += 1
    return True
