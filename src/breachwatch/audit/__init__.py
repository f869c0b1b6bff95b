# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Append-only, hash-chained audit trail."""

from breachwatch.audit.events import AuditAction, AuditEntry, compute_entry_hash, verify_chain
from breachwatch.audit.recorder import AuditRecorder, MemoryAuditRecorder
from breachwatch.audit.store import SqliteAuditRecorder

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditRecorder",
    "MemoryAuditRecorder",
    "SqliteAuditRecorder",
    "compute_entry_hash",
    "verify_chain",
]
