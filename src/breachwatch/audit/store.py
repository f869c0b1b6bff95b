# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite-backed append-only audit recorder."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from breachwatch.audit.events import AuditEntry
from breachwatch.audit.recorder import AuditRecorder
from breachwatch.core.exceptions import StorageError


class SqliteAuditRecorder(AuditRecorder):
    """Persists audit entries to the ``audit_log`` table.

    The table rejects UPDATE and DELETE through triggers installed by the
    migrations, so a stored entry can never be rewritten from this process
    or any other one sharing the database file.
    """

    def __init__(self, db: aiosqlite.Connection, *, log_dir: Path | None = None) -> None:
        super().__init__(log_dir=log_dir)
        self._db = db
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> AuditEntry:
        async with self._lock:
            try:
                cursor = await self._db.execute(
                    "SELECT sequence, entry_hash FROM audit_log "
                    "ORDER BY sequence DESC LIMIT 1"
                )
                last = await cursor.fetchone()
                sequence = (last["sequence"] + 1) if last else 1
                previous = last["entry_hash"] if last else ""
                sealed = self._seal(entry, sequence, previous)

                await self._db.execute(
                    """
                    INSERT INTO audit_log (
                        sequence, entry_id, timestamp, actor, action, entity_type,
                        entity_id, details, contains_sensitive_data,
                        previous_hash, entry_hash
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        sealed.sequence,
                        sealed.entry_id,
                        sealed.timestamp.isoformat(),
                        sealed.actor,
                        str(sealed.action),
                        sealed.entity_type,
                        sealed.entity_id,
                        json.dumps(sealed.details, default=str),
                        1 if sealed.contains_sensitive_data else 0,
                        sealed.previous_hash,
                        sealed.entry_hash,
                    ),
                )
                await self._db.commit()
            except aiosqlite.Error as exc:
                raise StorageError(f"Failed to append audit entry: {exc}") from exc

        self._log_appended(sealed)
        return sealed

    async def entries_for(self, entity_id: str) -> list[AuditEntry]:
        return await self.list_entries(entity_id=entity_id, limit=None)

    async def all_entries(self) -> list[AuditEntry]:
        return await self.list_entries(limit=None)

    async def list_entries(
        self,
        *,
        entity_id: str | None = None,
        action: str | None = None,
        since: datetime | None = None,
        limit: int | None = 100,
    ) -> list[AuditEntry]:
        """Return entries matching the filters, ordered by sequence."""
        conditions: list[str] = []
        params: list[Any] = []

        if entity_id is not None:
            conditions.append("entity_id = ?")
            params.append(entity_id)
        if action is not None:
            conditions.append("action = ?")
            params.append(action)
        if since is not None:
            conditions.append("timestamp >= ?")
            params.append(since.isoformat())

        query = "SELECT * FROM audit_log"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY sequence ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        cursor = await self._db.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    async def count(self) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) FROM audit_log")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0


def _row_to_entry(row: aiosqlite.Row) -> AuditEntry:
    return AuditEntry(
        entry_id=row["entry_id"],
        sequence=row["sequence"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        actor=row["actor"],
        action=row["action"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        details=json.loads(row["details"]),
        contains_sensitive_data=bool(row["contains_sensitive_data"]),
        previous_hash=row["previous_hash"],
        entry_hash=row["entry_hash"],
    )
