# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite history of key vault versions.

Only version numbers and their lifecycle are stored; key material is
re-derived from the master secret by every process.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import aiosqlite

from breachwatch.core.exceptions import StorageError
from breachwatch.crypto.vault import KeyVault

logger = logging.getLogger("breachwatch.storage.keys")


@dataclass(frozen=True)
class KeyVersionRecord:
    version: int
    created_at: datetime
    purged_at: datetime | None = None


class SqliteKeyVersionStore:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def load(self) -> list[KeyVersionRecord]:
        cursor = await self._db.execute(
            "SELECT version, created_at, purged_at FROM key_versions ORDER BY version"
        )
        rows = await cursor.fetchall()
        return [
            KeyVersionRecord(
                version=row["version"],
                created_at=datetime.fromisoformat(row["created_at"]),
                purged_at=(
                    datetime.fromisoformat(row["purged_at"]) if row["purged_at"] else None
                ),
            )
            for row in rows
        ]

    async def record_created(self, versions: Iterable[int], created_at: datetime) -> None:
        try:
            await self._db.executemany(
                "INSERT OR IGNORE INTO key_versions (version, created_at) VALUES (?, ?)",
                [(version, created_at.isoformat()) for version in versions],
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to record key versions: {exc}") from exc

    async def record_purged(self, versions: Iterable[int], purged_at: datetime) -> None:
        try:
            await self._db.executemany(
                "UPDATE key_versions SET purged_at = ? WHERE version = ? AND purged_at IS NULL",
                [(purged_at.isoformat(), version) for version in versions],
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to record purged key versions: {exc}") from exc

    async def sync(self, vault: KeyVault, now: datetime) -> None:
        """Bring *vault* in line with the stored history.

        An empty history is seeded from the vault's own versions.
        """
        records = await self.load()
        if not records:
            await self.record_created(vault.versions, now)
            return

        active = {r.version: r.created_at for r in records if r.purged_at is None}
        if not active:
            raise StorageError("Every stored key version has been purged")
        vault.restore(active, latest=max(r.version for r in records))
