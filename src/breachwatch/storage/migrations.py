# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Versioned database migration system for the breachwatch database.

Applied versions are tracked in a ``schema_migrations`` table.  Each
migration is idempotent and is committed on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Migration registry infrastructure
# ---------------------------------------------------------------------------

MigrationFunc = Callable[[aiosqlite.Connection], Coroutine[Any, Any, None]]


@dataclass(frozen=True, slots=True)
class Migration:
    """A single database migration."""

    version: int
    name: str
    func: MigrationFunc


# Ordered list of all migrations.  New migrations are appended here.
_MIGRATIONS: list[Migration] = []


def _register(version: int, name: str) -> Callable[[MigrationFunc], MigrationFunc]:
    """Decorator that registers a migration function."""

    def decorator(fn: MigrationFunc) -> MigrationFunc:
        _MIGRATIONS.append(Migration(version=version, name=name, func=fn))
        return fn

    return decorator


_CREATE_SCHEMA_MIGRATIONS = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


async def _ensure_migrations_table(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_SCHEMA_MIGRATIONS)
    await db.commit()


async def get_current_version(db: aiosqlite.Connection) -> int:
    """Return the highest applied migration version, or 0 if none."""
    await _ensure_migrations_table(db)
    cursor = await db.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_migrations"
    )
    row = await cursor.fetchone()
    return int(row[0]) if row else 0


async def run_migrations(db: aiosqlite.Connection) -> list[Migration]:
    """Run all pending migrations in order and return those applied."""
    current = await get_current_version(db)
    applied: list[Migration] = []

    for migration in _MIGRATIONS:
        if migration.version <= current:
            continue

        logger.info(
            "Applying migration %03d: %s", migration.version, migration.name
        )
        await migration.func(db)
        await db.execute(
            "INSERT OR IGNORE INTO schema_migrations (version, name) VALUES (?, ?)",
            (migration.version, migration.name),
        )
        await db.commit()
        applied.append(migration)

    return applied


# =========================================================================
# Migration 001 -- incidents and regulator notifications
# =========================================================================

_CREATE_INCIDENTS = """
CREATE TABLE IF NOT EXISTS incidents (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    severity TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'detected',
    detected_at TEXT NOT NULL,
    deadline TEXT NOT NULL,
    regulator_required INTEGER NOT NULL DEFAULT 0,
    regulator_sent_at TEXT,
    payload TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_CREATE_REGULATOR_NOTIFICATIONS = """
CREATE TABLE IF NOT EXISTS regulator_notifications (
    incident_id TEXT PRIMARY KEY REFERENCES incidents(id),
    status TEXT NOT NULL DEFAULT 'draft',
    payload TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

_INDEXES_001 = [
    "CREATE INDEX IF NOT EXISTS idx_incidents_status ON incidents(status);",
    "CREATE INDEX IF NOT EXISTS idx_incidents_deadline ON incidents(deadline);",
    (
        "CREATE INDEX IF NOT EXISTS idx_incidents_regulator_pending "
        "ON incidents(regulator_required, regulator_sent_at);"
    ),
]


@_register(1, "incidents")
async def _migration_001_incidents(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_INCIDENTS)
    await db.execute(_CREATE_REGULATOR_NOTIFICATIONS)
    for idx_sql in _INDEXES_001:
        await db.execute(idx_sql)


# =========================================================================
# Migration 002 -- append-only audit log
# =========================================================================

_CREATE_AUDIT_LOG = """
CREATE TABLE IF NOT EXISTS audit_log (
    sequence INTEGER PRIMARY KEY,
    entry_id TEXT NOT NULL UNIQUE,
    timestamp TEXT NOT NULL,
    actor TEXT NOT NULL,
    action TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '{}',
    contains_sensitive_data INTEGER NOT NULL DEFAULT 0,
    previous_hash TEXT NOT NULL,
    entry_hash TEXT NOT NULL
);
"""

# Rows are write-once: reject any UPDATE or DELETE at the database level.
_AUDIT_TRIGGERS = [
    """
    CREATE TRIGGER IF NOT EXISTS trg_audit_log_no_update
    BEFORE UPDATE ON audit_log
    BEGIN
        SELECT RAISE(ABORT, 'audit_log is append-only');
    END;
    """,
    """
    CREATE TRIGGER IF NOT EXISTS trg_audit_log_no_delete
    BEFORE DELETE ON audit_log
    BEGIN
        SELECT RAISE(ABORT, 'audit_log is append-only');
    END;
    """,
]


@_register(2, "audit_log")
async def _migration_002_audit_log(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_AUDIT_LOG)
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_log(entity_id, sequence);"
    )
    for trigger_sql in _AUDIT_TRIGGERS:
        await db.execute(trigger_sql)


# =========================================================================
# Migration 003 -- optimistic concurrency token on incidents
# =========================================================================


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    cursor = await db.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in await cursor.fetchall())


@_register(3, "incident_version")
async def _migration_003_incident_version(db: aiosqlite.Connection) -> None:
    if not await _column_exists(db, "incidents", "version"):
        await db.execute(
            "ALTER TABLE incidents ADD COLUMN version INTEGER NOT NULL DEFAULT 1"
        )


# =========================================================================
# Migration 004 -- deadline alert bookkeeping
# =========================================================================

_CREATE_DEADLINE_ALERTS = """
CREATE TABLE IF NOT EXISTS deadline_alerts (
    incident_id TEXT NOT NULL REFERENCES incidents(id),
    deadline TEXT NOT NULL,
    approaching_alerted_at TEXT,
    violation_count INTEGER NOT NULL DEFAULT 0,
    last_alerted_at TEXT,
    PRIMARY KEY (incident_id, deadline)
);
"""


@_register(4, "deadline_alerts")
async def _migration_004_deadline_alerts(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_DEADLINE_ALERTS)


# =========================================================================
# Migration 005 -- key vault version history
# =========================================================================

_CREATE_KEY_VERSIONS = """
CREATE TABLE IF NOT EXISTS key_versions (
    version INTEGER PRIMARY KEY,
    created_at TEXT NOT NULL,
    purged_at TEXT
);
"""


@_register(5, "key_versions")
async def _migration_005_key_versions(db: aiosqlite.Connection) -> None:
    await db.execute(_CREATE_KEY_VERSIONS)
