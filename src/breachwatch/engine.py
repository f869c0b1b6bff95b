# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Assembly of the response engine from settings.

Example::

    from breachwatch import SecurityAnomaly, build_engine
    from breachwatch.core.config import get_settings

    engine = build_engine(get_settings())
    incident = await engine.manager.handle_anomaly(
        SecurityAnomaly(kind="data_leak", estimated_affected_subjects=5000)
    )
    await engine.aclose()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite

from breachwatch.audit.recorder import AuditRecorder, MemoryAuditRecorder
from breachwatch.audit.store import SqliteAuditRecorder
from breachwatch.core.config import Settings
from breachwatch.crypto.vault import KeyVault
from breachwatch.incidents.containment import ContainmentExecutor
from breachwatch.incidents.manager import IncidentManager
from breachwatch.monitor.deadlines import DeadlineMonitor
from breachwatch.notifications.dispatcher import AlertDispatcher
from breachwatch.notifications.factory import build_dispatcher
from breachwatch.storage.base import IncidentRepository
from breachwatch.storage.memory import MemoryIncidentRepository
from breachwatch.storage.repositories.incidents import SqliteIncidentRepository
from breachwatch.storage.repositories.keys import SqliteKeyVersionStore

logger = logging.getLogger("breachwatch.engine")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ResponseEngine:
    """Every collaborator of a running engine, wired together."""

    settings: Settings
    vault: KeyVault
    recorder: AuditRecorder
    repository: IncidentRepository
    dispatcher: AlertDispatcher
    manager: IncidentManager
    monitor: DeadlineMonitor
    key_store: SqliteKeyVersionStore | None = None
    clock: Callable[[], datetime] = _utcnow

    async def sync_keys(self) -> None:
        """Load rotations and purges recorded by other processes into the vault."""
        if self.key_store is not None:
            await self.key_store.sync(self.vault, self.clock())

    async def rotate_key(self) -> int:
        """Rotate the vault key and record the new version."""
        version = self.vault.rotate_key()
        if self.key_store is not None:
            await self.key_store.record_created(self.vault.versions, self.clock())
        return version

    async def purge_key_versions(self, retain: int | None = None) -> list[int]:
        """Purge old vault keys and record which versions are gone."""
        if self.key_store is not None:
            await self.key_store.record_created(self.vault.versions, self.clock())
        purged = self.vault.purge_key_versions(retain)
        if purged and self.key_store is not None:
            await self.key_store.record_purged(purged, self.clock())
        return purged

    async def aclose(self) -> None:
        """Stop the monitor and flush pending alerts."""
        await self.monitor.stop()
        await self.dispatcher.drain()

    async def __aenter__(self) -> ResponseEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def build_engine(
    settings: Settings,
    db: aiosqlite.Connection | None = None,
    *,
    vault: KeyVault | None = None,
    dispatcher: AlertDispatcher | None = None,
    containment: ContainmentExecutor | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ResponseEngine:
    """Wire an engine.

    With a database connection the incident repository and audit log are
    SQLite-backed and key rotations are recorded; without one everything
    lives in memory.  Call :meth:`ResponseEngine.sync_keys` before
    decrypting data another process may have written.
    """
    vault = vault or KeyVault.from_settings(settings)
    dispatcher = dispatcher or build_dispatcher(settings)
    log_dir = Path(settings.audit_log_dir) if settings.audit_log_dir else None

    repository: IncidentRepository
    recorder: AuditRecorder
    key_store: SqliteKeyVersionStore | None
    if db is not None:
        repository = SqliteIncidentRepository(db)
        recorder = SqliteAuditRecorder(db, log_dir=log_dir)
        key_store = SqliteKeyVersionStore(db)
    else:
        repository = MemoryIncidentRepository()
        recorder = MemoryAuditRecorder(log_dir=log_dir)
        key_store = None

    manager = IncidentManager(
        repository=repository,
        recorder=recorder,
        vault=vault,
        notifier=dispatcher,
        containment=containment or ContainmentExecutor(
            action_timeout=settings.containment_action_timeout
        ),
        deadline_window=timedelta(hours=settings.notification_deadline_hours),
        high_risk_subject_threshold=settings.high_risk_subject_threshold,
        dpo_contact=settings.dpo_email,
        clock=clock,
    )
    monitor = DeadlineMonitor(
        repository,
        dispatcher,
        warning_window=timedelta(hours=settings.deadline_warning_hours),
        interval=settings.deadline_scan_interval_seconds,
        clock=clock,
    )

    logger.debug(
        "Engine built (backend=%s, channels=%d)",
        "sqlite" if db is not None else "memory",
        len(dispatcher.router.channels),
    )
    return ResponseEngine(
        settings=settings,
        vault=vault,
        recorder=recorder,
        repository=repository,
        dispatcher=dispatcher,
        manager=manager,
        monitor=monitor,
        key_store=key_store,
        clock=clock,
    )
