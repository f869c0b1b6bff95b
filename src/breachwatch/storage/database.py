# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite connection management (aiosqlite).

One process-wide connection is shared by the incident repository and the
audit recorder so that both write through the same WAL journal.  The CLI
and a long-running ``monitor run`` may open the same file concurrently;
``busy_timeout`` makes the second writer wait instead of failing.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import aiosqlite

from breachwatch.core.exceptions import StorageError
from breachwatch.storage.migrations import run_migrations

logger = logging.getLogger("breachwatch.storage.database")

_BUSY_TIMEOUT_MS = 5000

_db: aiosqlite.Connection | None = None


async def init_db(
    db_path: Path | str = "breachwatch.db",
    *,
    auto_migrate: bool = True,
) -> aiosqlite.Connection:
    """Open the shared connection (once) and bring the schema up to date."""
    global _db

    if _db is not None:
        return _db

    try:
        conn = await aiosqlite.connect(str(db_path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute(f"PRAGMA busy_timeout={_BUSY_TIMEOUT_MS}")

        if auto_migrate:
            applied = await run_migrations(conn)
            if applied:
                logger.info(
                    "Database %s migrated to version %d", db_path, applied[-1].version
                )
    except (aiosqlite.Error, OSError) as exc:
        raise StorageError(f"Failed to initialize database at {db_path}: {exc}") from exc

    _db = conn
    return _db


async def get_db() -> aiosqlite.Connection:
    """Return the shared connection; :class:`StorageError` if none is open."""
    if _db is None:
        raise StorageError("Database not initialized. Call init_db() first.")
    return _db


async def close_db() -> None:
    global _db

    if _db is not None:
        await _db.close()
        _db = None


@contextlib.asynccontextmanager
async def db_session(
    db_path: Path | str, *, auto_migrate: bool = True
) -> AsyncIterator[aiosqlite.Connection]:
    """Open the shared connection for the duration of a block."""
    conn = await init_db(db_path, auto_migrate=auto_migrate)
    try:
        yield conn
    finally:
        await close_db()
