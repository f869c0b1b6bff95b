# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""SQLite repository for incidents, regulator notification drafts and
deadline alert bookkeeping."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import aiosqlite

from breachwatch.core.exceptions import ConcurrentModification, StorageError
from breachwatch.models.incident import (
    DeadlineAlertMark,
    RegulatorNotification,
    SecurityIncident,
)
from breachwatch.storage.base import IncidentRepository

_INSERT_INCIDENT = """
INSERT INTO incidents (
    id, kind, severity, status, detected_at, deadline,
    regulator_required, regulator_sent_at, payload, updated_at, version
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_UPDATE_INCIDENT = """
UPDATE incidents SET
    status = ?,
    regulator_sent_at = ?,
    payload = ?,
    updated_at = ?,
    version = ?
WHERE id = ? AND version = ?
"""


def _row_to_incident(row: aiosqlite.Row) -> SecurityIncident:
    incident = SecurityIncident.model_validate_json(row["payload"])
    incident.version = row["version"]
    return incident


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class SqliteIncidentRepository(IncidentRepository):
    """Stores each incident as a JSON document with indexed lookup columns.

    Writes are conditional on the ``version`` column, so a stale copy can
    never overwrite a newer one, whichever connection or process wrote it.
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def save_incident(self, incident: SecurityIncident) -> None:
        expected = incident.version
        stored = incident.model_copy(update={"version": expected + 1})
        notification = stored.notification
        payload = stored.model_dump_json()
        sent_at = _iso(notification.regulator_notification_sent_at)
        try:
            if expected == 0:
                await self._db.execute(
                    _INSERT_INCIDENT,
                    (
                        stored.id,
                        str(stored.kind),
                        str(stored.severity),
                        str(stored.status),
                        stored.detected_at.isoformat(),
                        notification.deadline.isoformat(),
                        1 if notification.regulator_notification_required else 0,
                        sent_at,
                        payload,
                        stored.updated_at.isoformat(),
                        stored.version,
                    ),
                )
            else:
                cursor = await self._db.execute(
                    _UPDATE_INCIDENT,
                    (
                        str(stored.status),
                        sent_at,
                        payload,
                        stored.updated_at.isoformat(),
                        stored.version,
                        stored.id,
                        expected,
                    ),
                )
                if cursor.rowcount == 0:
                    await self._db.rollback()
                    raise ConcurrentModification(incident.id, expected)
            await self._db.commit()
        except aiosqlite.IntegrityError as exc:
            await self._db.rollback()
            raise ConcurrentModification(incident.id, expected) from exc
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to save incident {incident.id}: {exc}") from exc
        incident.version = stored.version

    async def get_incident(self, incident_id: str) -> SecurityIncident | None:
        cursor = await self._db.execute(
            "SELECT payload, version FROM incidents WHERE id = ?", (incident_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_incident(row)

    async def load_open_incidents(self) -> list[SecurityIncident]:
        cursor = await self._db.execute(
            """
            SELECT payload, version FROM incidents
            WHERE status != 'resolved'
               OR (regulator_required = 1 AND regulator_sent_at IS NULL)
            ORDER BY deadline ASC
            """
        )
        rows = await cursor.fetchall()
        return [_row_to_incident(row) for row in rows]

    async def list_incidents(self, *, limit: int = 100) -> list[SecurityIncident]:
        cursor = await self._db.execute(
            "SELECT payload, version FROM incidents ORDER BY detected_at DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_incident(row) for row in rows]

    async def save_regulator_notification(self, notice: RegulatorNotification) -> None:
        try:
            await self._db.execute(
                """
                INSERT INTO regulator_notifications (incident_id, status, payload, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(incident_id) DO UPDATE SET
                    status = excluded.status,
                    payload = excluded.payload
                """,
                (
                    notice.incident_id,
                    str(notice.status),
                    notice.model_dump_json(),
                    notice.created_at.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                f"Failed to save regulator notification for {notice.incident_id}: {exc}"
            ) from exc

    async def get_regulator_notification(
        self, incident_id: str
    ) -> RegulatorNotification | None:
        cursor = await self._db.execute(
            "SELECT payload FROM regulator_notifications WHERE incident_id = ?",
            (incident_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return RegulatorNotification.model_validate_json(row["payload"])

    async def load_deadline_marks(
        self, incident_ids: Iterable[str]
    ) -> list[DeadlineAlertMark]:
        ids = list(incident_ids)
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        cursor = await self._db.execute(
            f"""
            SELECT incident_id, deadline, approaching_alerted_at,
                   violation_count, last_alerted_at
            FROM deadline_alerts
            WHERE incident_id IN ({placeholders})
            """,
            ids,
        )
        rows = await cursor.fetchall()
        return [
            DeadlineAlertMark(
                incident_id=row["incident_id"],
                deadline=datetime.fromisoformat(row["deadline"]),
                approaching_alerted_at=(
                    datetime.fromisoformat(row["approaching_alerted_at"])
                    if row["approaching_alerted_at"]
                    else None
                ),
                violation_count=row["violation_count"],
                last_alerted_at=(
                    datetime.fromisoformat(row["last_alerted_at"])
                    if row["last_alerted_at"]
                    else None
                ),
            )
            for row in rows
        ]

    async def save_deadline_mark(self, mark: DeadlineAlertMark) -> None:
        try:
            await self._db.execute(
                """
                INSERT INTO deadline_alerts (
                    incident_id, deadline, approaching_alerted_at,
                    violation_count, last_alerted_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(incident_id, deadline) DO UPDATE SET
                    approaching_alerted_at = excluded.approaching_alerted_at,
                    violation_count = excluded.violation_count,
                    last_alerted_at = excluded.last_alerted_at
                """,
                (
                    mark.incident_id,
                    mark.deadline.isoformat(),
                    _iso(mark.approaching_alerted_at),
                    mark.violation_count,
                    _iso(mark.last_alerted_at),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                f"Failed to save deadline alerts for {mark.incident_id}: {exc}"
            ) from exc
