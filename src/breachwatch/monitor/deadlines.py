# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""DeadlineMonitor: periodic scan for regulator-notification deadlines.

Uses pure asyncio.  The monitor owns its background task.  It reads
incidents through the repository and never writes them back; only its
own alert bookkeeping is stored.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel

from breachwatch.core.constants import Audience, RiskLevel
from breachwatch.models.incident import DeadlineAlertMark, SecurityIncident
from breachwatch.notifications.dispatcher import Notifier
from breachwatch.storage.base import IncidentRepository

logger = logging.getLogger("breachwatch.monitor.deadlines")

_ESCALATE_AFTER = timedelta(days=1)


class DeadlineAlertKind(StrEnum):
    APPROACHING = "deadline_approaching"
    VIOLATED = "deadline_violated"


class DeadlineAlert(BaseModel):
    """One alert raised by a scan."""

    incident_id: str
    kind: DeadlineAlertKind
    severity: RiskLevel
    deadline: datetime
    remaining: timedelta
    violation_count: int = 0


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _format_remaining(delta: timedelta) -> str:
    hours, rem = divmod(int(abs(delta).total_seconds()), 3600)
    return f"{hours}h{rem // 60:02d}m"


class DeadlineMonitor:
    """Scans open incidents and alerts on approaching or missed deadlines.

    * An approaching deadline is announced once per incident.
    * A missed deadline is announced on every scan until the notification
      is recorded.  The first violation alert is ``high``; later ones, or
      any raised a full day past the deadline, are ``critical``.

    What has been announced is stored through the repository as
    :class:`DeadlineAlertMark` records, so one-shot scans from separate
    processes do not repeat the warning.
    """

    def __init__(
        self,
        repository: IncidentRepository,
        notifier: Notifier,
        *,
        warning_window: timedelta = timedelta(hours=24),
        interval: float = 1800.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._notifier = notifier
        self._warning_window = warning_window
        self._interval = interval
        self._clock = clock

        # incident id -> violation alerts raised so far, as of the last scan
        self._violations: dict[str, int] = {}

        self._scan_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._wake: asyncio.Event | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def violation_count(self, incident_id: str) -> int:
        return self._violations.get(incident_id, 0)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def scan(self, now: datetime | None = None) -> list[DeadlineAlert]:
        """Run a single scan and return the alerts it raised."""
        async with self._scan_lock:
            now = now or self._clock()
            snapshot = await self._repository.load_open_incidents()
            pending = {
                incident.id: incident
                for incident in snapshot
                if incident.notification.regulator_notification_pending
            }

            marks: dict[tuple[str, datetime], DeadlineAlertMark] = {}
            if pending:
                for mark in await self._repository.load_deadline_marks(pending.keys()):
                    marks[(mark.incident_id, mark.deadline)] = mark

            violations: dict[str, int] = {}
            alerts: list[DeadlineAlert] = []
            for incident in pending.values():
                deadline = incident.notification.deadline
                mark = marks.get((incident.id, deadline)) or DeadlineAlertMark(
                    incident_id=incident.id, deadline=deadline
                )
                alert = self._evaluate(incident, mark, now)
                if alert is not None:
                    mark.last_alerted_at = now
                    await self._repository.save_deadline_mark(mark)
                    alerts.append(alert)
                    self._emit(alert)
                if mark.violation_count:
                    violations[incident.id] = mark.violation_count
            self._violations = violations

            if alerts:
                logger.info(
                    "Deadline scan raised %d alert(s) over %d pending incident(s)",
                    len(alerts),
                    len(pending),
                )
            return alerts

    def _evaluate(
        self, incident: SecurityIncident, mark: DeadlineAlertMark, now: datetime
    ) -> DeadlineAlert | None:
        """Decide the alert for *incident* and advance *mark* to match it."""
        deadline = incident.notification.deadline
        remaining = deadline - now

        if now > deadline:
            mark.violation_count += 1
            escalated = mark.violation_count > 1 or (now - deadline) >= _ESCALATE_AFTER
            return DeadlineAlert(
                incident_id=incident.id,
                kind=DeadlineAlertKind.VIOLATED,
                severity=RiskLevel.CRITICAL if escalated else RiskLevel.HIGH,
                deadline=deadline,
                remaining=remaining,
                violation_count=mark.violation_count,
            )

        if timedelta(0) < remaining <= self._warning_window:
            if mark.approaching_alerted_at is not None:
                return None
            mark.approaching_alerted_at = now
            return DeadlineAlert(
                incident_id=incident.id,
                kind=DeadlineAlertKind.APPROACHING,
                severity=RiskLevel.HIGH,
                deadline=deadline,
                remaining=remaining,
            )

        return None

    def _emit(self, alert: DeadlineAlert) -> None:
        if alert.kind == DeadlineAlertKind.VIOLATED:
            title = f"Regulator notification deadline VIOLATED - {alert.incident_id}"
            message = (
                f"The regulator notification deadline for incident {alert.incident_id} "
                f"passed {_format_remaining(alert.remaining)} ago "
                f"({alert.deadline.isoformat()}). Violation alert #{alert.violation_count}."
            )
        else:
            title = f"Regulator notification deadline warning - {alert.incident_id}"
            message = (
                f"Regulator notification for incident {alert.incident_id} is due in "
                f"{_format_remaining(alert.remaining)} ({alert.deadline.isoformat()})."
            )

        logger.warning("%s", title)
        self._notifier.alert(
            Audience.COMPLIANCE_OWNER,
            alert.severity,
            title,
            message,
            incident_id=alert.incident_id,
            details={
                "kind": str(alert.kind),
                "deadline": alert.deadline.isoformat(),
                "violation_count": alert.violation_count,
            },
        )

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background scan loop."""
        if self._running:
            return
        self._running = True
        self._wake = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._wake))
        logger.info("Deadline monitor started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Stop scheduling scans and wait for the in-flight one to finish."""
        if not self._running:
            return
        self._running = False
        if self._wake is not None:
            self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Deadline monitor stopped")

    async def _loop(self, wake: asyncio.Event) -> None:
        while self._running:
            try:
                await self.scan()
            except Exception:
                logger.exception("Deadline scan failed")
            if not self._running:
                break
            try:
                await asyncio.wait_for(wake.wait(), timeout=self._interval)
            except TimeoutError:
                pass
