# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Fire-and-forget alert delivery."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from breachwatch.core.constants import Audience, RiskLevel
from breachwatch.notifications.events import AlertEvent
from breachwatch.notifications.router import NotificationRouter

logger = logging.getLogger("breachwatch.notifications.dispatcher")


class Notifier(Protocol):
    """Anything that can raise an alert without blocking the caller."""

    def alert(
        self,
        audience: Audience,
        severity: RiskLevel,
        title: str,
        message: str,
        *,
        incident_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None: ...


class AlertDispatcher:
    """Schedules each alert as its own background task.

    ``alert()`` returns immediately.  Each delivery is bounded by
    ``timeout``; timeouts and channel errors are logged and never reach the
    caller.  ``drain()`` waits for everything still in flight, which
    callers use before shutting down the event loop.
    """

    def __init__(self, router: NotificationRouter, *, timeout: float = 10.0) -> None:
        self._router = router
        self._timeout = timeout
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def router(self) -> NotificationRouter:
        return self._router

    @property
    def pending(self) -> int:
        return len(self._pending)

    def alert(
        self,
        audience: Audience,
        severity: RiskLevel,
        title: str,
        message: str,
        *,
        incident_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = AlertEvent(
            audience=audience,
            severity=severity,
            title=title,
            message=message,
            incident_id=incident_id,
            details=details or {},
        )
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: AlertEvent) -> None:
        try:
            results = await asyncio.wait_for(
                self._router.dispatch(event), timeout=self._timeout
            )
        except TimeoutError:
            logger.error(
                "Alert delivery timed out after %.1fs: %s", self._timeout, event.title
            )
            return
        except Exception:
            logger.exception("Alert delivery failed: %s", event.title)
            return

        failed = [name for name, ok in results.items() if not ok]
        if failed:
            logger.warning("Alert %r not delivered via: %s", event.title, ", ".join(failed))
        elif not results:
            logger.info("No channel accepted alert %r (%s)", event.title, event.audience)

    async def drain(self) -> None:
        """Wait for all outstanding deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
