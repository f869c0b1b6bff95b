# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Automatic containment playbooks and their best-effort executor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from breachwatch.core.constants import ContainmentAction, IncidentKind
from breachwatch.core.exceptions import ContainmentActionFailure
from breachwatch.models.incident import SecurityIncident

logger = logging.getLogger("breachwatch.incidents.containment")

ActionHandler = Callable[[SecurityIncident, ContainmentAction], Awaitable[None]]

CONTAINMENT_PLAYBOOK: dict[IncidentKind, tuple[ContainmentAction, ...]] = {
    IncidentKind.UNAUTHORIZED_ACCESS: (
        ContainmentAction.SUSPEND_SESSIONS,
        ContainmentAction.INCREASE_MONITORING,
    ),
    IncidentKind.DATA_BREACH: (
        ContainmentAction.ISOLATE_DB_CONNECTIONS,
        ContainmentAction.ENABLE_VERBOSE_LOGGING,
        ContainmentAction.RESTRICT_EXPORTS,
    ),
    IncidentKind.SYSTEM_COMPROMISE: (
        ContainmentAction.EMERGENCY_ACCESS_LOCKDOWN,
        ContainmentAction.NETWORK_ISOLATION,
        ContainmentAction.FULL_AUDIT_LOGGING,
    ),
    IncidentKind.VENDOR_INCIDENT: (
        ContainmentAction.RESTRICT_INTEGRATIONS,
        ContainmentAction.ENHANCE_VENDOR_MONITORING,
    ),
}


def playbook_for(kind: IncidentKind) -> tuple[ContainmentAction, ...]:
    return CONTAINMENT_PLAYBOOK.get(kind, ())


@dataclass
class ContainmentReport:
    """Outcome of one containment dispatch, in playbook order."""

    attempted: list[ContainmentAction] = field(default_factory=list)
    succeeded: list[ContainmentAction] = field(default_factory=list)
    failures: list[ContainmentActionFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


async def _log_only(incident: SecurityIncident, action: ContainmentAction) -> None:
    logger.warning("Containment action %s executed for incident %s", action, incident.id)


class ContainmentExecutor:
    """Runs a playbook concurrently and collects failures.

    Handlers are registered per action; actions without a handler are
    recorded as executed through a log line only.  A failing or slow
    action never aborts its siblings.
    """

    def __init__(self, *, action_timeout: float = 10.0) -> None:
        self._action_timeout = action_timeout
        self._handlers: dict[ContainmentAction, ActionHandler] = {}

    def register(self, action: ContainmentAction, handler: ActionHandler) -> None:
        self._handlers[action] = handler

    async def execute(self, incident: SecurityIncident) -> ContainmentReport:
        actions = playbook_for(incident.kind)
        report = ContainmentReport(attempted=list(actions))
        if not actions:
            return report

        results = await asyncio.gather(
            *(self._run(incident, action) for action in actions),
            return_exceptions=True,
        )

        for action, result in zip(actions, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, TimeoutError):
                    reason = "timed out"
                else:
                    reason = str(result) or type(result).__name__
                failure = ContainmentActionFailure(str(action), reason)
                logger.error(
                    "Containment action %s failed for incident %s: %s",
                    action,
                    incident.id,
                    reason,
                )
                report.failures.append(failure)
            else:
                report.succeeded.append(action)
        return report

    async def _run(self, incident: SecurityIncident, action: ContainmentAction) -> None:
        handler = self._handlers.get(action, _log_only)
        await asyncio.wait_for(handler(incident, action), timeout=self._action_timeout)
