# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Notification router: dispatches alerts to channels based on filters."""

from __future__ import annotations

import logging

from breachwatch.core.constants import RISK_ORDER, Audience, RiskLevel
from breachwatch.notifications.base import NotificationChannel
from breachwatch.notifications.events import AlertEvent

logger = logging.getLogger("breachwatch.notifications.router")

_ALL_AUDIENCES = frozenset(Audience)


class ChannelEntry:
    """A channel registration with optional filters."""

    def __init__(
        self,
        channel: NotificationChannel,
        *,
        audiences: frozenset[Audience] | None = None,
        min_severity: RiskLevel = RiskLevel.LOW,
    ) -> None:
        self.channel = channel
        self.audiences = audiences or _ALL_AUDIENCES
        self.min_severity = min_severity

    def matches(self, event: AlertEvent) -> bool:
        if event.audience not in self.audiences:
            return False
        return RISK_ORDER[event.severity] >= RISK_ORDER[self.min_severity]


class NotificationRouter:
    """Dispatch :class:`AlertEvent` instances to registered channels.

    Channels are registered with optional audience and severity filters so
    only relevant alerts reach each channel.
    """

    def __init__(self) -> None:
        self._entries: list[ChannelEntry] = []

    @property
    def channels(self) -> list[NotificationChannel]:
        return [entry.channel for entry in self._entries]

    def register(
        self,
        channel: NotificationChannel,
        *,
        audiences: frozenset[Audience] | None = None,
        min_severity: RiskLevel = RiskLevel.LOW,
    ) -> None:
        """Register a notification channel with optional filters."""
        self._entries.append(
            ChannelEntry(channel, audiences=audiences, min_severity=min_severity)
        )
        logger.info("Registered notification channel: %s", channel.name)

    async def dispatch(self, event: AlertEvent) -> dict[str, bool]:
        """Send the event to all matching channels.

        Returns:
            Mapping of channel name to delivery success (True/False).
        """
        results: dict[str, bool] = {}

        for entry in self._entries:
            if not entry.matches(event):
                logger.debug(
                    "Channel %s filtered out alert (audience=%s, severity=%s)",
                    entry.channel.name,
                    event.audience,
                    event.severity,
                )
                continue

            try:
                results[entry.channel.name] = await entry.channel.send(event)
            except Exception:
                logger.exception(
                    "Unhandled error dispatching to channel %s", entry.channel.name
                )
                results[entry.channel.name] = False

        return results

    def get_channel_status(self) -> list[dict[str, object]]:
        """Return status info for all registered channels."""
        return [
            {
                "name": entry.channel.name,
                "configured": entry.channel.is_configured(),
                "audiences": sorted(entry.audiences),
                "min_severity": str(entry.min_severity),
            }
            for entry in self._entries
        ]
