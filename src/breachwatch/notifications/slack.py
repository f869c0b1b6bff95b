# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Slack notification channel using Block Kit formatting."""

from __future__ import annotations

import logging

import httpx

from breachwatch.core.constants import RiskLevel
from breachwatch.notifications.base import NotificationChannel
from breachwatch.notifications.events import AlertEvent

logger = logging.getLogger("breachwatch.notifications.slack")

_TIMEOUT_SECONDS = 10.0

_SEVERITY_EMOJI = {
    RiskLevel.CRITICAL: ":rotating_light:",
    RiskLevel.HIGH: ":warning:",
    RiskLevel.MEDIUM: ":large_yellow_circle:",
    RiskLevel.LOW: ":information_source:",
}


def _build_blocks(event: AlertEvent) -> list[dict]:
    """Build Slack Block Kit blocks for the alert."""
    emoji = _SEVERITY_EMOJI.get(event.severity, ":question:")

    fields = [
        {"type": "mrkdwn", "text": f"*Severity:*\n{event.severity}"},
        {"type": "mrkdwn", "text": f"*Audience:*\n{event.audience}"},
    ]
    if event.incident_id:
        fields.append({"type": "mrkdwn", "text": f"*Incident:*\n`{event.incident_id}`"})

    blocks: list[dict] = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"{emoji} breachwatch: {event.title}",
                "emoji": True,
            },
        },
        {"type": "section", "fields": fields},
        {"type": "section", "text": {"type": "mrkdwn", "text": event.message}},
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"breachwatch alert at {event.timestamp.isoformat()}",
                }
            ],
        },
    ]
    return blocks


class SlackChannel(NotificationChannel):
    """Send alerts to Slack via incoming webhook."""

    def __init__(self, webhook_url: str, *, timeout: float = _TIMEOUT_SECONDS) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    def is_configured(self) -> bool:
        return bool(self._webhook_url)

    async def send(self, event: AlertEvent) -> bool:
        if not self._webhook_url:
            logger.warning("Slack webhook URL not configured")
            return False

        payload = {"text": event.title, "blocks": _build_blocks(event)}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._webhook_url, json=payload)
                response.raise_for_status()
            logger.info("Slack alert sent: %s", event.title)
            return True
        except Exception:
            logger.exception("Failed to send Slack alert: %s", event.title)
            return False
