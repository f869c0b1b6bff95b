# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Generic webhook channel for custom HTTP POST endpoints."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

import httpx

from breachwatch.notifications.base import NotificationChannel
from breachwatch.notifications.events import AlertEvent

logger = logging.getLogger("breachwatch.notifications.generic_webhook")

_TIMEOUT_SECONDS = 10.0

SIGNATURE_HEADER = "X-Breachwatch-Signature"


def compute_signature(payload_bytes: bytes, secret: str) -> str:
    """HMAC-SHA256 hex digest of *payload_bytes*."""
    return hmac.new(secret.encode("utf-8"), payload_bytes, hashlib.sha256).hexdigest()


class GenericWebhookChannel(NotificationChannel):
    """POST JSON alerts to a custom HTTP endpoint.

    When a secret is configured the exact request body is signed and the
    digest sent in the ``X-Breachwatch-Signature`` header.
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = _TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._secret = secret
        self._extra_headers = headers or {}
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "webhook"

    def is_configured(self) -> bool:
        return bool(self._url)

    async def send(self, event: AlertEvent) -> bool:
        if not self._url:
            logger.warning("Generic webhook URL not configured")
            return False

        payload = event.model_dump(mode="json")
        body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()

        headers: dict[str, str] = {"Content-Type": "application/json"}
        headers.update(self._extra_headers)
        if self._secret:
            headers[SIGNATURE_HEADER] = compute_signature(body, self._secret)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, content=body, headers=headers)
                response.raise_for_status()
            logger.info("Webhook alert sent to %s: %s", self._url, event.title)
            return True
        except Exception:
            logger.exception("Failed to send webhook alert to %s", self._url)
            return False
