# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Email notification channel via SMTP."""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from breachwatch.core.constants import Audience, RiskLevel
from breachwatch.notifications.base import NotificationChannel
from breachwatch.notifications.events import AlertEvent

logger = logging.getLogger("breachwatch.notifications.email")

_SEVERITY_COLORS = {
    RiskLevel.CRITICAL: "#dc3545",
    RiskLevel.HIGH: "#fd7e14",
    RiskLevel.MEDIUM: "#ffc107",
    RiskLevel.LOW: "#28a745",
}


def _build_html(event: AlertEvent) -> str:
    color = _SEVERITY_COLORS.get(event.severity, "#6c757d")
    incident_row = ""
    if event.incident_id:
        incident_row = (
            f"<tr><td><strong>Incident:</strong></td>"
            f"<td><code>{html.escape(event.incident_id)}</code></td></tr>"
        )

    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px">
    <div style="background:{color};color:white;padding:16px;border-radius:8px 8px 0 0">
        <h1 style="margin:0;font-size:20px">breachwatch: {html.escape(event.title)}</h1>
    </div>
    <div style="border:1px solid #dee2e6;border-top:none;padding:20px;border-radius:0 0 8px 8px">
        <table style="width:100%">
            <tr><td><strong>Severity:</strong></td><td style="color:{color};font-weight:bold">{event.severity}</td></tr>
            {incident_row}
        </table>
        <p>{html.escape(event.message)}</p>
        <p style="color:#6c757d;font-size:12px;margin-top:20px">
            Raised at {event.timestamp.isoformat()} by breachwatch
        </p>
    </div>
</body>
</html>"""


class EmailChannel(NotificationChannel):
    """Send alert emails via SMTP, addressed per audience."""

    def __init__(
        self,
        *,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        smtp_use_tls: bool = True,
        from_addr: str = "",
        recipients: dict[Audience, list[str]] | None = None,
    ) -> None:
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._smtp_use_tls = smtp_use_tls
        self._from_addr = from_addr or smtp_user
        self._recipients = recipients or {}

    @property
    def name(self) -> str:
        return "email"

    def is_configured(self) -> bool:
        return bool(self._smtp_host and any(self._recipients.values()))

    def recipients_for(self, audience: Audience) -> list[str]:
        return list(self._recipients.get(audience, []))

    async def send(self, event: AlertEvent) -> bool:
        to_addrs = self.recipients_for(event.audience)
        if not self._smtp_host or not to_addrs:
            logger.warning(
                "Email channel not configured for audience %s", event.audience
            )
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[breachwatch] [{str(event.severity).upper()}] {event.title}"
        msg["From"] = self._from_addr
        msg["To"] = ", ".join(to_addrs)
        msg.attach(MIMEText(event.message, "plain"))
        msg.attach(MIMEText(_build_html(event), "html"))

        try:
            await asyncio.to_thread(self._deliver, to_addrs, msg.as_string())
            logger.info("Email alert sent to %s: %s", event.audience, event.title)
            return True
        except Exception:
            logger.exception("Failed to send email alert: %s", event.title)
            return False

    def _deliver(self, to_addrs: list[str], message: str) -> None:
        with smtplib.SMTP(self._smtp_host, self._smtp_port) as server:
            if self._smtp_use_tls:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
            if self._smtp_user:
                server.login(self._smtp_user, self._smtp_password)
            server.sendmail(self._from_addr, to_addrs, message)
