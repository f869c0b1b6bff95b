# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Factory to build a NotificationRouter from application settings."""

from __future__ import annotations

import logging

from breachwatch.core.config import Settings
from breachwatch.core.constants import Audience, RiskLevel
from breachwatch.notifications.dispatcher import AlertDispatcher
from breachwatch.notifications.email_channel import EmailChannel
from breachwatch.notifications.generic_webhook import GenericWebhookChannel
from breachwatch.notifications.router import NotificationRouter
from breachwatch.notifications.slack import SlackChannel

logger = logging.getLogger("breachwatch.notifications.factory")


def build_router(settings: Settings) -> NotificationRouter:
    """Create a :class:`NotificationRouter` from :class:`Settings`.

    Channels listed in ``settings.notification_channels`` are instantiated
    and registered.  If the list is empty, auto-detect based on which
    credentials are present.
    """
    router = NotificationRouter()
    channels = set(settings.notification_channels)

    if not channels:
        if settings.slack_webhook_url:
            channels.add("slack")
        if settings.smtp_host:
            channels.add("email")
        if settings.webhook_urls:
            channels.add("webhook")

    for ch_name in sorted(channels):
        if ch_name == "slack" and settings.slack_webhook_url:
            router.register(
                SlackChannel(settings.slack_webhook_url, timeout=settings.alert_timeout),
                audiences=frozenset({Audience.SECURITY_OPERATIONS}),
            )
        elif ch_name == "email" and settings.smtp_host:
            router.register(
                EmailChannel(
                    smtp_host=settings.smtp_host,
                    smtp_port=settings.smtp_port,
                    smtp_user=settings.smtp_user,
                    smtp_password=settings.smtp_password,
                    smtp_use_tls=settings.smtp_use_tls,
                    from_addr=settings.smtp_from,
                    recipients={
                        Audience.SECURITY_OPERATIONS: [settings.security_team_email],
                        Audience.COMPLIANCE_OWNER: [settings.dpo_email],
                    },
                )
            )
        elif ch_name == "webhook" and settings.webhook_urls:
            for url in settings.webhook_urls:
                router.register(
                    GenericWebhookChannel(
                        url, secret=settings.webhook_secret, timeout=settings.alert_timeout
                    ),
                    min_severity=RiskLevel.HIGH,
                )
        else:
            logger.warning(
                "Notification channel '%s' requested but not configured", ch_name
            )

    return router


def build_dispatcher(settings: Settings) -> AlertDispatcher:
    return AlertDispatcher(build_router(settings), timeout=settings.alert_timeout)
