# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Alert delivery to security operations and the compliance owner."""

from breachwatch.notifications.base import NotificationChannel
from breachwatch.notifications.dispatcher import AlertDispatcher, Notifier
from breachwatch.notifications.email_channel import EmailChannel
from breachwatch.notifications.events import AlertEvent
from breachwatch.notifications.generic_webhook import GenericWebhookChannel
from breachwatch.notifications.router import NotificationRouter
from breachwatch.notifications.slack import SlackChannel

__all__ = [
    "AlertDispatcher",
    "AlertEvent",
    "EmailChannel",
    "GenericWebhookChannel",
    "NotificationChannel",
    "NotificationRouter",
    "Notifier",
    "SlackChannel",
]
