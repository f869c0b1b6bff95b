# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Abstract base class for notification channels."""

from __future__ import annotations

import abc

from breachwatch.notifications.events import AlertEvent


class NotificationChannel(abc.ABC):
    """Base class for all notification channels.

    Each concrete channel implements ``send()`` to deliver an
    :class:`AlertEvent` to its backing service (Slack, email, generic
    webhook).  Delivery failures are reported through the return value,
    never raised.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Human-readable channel name (e.g. ``'slack'``)."""

    @abc.abstractmethod
    async def send(self, event: AlertEvent) -> bool:
        """Deliver an alert.

        Returns:
            ``True`` if the delivery succeeded, ``False`` otherwise.
        """

    def is_configured(self) -> bool:
        return True
