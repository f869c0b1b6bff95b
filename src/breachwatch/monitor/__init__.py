# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Background deadline monitoring."""

from breachwatch.monitor.deadlines import DeadlineAlert, DeadlineAlertKind, DeadlineMonitor

__all__ = ["DeadlineAlert", "DeadlineAlertKind", "DeadlineMonitor"]
