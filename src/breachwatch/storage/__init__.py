# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Incident persistence backends."""

from breachwatch.storage.base import IncidentRepository
from breachwatch.storage.memory import MemoryIncidentRepository
from breachwatch.storage.repositories.incidents import SqliteIncidentRepository

__all__ = [
    "IncidentRepository",
    "MemoryIncidentRepository",
    "SqliteIncidentRepository",
]
