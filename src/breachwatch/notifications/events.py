# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Alert event model dispatched to notification channels."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from breachwatch.core.constants import Audience, RiskLevel


class AlertEvent(BaseModel):
    """A single operational alert addressed to one audience."""

    audience: Audience
    severity: RiskLevel
    title: str
    message: str
    incident_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
