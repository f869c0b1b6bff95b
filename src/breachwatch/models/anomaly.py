# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Security anomaly model produced by upstream monitoring."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from breachwatch.core.constants import RiskLevel

# Numeric severities used by older producers (1=LOW .. 4=CRITICAL)
_NUMERIC_SEVERITY = {
    1: RiskLevel.LOW,
    2: RiskLevel.MEDIUM,
    3: RiskLevel.HIGH,
    4: RiskLevel.CRITICAL,
}


class AnomalyDetails(BaseModel):
    """Raw detail map attached to an anomaly.

    The named fields are the keys this package reads or displays.  Any
    other key sent by a producer is kept as an extra attribute so that it
    still ends up in the encrypted evidence.
    """

    model_config = ConfigDict(extra="allow")

    source_ip: str | None = None
    user_id: str | None = None
    endpoint: str | None = None
    request_count: int | None = None
    description: str | None = None


class SecurityAnomaly(BaseModel):
    """A raw security signal awaiting triage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: str
    severity_hint: RiskLevel = RiskLevel.MEDIUM
    affected_data_categories: set[str] = Field(default_factory=set)
    estimated_affected_subjects: int = Field(default=0, ge=0)
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    raw_details: AnomalyDetails = Field(default_factory=AnomalyDetails)

    @field_validator("kind", mode="before")
    @classmethod
    def _normalize_kind(cls, v: object) -> object:
        # Unknown kinds are kept; the scorer treats them conservatively.
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("severity_hint", mode="before")
    @classmethod
    def _parse_severity(cls, v: object) -> RiskLevel:
        if isinstance(v, RiskLevel):
            return v
        if isinstance(v, int) and not isinstance(v, bool):
            return _NUMERIC_SEVERITY.get(v, RiskLevel.MEDIUM)
        if isinstance(v, str):
            try:
                return RiskLevel(v.strip().lower())
            except ValueError:
                return RiskLevel.MEDIUM
        return RiskLevel.MEDIUM

    @field_validator("affected_data_categories", mode="before")
    @classmethod
    def _normalize_categories(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple, set, frozenset)):
            return {str(c).strip().lower() for c in v if str(c).strip()}
        return v

    @field_validator("detected_at")
    @classmethod
    def _ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v
