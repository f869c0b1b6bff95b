# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Risk assessment model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from breachwatch.core.constants import RiskLevel


class RiskAssessment(BaseModel):
    """Derived classification of an anomaly. Immutable once computed."""

    model_config = ConfigDict(frozen=True)

    data_sensitivity: RiskLevel
    potential_impact: RiskLevel
    likelihood: RiskLevel
    overall_risk: RiskLevel

    @property
    def is_high_risk(self) -> bool:
        return self.overall_risk in (RiskLevel.HIGH, RiskLevel.CRITICAL)
