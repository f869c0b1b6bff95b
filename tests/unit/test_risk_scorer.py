# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Tests for the deterministic risk scorer."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from breachwatch.core.constants import RiskLevel
from breachwatch.models.risk import RiskAssessment
from breachwatch.risk.scorer import (
    RISK_MATRIX,
    assess,
    data_sensitivity,
    likelihood,
    overall_risk,
    potential_impact,
    requires_regulator_notification,
    requires_subject_notification,
    should_create_incident,
)

L, M, H, C = RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL


class TestRiskMatrix:
    EXPECTED = {
        (L, L): L, (L, M): L, (L, H): M,
        (M, L): L, (M, M): M, (M, H): H,
        (H, L): M, (H, M): H, (H, H): C,
        (C, L): H, (C, M): C, (C, H): C,
    }

    def test_matrix_has_exactly_twelve_cells(self) -> None:
        assert len(RISK_MATRIX) == 12
        assert set(RISK_MATRIX) == set(self.EXPECTED)

    @pytest.mark.parametrize(("cell", "expected"), sorted(EXPECTED.items()))
    def test_every_cell(self, cell, expected) -> None:
        impact, chance = cell
        assert overall_risk(impact, chance) == expected

    def test_never_below_the_lower_input(self) -> None:
        order = [L, M, H, C]
        for (impact, chance), result in RISK_MATRIX.items():
            assert order.index(result) >= order.index(impact) - 1
            assert order.index(result) >= min(order.index(impact), order.index(chance))

    def test_critical_likelihood_is_read_as_high(self) -> None:
        assert overall_risk(M, C) == overall_risk(M, H)


class TestDimensions:
    @pytest.mark.parametrize(
        ("subjects", "expected"),
        [(0, L), (10, L), (11, M), (100, M), (101, H), (1000, H), (1001, C)],
    )
    def test_potential_impact_thresholds(self, subjects, expected) -> None:
        assert potential_impact(subjects) == expected

    @pytest.mark.parametrize("category", ["financial", "health", "biometric", "identification"])
    def test_sensitive_categories(self, category) -> None:
        assert data_sensitivity({category, "newsletter"}) == H

    def test_empty_categories_are_low(self) -> None:
        assert data_sensitivity(set()) == L

    def test_non_sensitive_categories_are_low(self) -> None:
        assert data_sensitivity({"preferences", "usage"}) == L

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("data_leak", H),
            ("system_breach", H),
            ("unauthorized_access", M),
            ("unusual_activity", M),
            ("quantum_tunnelling", M),
        ],
    )
    def test_likelihood(self, kind, expected) -> None:
        assert likelihood(kind) == expected


class TestAssess:
    def test_data_leak_scenario(self, make_anomaly) -> None:
        anomaly = make_anomaly(
            kind="data_leak",
            estimated_affected_subjects=5000,
            affected_data_categories={"financial"},
        )
        result = assess(anomaly)
        assert result == RiskAssessment(
            data_sensitivity=H, potential_impact=C, likelihood=H, overall_risk=C
        )

    def test_pure(self, make_anomaly) -> None:
        anomaly = make_anomaly(kind="unauthorized_access", estimated_affected_subjects=150)
        assert assess(anomaly) == assess(anomaly)

    def test_zero_subjects_is_not_an_error(self, make_anomaly) -> None:
        result = assess(make_anomaly(estimated_affected_subjects=0))
        assert result.potential_impact == L

    def test_assessment_is_immutable(self, make_anomaly) -> None:
        result = assess(make_anomaly())
        with pytest.raises(ValidationError):
            result.overall_risk = C  # type: ignore[misc]


class TestCreationRule:
    def test_low_unusual_activity_is_dismissed(self, make_anomaly) -> None:
        anomaly = make_anomaly(kind="unusual_activity", estimated_affected_subjects=3)
        assert not should_create_incident(anomaly, assess(anomaly))

    def test_critical_hint_always_qualifies(self, make_anomaly) -> None:
        anomaly = make_anomaly(severity_hint="critical")
        assert should_create_incident(anomaly, assess(anomaly))

    def test_high_overall_risk_qualifies(self, make_anomaly) -> None:
        anomaly = make_anomaly(kind="unauthorized_access", estimated_affected_subjects=101)
        assert assess(anomaly).overall_risk == H
        assert should_create_incident(anomaly, assess(anomaly))

    def test_subject_threshold_is_configurable(self, make_anomaly) -> None:
        anomaly = make_anomaly(kind="unusual_activity", estimated_affected_subjects=50)
        assessment = assess(anomaly)
        assert not should_create_incident(anomaly, assessment)
        assert should_create_incident(anomaly, assessment, high_risk_subject_threshold=20)

    @pytest.mark.parametrize("kind", ["data_leak", "system_breach"])
    def test_leak_and_breach_kinds_qualify(self, make_anomaly, kind) -> None:
        anomaly = make_anomaly(kind=kind)
        assert should_create_incident(anomaly, assess(anomaly))


class TestNotificationRequirements:
    @pytest.mark.parametrize(
        ("risk", "regulator", "subjects"),
        [(L, False, False), (M, False, False), (H, True, False), (C, True, True)],
    )
    def test_flags_follow_overall_risk(self, risk, regulator, subjects) -> None:
        assessment = RiskAssessment(
            data_sensitivity=L, potential_impact=L, likelihood=L, overall_risk=risk
        )
        assert requires_regulator_notification(assessment) is regulator
        assert requires_subject_notification(assessment) is subjects
