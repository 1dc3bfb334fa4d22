"""Tests for scenario ranking."""

from __future__ import annotations

import pytest

from siteplan.models.schemas import (
    ComplianceScores, DevelopmentMetrics, EstimateStatus, ProjectEstimate, Scenario, Typology,
)
from siteplan.planning_engine.comparison import comparison_row, rank_scenarios


def _make_scenario(name: str) -> Scenario:
    return Scenario(
        name=name,
        typology=Typology.SLAB,
        plot_area=1000,
        requested_far=1.0,
        effective_far=1.0,
        target_gfa=1000,
    )


def _make_metrics(bylaws: int, green: int = 50) -> DevelopmentMetrics:
    return DevelopmentMetrics(
        total_plot_area=1000,
        achieved_far=1.0,
        ground_coverage_pct=20.0,
        total_built_up_area=1000,
        compliance=ComplianceScores(bylaws=bylaws, green=green, vastu=50),
    )


def _make_estimate(roi: float) -> ProjectEstimate:
    return ProjectEstimate(status=EstimateStatus.OK, total_construction_cost=1_000_000, roi_percentage=roi)


class TestRankScenarios:
    """Ordering and recommendation."""

    def test_bylaws_before_roi(self):
        scenarios = [_make_scenario("A"), _make_scenario("B")]
        metrics = [_make_metrics(60), _make_metrics(100)]
        estimates = [_make_estimate(200), _make_estimate(50)]
        ranked = rank_scenarios(scenarios, metrics, estimates)
        assert [r["scenario_name"] for r in ranked] == ["B", "A"]
        assert ranked[0]["is_recommended"] is True
        assert ranked[1]["is_recommended"] is False
        assert ranked[0]["scenario_index"] == 1

    def test_roi_breaks_bylaw_tie(self):
        scenarios = [_make_scenario("A"), _make_scenario("B")]
        metrics = [_make_metrics(100), _make_metrics(100)]
        estimates = [_make_estimate(20), _make_estimate(35)]
        ranked = rank_scenarios(scenarios, metrics, estimates)
        assert [r["scenario_name"] for r in ranked] == ["B", "A"]
        assert [r["rank"] for r in ranked] == [1, 2]

    def test_green_breaks_remaining_tie(self):
        scenarios = [_make_scenario("A"), _make_scenario("B")]
        metrics = [_make_metrics(100, green=30), _make_metrics(100, green=70)]
        ranked = rank_scenarios(scenarios, metrics)
        assert ranked[0]["scenario_name"] == "B"
        assert ranked[0]["total_cost"] is None

    def test_missing_estimate_ranks_last_on_roi(self):
        scenarios = [_make_scenario("A"), _make_scenario("B")]
        metrics = [_make_metrics(100), _make_metrics(100)]
        ranked = rank_scenarios(scenarios, metrics, [None, _make_estimate(-10)])
        assert ranked[0]["scenario_name"] == "B"

    def test_full_tie_keeps_input_order(self):
        scenarios = [_make_scenario("A"), _make_scenario("B"), _make_scenario("C")]
        metrics = [_make_metrics(80)] * 3
        ranked = rank_scenarios(scenarios, metrics)
        assert [r["scenario_name"] for r in ranked] == ["A", "B", "C"]

    def test_empty(self):
        assert rank_scenarios([], []) == []

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            rank_scenarios([_make_scenario("A")], [])


class TestComparisonRow:
    """Flat summary fields."""

    def test_row_fields(self):
        row = comparison_row(_make_scenario("A"), _make_metrics(90), _make_estimate(12.5))
        assert row["typology"] == "slab"
        assert row["bylaw_score"] == 90
        assert row["roi_percentage"] == 12.5
        assert row["timeline_months"] is None
        assert row["buildings"] == 0
        assert row["floors"] == 0
