"""Tests for construction cost and schedule estimation."""

from __future__ import annotations

import pytest

from siteplan.models.schemas import (
    Building, CostParameter, EfficiencyStatus, EstimateStatus, MatchLevel,
    Plot, Regulation, RegulationValue, TimeParameter,
)
from siteplan.planning_engine.estimator import (
    building_floors,
    construction_cost,
    efficiency_status,
    estimate_project,
    resolve_cost_parameter,
    resolve_time_parameter,
    timeline,
)
from siteplan.planning_engine.parameters import (
    DEFAULT_COST_PARAMETERS,
    DEFAULT_TIME_PARAMETERS,
    HIGH_RISE,
    LOW_RISE,
    MID_RISE,
    efficiency_target,
    height_category,
)


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

def _rect(x0, y0, x1, y1) -> dict:
    return {"type": "Polygon", "coordinates": [[(x0, y0), (x1, y0), (x1, y1), (x0, y1), (x0, y0)]]}


def _make_building(idx: int, w: float, d: float, floors: int, use: str = "Residential") -> Building:
    return Building(
        id=f"b{idx}",
        name=f"Building {idx}",
        footprint=_rect(0, 0, w, d),
        floors=floors,
        floor_height=3.5,
        height=floors * 3.5,
        use=use,
    )


def _two_buildings() -> list[Building]:
    # 800 m² low-rise and 4,000 m² mid-rise
    return [_make_building(1, 20, 10, 4), _make_building(2, 20, 20, 10)]


def _codes(notices) -> list[str]:
    return [n.code for n in notices]


# ──────────────────────────────────────────────────────────────────
# TESTS
# ──────────────────────────────────────────────────────────────────

class TestHeightCategory:
    """Low / mid / high rise bands."""

    def test_bands(self):
        assert height_category(14) == LOW_RISE
        assert height_category(15) == MID_RISE
        assert height_category(45) == MID_RISE
        assert height_category(45.1) == HIGH_RISE


class TestParameterResolution:
    """Fallback chains for cost and time records."""

    def test_exact_cost(self):
        resolved = resolve_cost_parameter(DEFAULT_COST_PARAMETERS, "Mumbai", "Residential", "Delhi")
        assert resolved.match == MatchLevel.EXACT
        assert resolved.record.location == "Mumbai"

    def test_cost_falls_back_to_default_location(self):
        resolved = resolve_cost_parameter(DEFAULT_COST_PARAMETERS, "Ladakh", "Residential", "Delhi")
        assert resolved.match == MatchLevel.DEFAULT_LOCATION
        assert resolved.record.location == "Delhi"

    def test_cost_falls_back_to_first(self):
        resolved = resolve_cost_parameter(DEFAULT_COST_PARAMETERS, "Ladakh", "Industrial", "Delhi")
        assert resolved.match == MatchLevel.FIRST_AVAILABLE
        assert resolved.record is DEFAULT_COST_PARAMETERS[0]

    def test_empty_cost_table(self):
        resolved = resolve_cost_parameter([], "Delhi", "Residential", "Delhi")
        assert resolved.match == MatchLevel.NONE
        assert resolved.record is None

    def test_time_falls_back_to_default_category(self):
        times = [t for t in DEFAULT_TIME_PARAMETERS if t.height_category != HIGH_RISE]
        resolved = resolve_time_parameter(times, "Residential", HIGH_RISE, MID_RISE)
        assert resolved.match == MatchLevel.DEFAULT_CATEGORY
        assert resolved.record.height_category == MID_RISE


class TestFormulas:
    """Per-building cost and schedule."""

    def test_construction_cost(self):
        breakdown = construction_cost(100, DEFAULT_COST_PARAMETERS[0])
        assert breakdown.earthwork == pytest.approx(50_000)
        assert breakdown.total == pytest.approx(1_750_000)

    def test_timeline(self):
        time = TimeParameter(
            building_type="Residential", height_category=MID_RISE,
            excavation_months=3, foundation_months=4,
            structure_days_per_floor=12, finishing_days_per_floor=18,
            services_overlap_factor=0.5, contingency_months=3,
        )
        phases = timeline(10, time)
        assert phases.structure == pytest.approx(4)
        assert phases.finishing == pytest.approx(6)
        assert phases.overlap == pytest.approx(3)
        assert phases.total_months == pytest.approx(17)

    def test_efficiency_status(self):
        assert efficiency_status(0.60, 0.75) == EfficiencyStatus.INEFFICIENT
        assert efficiency_status(0.90, 0.75) == EfficiencyStatus.AGGRESSIVE
        assert efficiency_status(0.78, 0.75) == EfficiencyStatus.OPTIMAL
        assert efficiency_status(0.10, 0.75, is_potential=True) == EfficiencyStatus.OPTIMAL

    def test_efficiency_target_fallback(self):
        assert efficiency_target("Residential", MID_RISE) == pytest.approx(0.75)
        assert efficiency_target("Commercial", HIGH_RISE) == pytest.approx(0.78)
        assert efficiency_target("Industrial", LOW_RISE) == pytest.approx(0.75)
        assert efficiency_target("Industrial", LOW_RISE, []) == pytest.approx(0.75)


class TestProjectEstimate:
    """Multi-building aggregation."""

    def test_two_delhi_buildings(self):
        estimate = estimate_project(_two_buildings(), location="Delhi")
        assert estimate.status == EstimateStatus.OK
        assert estimate.is_potential is False
        # 4,800 m² x 17,500 per m², plus 5% contingency
        assert estimate.cost_breakdown.contingency == pytest.approx(4_200_000)
        assert estimate.total_construction_cost == pytest.approx(88_200_000)
        # 4,800 m² x 0.75 x 80,000
        assert estimate.total_revenue == pytest.approx(288_000_000)
        assert estimate.potential_profit == pytest.approx(199_800_000)
        assert estimate.roi_percentage == pytest.approx(199_800_000 / 88_200_000 * 100)
        assert estimate.notices == []

    def test_timeline_is_longest_building(self):
        estimate = estimate_project(_two_buildings(), location="Delhi")
        assert estimate.timeline.total_months == pytest.approx(17)
        assert estimate.timeline.critical_building_id == "b2"
        low = estimate.buildings[0].timeline.total_months
        assert low == pytest.approx(2 + 2 + 2 + 8 / 3 - 0.8 + 2)

    def test_per_building_categories(self):
        estimate = estimate_project(_two_buildings(), location="Delhi")
        assert [b.height_category for b in estimate.buildings] == [LOW_RISE, MID_RISE]

    def test_unknown_location_falls_back(self):
        estimate = estimate_project(_two_buildings(), location="Ladakh")
        assert estimate.status == EstimateStatus.OK
        assert all(b.cost_match == MatchLevel.DEFAULT_LOCATION for b in estimate.buildings)
        assert _codes(estimate.notices).count("cost_fallback_default_location") == 2
        assert estimate.total_construction_cost == pytest.approx(88_200_000)

    def test_unknown_type_uses_first_record(self):
        buildings = [_make_building(1, 20, 10, 4, use="Industrial")]
        estimate = estimate_project(buildings, location="Ladakh")
        assert estimate.buildings[0].cost_match == MatchLevel.FIRST_AVAILABLE
        assert estimate.buildings[0].time_match == MatchLevel.FIRST_AVAILABLE
        assert "cost_fallback_first_available" in _codes(estimate.notices)

    def test_custom_tables(self):
        costs = [CostParameter(
            location="Goa", building_type="Residential",
            earthwork_cost_per_sqm=10, structure_cost_per_sqm=20,
            finishing_cost_per_sqm=30, services_cost_per_sqm=40,
            sellable_ratio=0.5, market_rate_per_sqm=1000,
        )]
        estimate = estimate_project([_make_building(1, 10, 10, 1)], location="Goa", costs=costs, contingency_rate=0)
        assert estimate.total_construction_cost == pytest.approx(10_000)
        assert estimate.total_revenue == pytest.approx(50_000)

    def test_no_parameters(self):
        estimate = estimate_project(_two_buildings(), location="Delhi", costs=[])
        assert estimate.status == EstimateStatus.NO_PARAMETERS
        assert estimate.total_construction_cost is None
        assert all(b.status == EstimateStatus.NO_PARAMETERS for b in estimate.buildings)
        assert "cost_parameters_missing" in _codes(estimate.notices)

    def test_efficiency_report(self):
        estimate = estimate_project(_two_buildings(), location="Delhi", achieved_efficiency=0.5)
        assert estimate.efficiency.target == pytest.approx(0.75)
        assert estimate.efficiency.status == EfficiencyStatus.INEFFICIENT

    def test_reference_pair_sums_cost_but_not_time(self):
        # A: 500 m² x 10 floors (35 m, mid-rise); B: 300 m² x 20 floors (70 m, high-rise)
        a = Building(id="A", name="A", footprint=_rect(0, 0, 25, 20), floors=10, floor_height=3.5, height=35)
        b = Building(id="B", name="B", footprint=_rect(0, 0, 20, 15), floors=20, floor_height=3.5, height=70)
        estimate = estimate_project([a, b], location="Delhi")

        assert [e.gfa for e in estimate.buildings] == pytest.approx([5000, 6000])
        assert estimate.total_construction_cost == pytest.approx(11_000 * 17_500 * 1.05)
        assert estimate.total_revenue == pytest.approx(11_000 * 0.75 * 80_000)

        timeline_a = 3 + 4 + 4 + 6 - 3 + 3
        timeline_b = 5 + 6 + 160 / 30 + 10 - 7 + 4
        assert estimate.buildings[0].timeline.total_months == pytest.approx(timeline_a)
        assert estimate.buildings[1].timeline.total_months == pytest.approx(timeline_b)
        assert estimate.timeline.total_months == pytest.approx(max(timeline_a, timeline_b))
        assert estimate.timeline.critical_building_id == "B"

    def test_floors_derived_from_height(self):
        building = Building(
            id="h1", name="Height only", footprint=_rect(0, 0, 20, 10),
            floor_height=3.5, height=36,
        )
        assert building_floors(building) == 11
        estimate = estimate_project([building], location="Delhi")
        assert estimate.buildings[0].floors == 11
        assert estimate.buildings[0].gfa == pytest.approx(200 * 11)

    def test_explicit_floors_win_over_height(self):
        building = Building(
            id="h2", name="Both", footprint=_rect(0, 0, 20, 10),
            floors=4, floor_height=3.5, height=36,
        )
        assert building_floors(building) == 4
        assert building.gross_floor_area == pytest.approx(800)


class TestPotentialEstimate:
    """Estimate from plot capacity when nothing is designed."""

    def _plot(self) -> Plot:
        return Plot(boundary=_rect(0, 0, 40, 25), location="Delhi")

    def test_potential_mode(self):
        regulation = Regulation(
            location="Delhi",
            geometry={
                "floor_area_ratio": RegulationValue(value=2.0),
                "max_ground_coverage": RegulationValue(value=50),
            },
        )
        estimate = estimate_project([], plot=self._plot(), regulation=regulation)
        assert estimate.is_potential is True
        assert estimate.status == EstimateStatus.OK
        # 2,000 m² at 17,500 per m², 4 floors -> low rise
        assert estimate.total_construction_cost == pytest.approx(35_000_000 * 1.05)
        assert estimate.buildings[0].floors == 4
        assert estimate.buildings[0].height_category == LOW_RISE
        assert estimate.efficiency.status == EfficiencyStatus.OPTIMAL

    def test_plot_override_far(self):
        plot = Plot(boundary=_rect(0, 0, 40, 25), location="Delhi", far_override=1.0)
        estimate = estimate_project([], plot=plot)
        assert estimate.buildings[0].gfa == pytest.approx(1000)

    def test_requires_plot(self):
        with pytest.raises(ValueError):
            estimate_project([])

    def test_potential_without_parameters(self):
        estimate = estimate_project([], plot=self._plot(), times=[])
        assert estimate.status == EstimateStatus.NO_PARAMETERS
        assert estimate.is_potential is True
