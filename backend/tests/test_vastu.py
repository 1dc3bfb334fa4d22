"""Tests for the Vastu compliance score."""

from __future__ import annotations

from shapely.geometry import Point

from siteplan.models.schemas import (
    Building, Scenario, Typology, UtilityArea, VastuRecommendation, VastuRuleSet,
)
from siteplan.planning_engine.vastu import (
    NEUTRAL_SCORE,
    bearing_direction,
    calculate_vastu_score,
    rating_for,
)


def _rect(x0, y0, x1, y1) -> dict:
    return {"type": "Polygon", "coordinates": [[(x0, y0), (x1, y0), (x1, y1), (x0, y1), (x0, y0)]]}


def _make_scenario(building_rect=(10, 10, 30, 30), utilities=None) -> Scenario:
    buildings = []
    if building_rect is not None:
        buildings.append(Building(
            id="b1", name="Building 1", footprint=_rect(*building_rect),
            floors=4, floor_height=3.5, height=14,
        ))
    return Scenario(
        name="Test",
        typology=Typology.POINT,
        plot_area=10_000,
        plot_boundary=_rect(0, 0, 100, 100),
        buildings=buildings,
        utility_areas=utilities or [],
        requested_far=1.0,
        effective_far=1.0,
        target_gfa=10_000,
    )


def _rules(*recommendations) -> VastuRuleSet:
    return VastuRuleSet(recommendations=list(recommendations))


class TestBearing:
    """8-way compass buckets."""

    def test_cardinal_directions(self):
        c = Point(0, 0)
        assert bearing_direction(c, Point(0, 10)) == "N"
        assert bearing_direction(c, Point(10, 0)) == "E"
        assert bearing_direction(c, Point(0, -10)) == "S"
        assert bearing_direction(c, Point(-10, 0)) == "W"

    def test_diagonals(self):
        c = Point(0, 0)
        assert bearing_direction(c, Point(10, 10)) == "NE"
        assert bearing_direction(c, Point(-10, -10)) == "SW"


class TestVastuScore:
    """Weighted placement score."""

    def test_no_rules_is_neutral(self):
        result = calculate_vastu_score(_make_scenario(), None)
        assert result.overall_score == NEUTRAL_SCORE
        assert result.rating == "Medium"

    def test_rules_without_buildings(self):
        rules = _rules(VastuRecommendation(category="General", ideal_directions=["SW"]))
        result = calculate_vastu_score(_make_scenario(building_rect=None), rules)
        assert result.overall_score == 0
        assert result.rating == "Low"

    def test_main_mass_in_ideal_direction(self):
        rules = _rules(VastuRecommendation(category="General", ideal_directions=["SW"]))
        result = calculate_vastu_score(_make_scenario(), rules)
        assert result.overall_score == 100
        assert result.rating == "High"

    def test_main_mass_in_avoided_direction(self):
        rules = _rules(VastuRecommendation(category="General", avoid_directions=["SW"]))
        result = calculate_vastu_score(_make_scenario(), rules)
        assert result.overall_score == 0

    def test_weighted_mix(self):
        rules = _rules(
            VastuRecommendation(category="General", ideal_directions=["SW"], weight=3),
            VastuRecommendation(category="Entrance", weight=1),
        )
        result = calculate_vastu_score(_make_scenario(), rules)
        # (100 x 3 + 50 x 1) / 4
        assert result.overall_score == 88
        assert [b.category for b in result.breakdown] == ["General", "Entrance"]

    def test_water_body(self):
        tank = UtilityArea(id="u1", footprint=_rect(80, 80, 85, 85), type="Water Tank")
        rules = _rules(VastuRecommendation(category="Water", ideal_directions=["NE"]))
        result = calculate_vastu_score(_make_scenario(utilities=[tank]), rules)
        assert result.overall_score == 100

    def test_missing_water_is_neutral(self):
        rules = _rules(VastuRecommendation(category="Water", ideal_directions=["NE"]))
        result = calculate_vastu_score(_make_scenario(), rules)
        assert result.overall_score == NEUTRAL_SCORE

    def test_rating_bands(self):
        assert rating_for(80) == "High"
        assert rating_for(50) == "Medium"
        assert rating_for(49) == "Low"
