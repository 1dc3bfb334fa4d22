"""
Vastu compliance score.

Each recommendation is scored 0 / 50 / 100 from the compass direction of
the relevant element relative to the plot centre (avoid / neutral / ideal),
then weighted.  Directions are 8-way compass buckets; bearings are measured
clockwise from north (+y) in the planar frame.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from shapely.geometry import Point, shape

from siteplan.models.schemas import Scenario, VastuBreakdown, VastuRuleSet
from siteplan.services import geometry as geo

NEUTRAL_SCORE = 50
DEFAULT_WEIGHT = 5.0
DIRECTIONS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


@dataclass
class VastuScore:
    overall_score: int = 0
    rating: str = "Low"
    breakdown: list[VastuBreakdown] = field(default_factory=list)


def rating_for(score: int) -> str:
    if score >= 80:
        return "High"
    if score >= 50:
        return "Medium"
    return "Low"


def bearing_direction(center: Point, target: Point) -> str:
    """8-way compass direction of ``target`` seen from ``center``."""
    bearing = math.degrees(math.atan2(target.x - center.x, target.y - center.y)) % 360
    return DIRECTIONS[int(((bearing + 22.5) % 360) // 45)]


def _plot_center(scenario: Scenario) -> Optional[Point]:
    if scenario.plot_boundary:
        return shape(scenario.plot_boundary).centroid
    return geo.centroid(geo.union(*(b.geometry() for b in scenario.buildings)).geometry)


def _placement_score(direction: str, ideal: list[str], avoid: list[str], label: str) -> tuple[int, str]:
    if direction in ideal:
        return 100, f"{label} in {direction} (Recommended)."
    if direction in avoid:
        return 0, f"{label} in {direction} (Avoid)."
    return NEUTRAL_SCORE, f"{label} in {direction} (Neutral)."


def calculate_vastu_score(scenario: Scenario, rules: Optional[VastuRuleSet]) -> VastuScore:
    """Weighted Vastu score for a scenario; 50 (neutral) without rules."""
    if rules is None or not rules.recommendations:
        return VastuScore(NEUTRAL_SCORE, rating_for(NEUTRAL_SCORE))
    if not scenario.buildings:
        return VastuScore()

    center = _plot_center(scenario)
    main = max(scenario.buildings, key=lambda b: b.footprint_area)
    water = next(
        (u for u in scenario.utility_areas if "Water" in u.type or "WTP" in u.type),
        None,
    )

    weighted = total_weight = 0.0
    breakdown: list[VastuBreakdown] = []
    for rec in rules.recommendations:
        weight = rec.weight or DEFAULT_WEIGHT
        category = rec.category

        if category in ("General", "MasterBedroom"):
            direction = bearing_direction(center, main.geometry().centroid)
            score, feedback = _placement_score(direction, rec.ideal_directions, rec.avoid_directions, "Main mass")
        elif category == "Water":
            if water is None:
                score, feedback = NEUTRAL_SCORE, "No water infrastructure found."
            else:
                direction = bearing_direction(center, water.geometry().centroid)
                score, feedback = _placement_score(direction, rec.ideal_directions, rec.avoid_directions, "Water body")
        elif category == "Entrance":
            score, feedback = NEUTRAL_SCORE, "Entrance location not explicitly defined."
        else:
            score, feedback = NEUTRAL_SCORE, "Criterion not evaluated."

        weighted += score * weight
        total_weight += weight
        breakdown.append(VastuBreakdown(category=category, score=score, feedback=feedback))

    overall = round(weighted / total_weight) if total_weight > 0 else 0
    return VastuScore(overall, rating_for(overall), breakdown)
