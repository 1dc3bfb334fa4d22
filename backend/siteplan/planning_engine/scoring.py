"""
Feasibility and compliance scoring.

``score_scenario`` is a pure function of a Scenario, its Regulation and
optional green / vastu rule sets plus simulation and amenity snapshots.
It never mutates its inputs; scoring the same inputs twice gives equal
DevelopmentMetrics.

Area metrics:
  achieved FAR      = sum(footprint x floors) / plot area
  ground coverage % = sum(footprint) / plot area x 100
  green %           = sum(green area) / plot area x 100
  open space        = plot area - sum(footprint)

Category scores are achieved points / total points x 100, rounded, over
independent checks each marked pending / achieved / failed.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from siteplan.models.schemas import (
    Amenity, CheckStatus, ComplianceCheck, ComplianceScores, DevelopmentMetrics,
    GreenAreaMetric, GreenRuleSet, ParkingMetric, PlanningNotice, Regulation,
    Scenario, SimulationResult, VastuRuleSet,
)
from siteplan.planning_engine.credits import evaluate_credits
from siteplan.planning_engine.parking import required_parking, summarize_parking
from siteplan.planning_engine.vastu import calculate_vastu_score

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
# CONSTANTS
# ──────────────────────────────────────────────────────────────────

# Traffic light shared by every category
PASS_THRESHOLD = 80
WARN_THRESHOLD = 50

BYLAW_WEIGHTS = {
    "far": 30,
    "coverage": 20,
    "height": 20,
    "setback": 10,
    "open_space": 10,
    "parking": 10,
}

GREEN_POINTS = {
    "green_cover": 4,
    "open_space": 3,
    "ventilation": 2,
    "daylighting": 3,
    "transit_access": 3,
    "amenity_proximity": 3,
}

DEFAULT_GREEN_COVER_PCT = 15.0
DEFAULT_OPEN_SPACE_PCT = 25.0
VENTILATION_TARGET_PCT = 75.0
DAYLIGHT_TARGET_PCT = 50.0
TRANSIT_RADIUS_M = 800.0
AMENITY_RADIUS_M = 1000.0
AMENITY_MIN_CATEGORIES = 3
AMENITY_CATEGORIES = {"school", "hospital", "park", "shopping", "restaurant"}
TRANSIT_CATEGORY = "transit"

SERVICE_SHARE = {"residential": 0.05, "commercial": 0.10, "mixed": 0.08}
AMENITY_SHARE = 0.03
DEFAULT_UNIT_SIZE_SQM = 100.0

_TOLERANCE = 1e-6


def traffic_light(score: float) -> str:
    """'pass' (>= 80), 'warn' (>= 50) or 'fail'."""
    if score >= PASS_THRESHOLD:
        return "pass"
    if score >= WARN_THRESHOLD:
        return "warn"
    return "fail"


def category_score(checks: list[ComplianceCheck], max_points: dict[str, int]) -> int:
    """achieved / total x 100 over the checks present; 100 with no checks."""
    total = sum(max_points[c.id] for c in checks)
    if total <= 0:
        return 100
    achieved = sum(c.points for c in checks)
    return round(achieved / total * 100)


def _check(
    check_id: str,
    category: str,
    label: str,
    passed: Optional[bool],
    points: int,
    value: Optional[float] = None,
    threshold: Optional[float] = None,
) -> ComplianceCheck:
    if passed is None:
        status = CheckStatus.PENDING
    else:
        status = CheckStatus.ACHIEVED if passed else CheckStatus.FAILED
    return ComplianceCheck(
        id=check_id,
        category=category,
        label=label,
        status=status,
        points=points if status == CheckStatus.ACHIEVED else 0,
        value=value,
        threshold=threshold,
    )


# ──────────────────────────────────────────────────────────────────
# BYLAWS
# ──────────────────────────────────────────────────────────────────

def _bylaw_checks(
    scenario: Scenario,
    regulation: Optional[Regulation],
    achieved_far: float,
    coverage_pct: float,
    open_space_pct: float,
    parking: ParkingMetric,
) -> list[ComplianceCheck]:
    if regulation is None:
        return []
    w = BYLAW_WEIGHTS
    checks: list[ComplianceCheck] = []

    if regulation.far is not None:
        checks.append(_check(
            "far", "bylaws", "Floor area ratio",
            achieved_far <= regulation.far + _TOLERANCE, w["far"],
            achieved_far, regulation.far,
        ))
    if regulation.max_coverage_pct is not None:
        checks.append(_check(
            "coverage", "bylaws", "Ground coverage",
            coverage_pct <= regulation.max_coverage_pct + _TOLERANCE, w["coverage"],
            coverage_pct, regulation.max_coverage_pct,
        ))
    if regulation.max_height is not None:
        tallest = max((b.height for b in scenario.buildings), default=0.0)
        checks.append(_check(
            "height", "bylaws", "Building height",
            tallest <= regulation.max_height + _TOLERANCE, w["height"],
            tallest, regulation.max_height,
        ))
    required_setback = regulation.setback_spec()
    if required_setback is not None:
        required = {
            "front": required_setback.front_distance,
            "side": required_setback.side_distance,
            "rear": required_setback.rear_distance,
        }
        applied = scenario.setback_distances
        shortfall = max(required[k] - applied.get(k, 0.0) for k in required)
        checks.append(_check(
            "setback", "bylaws", "Setbacks",
            not scenario.envelope_fallback and shortfall <= _TOLERANCE, w["setback"],
            min(applied.get(k, 0.0) for k in required), max(required.values()),
        ))
    if regulation.open_space_pct is not None:
        checks.append(_check(
            "open_space", "bylaws", "Open space",
            open_space_pct + _TOLERANCE >= regulation.open_space_pct, w["open_space"],
            open_space_pct, regulation.open_space_pct,
        ))
    if regulation.parking_ratio is not None:
        checks.append(_check(
            "parking", "bylaws", "Parking",
            parking.provided >= parking.required, w["parking"],
            float(parking.provided), float(parking.required),
        ))
    return checks


# ──────────────────────────────────────────────────────────────────
# GREEN
# ──────────────────────────────────────────────────────────────────

def _simulation_value(simulation: list[SimulationResult], analysis: str) -> Optional[float]:
    for result in simulation:
        if result.analysis_type.lower() == analysis:
            return result.compliant_area_percent
    return None


def _green_checks(
    regulation: Optional[Regulation],
    green_pct: float,
    open_space_pct: float,
    simulation: Optional[list[SimulationResult]],
    amenities: Optional[list[Amenity]],
) -> list[ComplianceCheck]:
    p = GREEN_POINTS
    green_target = regulation.green_cover_pct if regulation is not None else None
    if green_target is None:
        green_target = DEFAULT_GREEN_COVER_PCT
    open_target = regulation.open_space_pct if regulation is not None else None
    if open_target is None:
        open_target = DEFAULT_OPEN_SPACE_PCT

    checks = [
        _check("green_cover", "green", "Green cover", green_pct >= green_target,
               p["green_cover"], green_pct, green_target),
        _check("open_space", "green", "Open space", open_space_pct >= open_target,
               p["open_space"], open_space_pct, open_target),
    ]

    # Simulation: no data or 0% compliant area stays pending
    wind = _simulation_value(simulation or [], "wind")
    sun = _simulation_value(simulation or [], "sun")
    checks.append(_check(
        "ventilation", "green", "Natural ventilation",
        None if not wind else wind > VENTILATION_TARGET_PCT,
        p["ventilation"], wind, VENTILATION_TARGET_PCT,
    ))
    checks.append(_check(
        "daylighting", "green", "Daylighting",
        None if not sun else sun > DAYLIGHT_TARGET_PCT,
        p["daylighting"], sun, DAYLIGHT_TARGET_PCT,
    ))

    if amenities is None:
        transit_ok = amenity_ok = None
        service_types = 0
    else:
        transit_ok = any(
            a.category.lower() == TRANSIT_CATEGORY and a.distance_meters <= TRANSIT_RADIUS_M
            for a in amenities
        )
        service_types = len({
            a.category.lower() for a in amenities
            if a.category.lower() in AMENITY_CATEGORIES and a.distance_meters <= AMENITY_RADIUS_M
        })
        amenity_ok = service_types >= AMENITY_MIN_CATEGORIES
    checks.append(_check(
        "transit_access", "green", "Transit access",
        transit_ok, p["transit_access"], threshold=TRANSIT_RADIUS_M,
    ))
    checks.append(_check(
        "amenity_proximity", "green", "Amenity proximity",
        amenity_ok, p["amenity_proximity"],
        float(service_types) if amenities is not None else None, float(AMENITY_MIN_CATEGORIES),
    ))
    return checks


# ──────────────────────────────────────────────────────────────────
# EFFICIENCY
# ──────────────────────────────────────────────────────────────────

def _use_class(scenario: Scenario) -> str:
    uses = {b.use.lower() for b in scenario.buildings}
    if len(uses) > 1 or any("mixed" in u for u in uses):
        return "mixed"
    if uses == {"commercial"}:
        return "commercial"
    return "residential"


def calculate_efficiency(scenario: Scenario, gfa: float) -> float:
    """(GFA - services - amenities) / GFA."""
    if gfa <= 0:
        return 0.0
    services = gfa * SERVICE_SHARE[_use_class(scenario)]
    amenities = gfa * AMENITY_SHARE
    return (gfa - services - amenities) / gfa


# ──────────────────────────────────────────────────────────────────
# ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def score_scenario(
    scenario: Scenario,
    regulation: Optional[Regulation] = None,
    green_rules: Optional[GreenRuleSet] = None,
    vastu_rules: Optional[VastuRuleSet] = None,
    simulation: Optional[list[SimulationResult]] = None,
    amenities: Optional[list[Amenity]] = None,
) -> DevelopmentMetrics:
    """Development metrics and compliance scores for one scenario."""
    notices: list[PlanningNotice] = []
    plot_area = scenario.plot_area

    footprint = scenario.total_footprint_area
    gfa = scenario.total_gross_floor_area
    green_total = sum(g.area for g in scenario.green_areas)

    if plot_area > 0:
        achieved_far = gfa / plot_area
        coverage_pct = footprint / plot_area * 100
        green_pct = green_total / plot_area * 100
    else:
        achieved_far = coverage_pct = green_pct = 0.0
    open_space = max(0.0, plot_area - footprint)
    open_space_pct = open_space / plot_area * 100 if plot_area > 0 else 0.0

    units = scenario.unit_count or math.floor(gfa / DEFAULT_UNIT_SIZE_SQM)
    ratio = regulation.parking_ratio if regulation is not None else None
    parking = ParkingMetric(
        required=required_parking(units, ratio),
        provided=summarize_parking(scenario.parking_areas)["total"],
    )

    if regulation is None:
        notices.append(PlanningNotice(code="no_regulation", message="No regulation supplied; bylaw checks skipped."))
    bylaws = _bylaw_checks(scenario, regulation, achieved_far, coverage_pct, open_space_pct, parking)
    bylaw_score = category_score(bylaws, BYLAW_WEIGHTS)

    green = _green_checks(regulation, green_pct, open_space_pct, simulation, amenities)
    checks = {"bylaws": bylaws, "green": green}
    unmatched: list[str] = []
    if green_rules is not None:
        evaluation = evaluate_credits(green_rules, {c.id: c.status for c in green})
        green_score = evaluation.score
        unmatched = evaluation.unmatched
        checks["credits"] = evaluation.credits
        for name in unmatched:
            notices.append(PlanningNotice(
                code="unmatched_credit",
                message=f"Credit '{name}' matches no automated check; left pending.",
            ))
    else:
        green_score = category_score(green, GREEN_POINTS)

    vastu = calculate_vastu_score(scenario, vastu_rules)

    return DevelopmentMetrics(
        total_plot_area=plot_area,
        achieved_far=achieved_far,
        ground_coverage_pct=coverage_pct,
        total_built_up_area=gfa,
        green_area=GreenAreaMetric(area=green_total, percentage=green_pct),
        open_space=open_space,
        road_area=sum(r.area for r in scenario.roads),
        parking=parking,
        efficiency=calculate_efficiency(scenario, gfa),
        total_units=units,
        compliance=ComplianceScores(bylaws=bylaw_score, green=green_score, vastu=vastu.overall_score),
        checks=checks,
        vastu_breakdown=vastu.breakdown,
        unmatched_credits=unmatched,
        notices=notices,
    )
